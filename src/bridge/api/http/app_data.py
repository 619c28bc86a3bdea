from dataclasses import dataclass

from src.bridge.api.http.middleware.limiter import FixedWindowRateLimiter
from src.bridge.core.services import (
    DbSessionService,
    FederationService,
    JWKSCacheInMemory,
    JwksService,
    JwtGeneratorService,
    JwtVerificationService,
)
from src.bridge.core.storage.cache_store import CacheStore


@dataclass
class ApplicationDependencies:
    jwks_cache: JWKSCacheInMemory
    jwks_service: JwksService
    jwt_verify_service: JwtVerificationService
    jwt_generation_service: JwtGeneratorService
    cache_store: CacheStore
    rate_limiter: FixedWindowRateLimiter
    federation_service: FederationService
    # Created on first use; only the SQL installer backend needs it.
    database_service: DbSessionService | None = None
