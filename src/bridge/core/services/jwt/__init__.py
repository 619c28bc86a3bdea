"""JWT service package."""

from .jwks import JWKSCache, JWKSCacheInMemory, JwksFetchError, JwksService
from .jwt_gen import JwtGeneratorService
from .jwt_utils import preview_jwt
from .jwt_verify import JwtVerificationService
