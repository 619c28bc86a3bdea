from .bootstrap import (
    RpcSchemaBackend,
    SchemaBackend,
    SchemaInstaller,
    SchemaIntrospector,
    SqlSchemaBackend,
    create_schema_backend,
)
from .database.db_session import DbSessionService
from .federation.federation_service import FederationService
from .identity.mapper import IdentityMapper, map_external_id
from .jwt import (
    JWKSCache,
    JWKSCacheInMemory,
    JwksFetchError,
    JwksService,
    JwtGeneratorService,
    JwtVerificationService,
)
from .platform.admin_client import PlatformAdminClient, PlatformError
from .user.provisioning import UserProvisioningService

__all__ = [
    "RpcSchemaBackend",
    "SchemaBackend",
    "SchemaInstaller",
    "SchemaIntrospector",
    "SqlSchemaBackend",
    "create_schema_backend",
    "DbSessionService",
    "FederationService",
    "IdentityMapper",
    "map_external_id",
    "JWKSCache",
    "JWKSCacheInMemory",
    "JwksFetchError",
    "JwksService",
    "JwtGeneratorService",
    "JwtVerificationService",
    "PlatformAdminClient",
    "PlatformError",
    "UserProvisioningService",
]
