from .backends import RpcSchemaBackend, SchemaBackend, SqlSchemaBackend, create_schema_backend
from .catalog import SchemaObject, build_catalog, build_schema_catalog
from .installer import SchemaInstaller, SchemaIntrospector, is_duplicate_error
from .procedures import render_migration

__all__ = [
    "RpcSchemaBackend",
    "SchemaBackend",
    "SqlSchemaBackend",
    "create_schema_backend",
    "SchemaObject",
    "build_catalog",
    "build_schema_catalog",
    "SchemaInstaller",
    "SchemaIntrospector",
    "is_duplicate_error",
    "render_migration",
]
