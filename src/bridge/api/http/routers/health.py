"""Health check endpoints router for monitoring service availability."""

from typing import Any

from fastapi import APIRouter, Depends, Request
from starlette.responses import JSONResponse

from src.bridge.api.http.app_data import ApplicationDependencies
from src.bridge.api.http.deps import SchemaBackendFactory, get_schema_backend_factory
from src.bridge.core.errors import FederationError
from src.bridge.core.services import JwksFetchError
from src.bridge.runtime.context import get_config

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health() -> dict[str, str]:
    """Liveness probe; does not check dependencies."""
    return {"status": "healthy", "service": "rls-bridge"}


@router.get("/ready", response_model=None)
async def readiness(
    request: Request,
    schema_backend: SchemaBackendFactory = Depends(get_schema_backend_factory),
) -> dict[str, Any] | JSONResponse:
    """Readiness check - validates configuration and dependencies.

    Returns 200 if all critical checks pass, 503 otherwise.

    This checks:
    - Required settings are present
    - Cache store (Redis failure is non-critical outside production)
    - Identity provider key set is reachable
    - Schema readiness (reported, not critical)
    """
    app_deps: ApplicationDependencies = request.app.state.app_dependencies
    config = get_config()
    production = config.app.environment == "production"

    checks: dict[str, Any] = {}
    all_healthy = True

    missing = config.missing_federation_settings()
    checks["config"] = {
        "status": "healthy" if not missing else "unhealthy",
        "missing": missing,
    }
    if missing:
        all_healthy = False

    store_ok = app_deps.cache_store.is_available()
    checks["cache_store"] = {
        "status": "healthy" if store_ok else "degraded",
        "type": type(app_deps.cache_store).__name__,
    }
    if not store_ok and production:
        all_healthy = False

    jwks_url = config.federation.jwks_endpoint
    if jwks_url:
        try:
            jwks = await app_deps.jwks_service.fetch_jwks(jwks_url)
            checks["jwks"] = {"status": "healthy", "keys": len(jwks.get("keys", []))}
        except JwksFetchError as e:
            checks["jwks"] = {"status": "unhealthy", "error": str(e)}
            all_healthy = False
    else:
        checks["jwks"] = {"status": "unconfigured"}

    if not missing:
        try:
            report = await schema_backend().status()
            checks["schema"] = {
                "status": "ready" if report.ready else "incomplete",
                "missing": report.missing(),
            }
        except FederationError as e:
            checks["schema"] = {"status": "unknown", "code": e.code.value}

    response = {
        "status": "ready" if all_healthy else "not_ready",
        "environment": config.app.environment,
        "checks": checks,
    }
    if not all_healthy:
        return JSONResponse(status_code=503, content=response)
    return response
