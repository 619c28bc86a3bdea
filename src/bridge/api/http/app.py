"""FastAPI application factory and setup."""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from src.bridge.api.http.app_data import ApplicationDependencies
from src.bridge.api.http.middleware.limiter import FixedWindowRateLimiter, client_address
from src.bridge.api.http.routers.bootstrap import router as bootstrap_router
from src.bridge.api.http.routers.common import cors_headers
from src.bridge.api.http.routers.federation import router as federation_router
from src.bridge.api.http.routers.health import router as health_router
from src.bridge.api.utils.app_startup import configure_logging
from src.bridge.core.errors import ErrorCode, FederationError
from src.bridge.core.models.responses import Failure
from src.bridge.core.services import (
    FederationService,
    JWKSCacheInMemory,
    JwksFetchError,
    JwksService,
    JwtGeneratorService,
    JwtVerificationService,
)
from src.bridge.core.storage.cache_store import create_cache_store
from src.bridge.runtime.context import get_config

# Initialize logging
configure_logging()


# --- Security middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        # Minted tokens must never be cached by intermediaries
        response.headers.setdefault("Cache-Control", "no-store")
        if get_config().app.environment == "production":
            response.headers.setdefault(
                "Strict-Transport-Security",
                "max-age=31536000; includeSubDomains; preload",
            )
        return response


# --- FastAPI app setup ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup()
    try:
        yield
    finally:
        await shutdown()


app = FastAPI(
    title="rls-bridge",
    lifespan=lifespan,
    docs_url=None if get_config().app.environment == "production" else "/docs",
    redoc_url=None if get_config().app.environment == "production" else "/redoc",
)

app.add_middleware(SecurityHeadersMiddleware)

# expose startup for tests
__all__ = ["app", "startup", "shutdown"]

# --- CORS configuration ---
if get_config().app.cors.allow_credentials and "*" in get_config().app.cors.origins:
    raise RuntimeError("CORS misconfigured: cannot use '*' with allow_credentials=True")

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().app.cors.origins,
    allow_credentials=get_config().app.cors.allow_credentials,
    allow_methods=get_config().app.cors.allow_methods,
    allow_headers=get_config().app.cors.allow_headers,
)


def failure_response(
    code: ErrorCode, message: str, status_code: int, headers: dict[str, str] | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=Failure(code=code, error=message).model_dump(mode="json"),
        headers={**cors_headers(), **(headers or {})},
    )


# --- Exception handlers ---
@app.exception_handler(FederationError)
async def federation_error_handler(request: Request, exc: FederationError) -> JSONResponse:
    logger.bind(code=exc.code.value, status_code=exc.status_code).info(
        "request.failed"
    )
    return failure_response(exc.code, exc.message, exc.status_code, exc.headers)


@app.exception_handler(StarletteHTTPException)
async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405:
        return failure_response(
            ErrorCode.INVALID_BODY, "Method not allowed", 405, exc.headers
        )
    return await http_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return failure_response(ErrorCode.INVALID_BODY, "Invalid request body", 400)


# --- Request logging middleware ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

    # query strings and bodies carry tokens; never log them
    base_ctx = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "client_ip": client_address(request),
        "user_agent": request.headers.get("user-agent", "unknown"),
    }

    start = time.perf_counter()

    with logger.contextualize(**base_ctx):
        try:
            logger.info("request.start")
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start) * 1000
            logger.bind(
                status_code=response.status_code,
                duration_ms=round(duration_ms, 1),
            ).info("request.end")

            response.headers.setdefault("X-Request-ID", request_id)
            return response

        except Exception as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            # No traceback: exception text may embed connection strings.
            logger.bind(
                status_code=500,
                duration_ms=round(duration_ms, 1),
                error_type=type(exc).__name__,
            ).error("request.error")
            response = failure_response(
                ErrorCode.INTERNAL_ERROR, "Internal server error", 500
            )
            response.headers["X-Request-ID"] = request_id
            return response


# --- Router registration ---
app.include_router(federation_router)
app.include_router(bootstrap_router)
app.include_router(health_router)


# --- Lifecycle hooks ---
async def startup() -> None:
    config = get_config()
    logger.info("Starting up application in {} environment", config.app.environment)

    # Validate configuration so we fail fast on misconfiguration
    missing = config.missing_federation_settings()
    if missing:
        logger.error("Missing required settings: {}", ", ".join(missing))
        if config.app.environment == "production":
            raise RuntimeError(f"Missing required settings: {', '.join(missing)}")

    jwks_cache = JWKSCacheInMemory(ttl_seconds=config.jwt.jwks_cache_ttl)
    jwks_service = JwksService(jwks_cache, timeout=config.jwt.jwks_fetch_timeout)
    jwt_verify_service = JwtVerificationService(jwks_service)
    jwt_generation_service = JwtGeneratorService()

    cache_store = await create_cache_store(config)

    deps = ApplicationDependencies(
        jwks_cache=jwks_cache,
        jwks_service=jwks_service,
        jwt_verify_service=jwt_verify_service,
        jwt_generation_service=jwt_generation_service,
        cache_store=cache_store,
        rate_limiter=FixedWindowRateLimiter(cache_store),
        federation_service=FederationService(
            jwt_verify_service, jwt_generation_service, cache_store
        ),
    )
    app.state.app_dependencies = deps

    # Verify the key set endpoint so auth failures surface early
    jwks_url = config.federation.jwks_endpoint
    if jwks_url and not missing:
        try:
            await jwks_service.fetch_jwks(jwks_url)
        except JwksFetchError as err:
            logger.error("Failed to fetch key set from {}: {}", jwks_url, err)
            if config.app.environment == "production":
                raise RuntimeError("Key set readiness check failed") from err


async def shutdown() -> None:
    logger.info("Shutting down application")
    app_dependencies: ApplicationDependencies = app.state.app_dependencies
    await app_dependencies.cache_store.close()
    if app_dependencies.database_service is not None:
        app_dependencies.database_service.dispose()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=get_config().app.host,
        port=get_config().app.port,
        access_log=False,  # We handle access logging in middleware
    )
