"""Schema install and readiness endpoints."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger

from src.bridge.api.http.deps import (
    SchemaBackendFactory,
    get_federation_service,
    get_schema_backend_factory,
)
from src.bridge.api.http.middleware.limiter import enforce_rate_limit
from src.bridge.api.http.routers.common import (
    json_response,
    parse_token_request,
    preflight_response,
    require_settings,
)
from src.bridge.core.models.responses import BootstrapSuccess, Failure, StatusSuccess
from src.bridge.core.services import FederationService

router = APIRouter(prefix="/bootstrap", tags=["bootstrap"])

_FAILURES = {400: {"model": Failure}, 401: {"model": Failure}, 500: {"model": Failure}}


@router.options("", include_in_schema=False)
async def bootstrap_preflight() -> PlainTextResponse:
    return preflight_response()


@router.options("/status", include_in_schema=False)
async def status_preflight() -> PlainTextResponse:
    return preflight_response()


@router.post(
    "",
    response_model=BootstrapSuccess,
    responses=_FAILURES,
    dependencies=[Depends(enforce_rate_limit)],
)
async def bootstrap(
    request: Request,
    federation: FederationService = Depends(get_federation_service),
    schema_backend: SchemaBackendFactory = Depends(get_schema_backend_factory),
) -> JSONResponse:
    """Install the schema and row policies if they are not there yet.

    Safe to call any number of times, concurrently included.
    """
    require_settings(minting=False)
    body = await parse_token_request(request)
    claims = await federation.verify(body.external_token)

    result = await schema_backend().install()
    logger.info(
        "Bootstrap requested by {}: bootstrapped={} already_initialized={}",
        claims.subject,
        result.bootstrapped,
        result.already_initialized,
    )
    if result.already_initialized:
        return json_response(BootstrapSuccess(already_initialized=True), exclude_none=True)
    return json_response(BootstrapSuccess(bootstrapped=True), exclude_none=True)


@router.post(
    "/status",
    response_model=StatusSuccess,
    responses=_FAILURES,
    dependencies=[Depends(enforce_rate_limit)],
)
async def bootstrap_status(
    request: Request,
    federation: FederationService = Depends(get_federation_service),
    schema_backend: SchemaBackendFactory = Depends(get_schema_backend_factory),
) -> JSONResponse:
    """Report which schema objects exist. Never changes anything."""
    require_settings(minting=False)
    body = await parse_token_request(request)
    await federation.verify(body.external_token)

    report = await schema_backend().status()
    return json_response(StatusSuccess(status=report))
