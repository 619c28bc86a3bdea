"""Token exchange endpoint."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger

from src.bridge.api.http.deps import (
    PlatformClientFactory,
    get_federation_service,
    get_platform_client_factory,
)
from src.bridge.api.http.middleware.limiter import enforce_rate_limit
from src.bridge.api.http.routers.common import (
    json_response,
    parse_token_request,
    preflight_response,
    require_settings,
)
from src.bridge.core.models.responses import Failure, FederationSuccess, Session
from src.bridge.core.services import FederationService, UserProvisioningService

router = APIRouter(tags=["federation"])


@router.options("/federate", include_in_schema=False)
async def federate_preflight() -> PlainTextResponse:
    return preflight_response()


@router.post(
    "/federate",
    response_model=FederationSuccess,
    responses={400: {"model": Failure}, 401: {"model": Failure}, 429: {"model": Failure}},
    dependencies=[Depends(enforce_rate_limit)],
)
async def federate(
    request: Request,
    federation: FederationService = Depends(get_federation_service),
    platform_client: PlatformClientFactory = Depends(get_platform_client_factory),
) -> JSONResponse:
    """Exchange an identity-provider token for a data platform session.

    The returned access token carries the caller's mapped id as ``sub`` and is
    never refreshed here; clients call again when it expires.
    """
    require_settings(minting=True)
    body = await parse_token_request(request)

    provisioning = UserProvisioningService(platform_client())
    minted = await federation.federate(body.external_token, provisioning)
    logger.info("Issued session for {}", minted.subject)

    return json_response(FederationSuccess(session=Session(access_token=minted.access_token)))
