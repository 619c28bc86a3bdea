"""Helpers shared by the token-carrying endpoints."""

from fastapi import Request
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger
from pydantic import BaseModel, ValidationError

from src.bridge.core.errors import ErrorCode, FederationError
from src.bridge.core.models.responses import ExternalTokenRequest
from src.bridge.runtime.context import get_config


def cors_headers() -> dict[str, str]:
    cors = get_config().app.cors
    return {
        "Access-Control-Allow-Origin": ", ".join(cors.origins),
        "Access-Control-Allow-Headers": ", ".join(cors.allow_headers),
        "Access-Control-Allow-Methods": ", ".join(cors.allow_methods),
    }


def json_response(
    model: BaseModel, status_code: int = 200, *, exclude_none: bool = False
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=model.model_dump(mode="json", exclude_none=exclude_none),
        headers=cors_headers(),
    )


def preflight_response() -> PlainTextResponse:
    return PlainTextResponse("ok", headers=cors_headers())


def require_settings(*, minting: bool) -> None:
    """Raise ``env_missing`` naming the unset variables."""
    missing = get_config().missing_federation_settings(minting=minting)
    if missing:
        logger.error("Request rejected; missing settings: {}", ", ".join(missing))
        raise FederationError(
            ErrorCode.ENV_MISSING, f"Missing configuration: {', '.join(missing)}"
        )


async def parse_token_request(request: Request) -> ExternalTokenRequest:
    try:
        payload = await request.json()
    except ValueError as e:
        raise FederationError(ErrorCode.INVALID_BODY, "Body must be JSON") from e
    try:
        return ExternalTokenRequest.model_validate(payload)
    except ValidationError as e:
        raise FederationError(ErrorCode.INVALID_BODY, "externalToken is required") from e
