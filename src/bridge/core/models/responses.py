"""Tagged success/failure payloads returned by the HTTP endpoints."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from src.bridge.core.errors import ErrorCode
from src.bridge.core.models.bootstrap import ReadinessReport


class ExternalTokenRequest(BaseModel):
    """Body accepted by every endpoint: ``{"externalToken": "..."}``."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    external_token: Annotated[str, Field(min_length=1, alias="externalToken")]


class Session(BaseModel):
    access_token: str
    refresh_token: None = None


class FederationSuccess(BaseModel):
    success: Literal[True] = True
    session: Session


class BootstrapSuccess(BaseModel):
    success: Literal[True] = True
    bootstrapped: bool | None = None
    already_initialized: bool | None = None


class StatusSuccess(BaseModel):
    success: Literal[True] = True
    status: ReadinessReport


class Failure(BaseModel):
    success: Literal[False] = False
    code: ErrorCode
    error: str


FederationResponse = FederationSuccess | Failure
BootstrapResponse = BootstrapSuccess | Failure
StatusResponse = StatusSuccess | Failure
