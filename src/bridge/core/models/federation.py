"""Models flowing through a federation request."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class VerifiedClaims(BaseModel):
    """Claims of an inbound token whose signature, issuer and audience checked out."""

    model_config = ConfigDict(frozen=True)

    issuer: str = Field(description="Issuer")
    subject: str = Field(description="Subject (external user ID)")
    audience: str | list[str] = Field(description="Audience")
    email: str | None = Field(default=None, description="Email claim, if present")
    expires_at: int | None = Field(default=None, description="Expiration time")
    issued_at: int | None = Field(default=None, description="Issued at")
    raw_claims: dict[str, Any] = Field(
        default_factory=dict, description="All claims exactly as decoded"
    )

    @classmethod
    def from_jwt_payload(cls, payload: dict[str, Any]) -> VerifiedClaims:
        email = payload.get("email")
        return cls(
            issuer=str(payload.get("iss", "")).rstrip("/"),
            subject=str(payload.get("sub", "")),
            audience=payload.get("aud", ""),
            email=email if isinstance(email, str) else None,
            expires_at=payload.get("exp"),
            issued_at=payload.get("iat"),
            raw_claims=dict(payload),
        )


class MappedIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    external_subject: str
    internal_id: str


class MintedToken(BaseModel):
    """A platform access token issued for a mapped identity."""

    access_token: str
    subject: str
    issued_at: int
    expires_at: int

    @property
    def expires_in(self) -> int:
        return self.expires_at - self.issued_at


class ProvisionedUser(BaseModel):
    """Result of lazy user provisioning."""

    id: str
    email: str
    created: bool = Field(
        default=False, description="True only when this call created the record"
    )
