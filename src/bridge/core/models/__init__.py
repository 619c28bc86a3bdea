"""Federation, bootstrap and HTTP payload models."""

from .bootstrap import InstallResult, ReadinessReport
from .federation import MappedIdentity, MintedToken, ProvisionedUser, VerifiedClaims

__all__ = [
    "InstallResult",
    "ReadinessReport",
    "MappedIdentity",
    "MintedToken",
    "ProvisionedUser",
    "VerifiedClaims",
]
