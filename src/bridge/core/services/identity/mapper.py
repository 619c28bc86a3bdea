"""Deterministic external-subject to internal-id mapping (name-based UUIDv5).

There is no mapping table: the internal id is recomputed from the external
subject on every request, so the same subject always lands on the same row
owner and a first request can never race a second one over an insert.
"""

from __future__ import annotations

import hashlib
import re
import uuid
from typing import Final

from src.bridge.core.models.federation import MappedIdentity
from src.bridge.runtime.config.config_data import DEFAULT_IDENTITY_NAMESPACE

MAPPED_ID_PATTERN: Final = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$"
)


def _namespace_bytes(namespace: str) -> bytes:
    return uuid.UUID(namespace).bytes


def map_external_id(external_id: str, namespace: str = DEFAULT_IDENTITY_NAMESPACE) -> str:
    """Map an external subject to its canonical internal UUID string.

    SHA-1 over ``namespace || utf8(external_id)``, first 16 bytes, version
    nibble forced to 5 and variant bits to ``10``.

    Raises:
        ValueError: If ``external_id`` is empty or the namespace is not a UUID.
    """
    if not external_id:
        raise ValueError("external_id must be a non-empty string")

    digest = bytearray(
        hashlib.sha1(_namespace_bytes(namespace) + external_id.encode("utf-8")).digest()[:16]
    )
    digest[6] = (digest[6] & 0x0F) | 0x50
    digest[8] = (digest[8] & 0x3F) | 0x80

    h = digest.hex()
    return f"{h[0:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"


def is_mapped_id(value: str) -> bool:
    return bool(MAPPED_ID_PATTERN.match(value or ""))


class IdentityMapper:
    """Namespace-bound wrapper used by the federation service."""

    def __init__(self, namespace: str = DEFAULT_IDENTITY_NAMESPACE) -> None:
        # Fail at construction, not on the first request.
        _namespace_bytes(namespace)
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        return self._namespace

    def map(self, external_id: str) -> MappedIdentity:
        return MappedIdentity(
            external_subject=external_id,
            internal_id=map_external_id(external_id, self._namespace),
        )
