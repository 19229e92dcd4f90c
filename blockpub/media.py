from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from .errors import ReferenceFailureKind


@dataclass(frozen=True)
class ResolvedReference:
    """A fetchable locator for one stored file."""

    file_id: str
    url: str
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        current = now or datetime.now(timezone.utc)
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return expires <= current


@dataclass(frozen=True)
class ReferenceFailure:
    """One reference that degraded to None during resolution."""

    block_id: str
    path: str
    file_id: str
    kind: ReferenceFailureKind
    message: str


@runtime_checkable
class MediaResolver(Protocol):
    async def resolve_reference(self, file_id: str) -> ResolvedReference:
        """Return a locator for `file_id` or raise ReferenceResolutionError."""
        ...
