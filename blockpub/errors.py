from __future__ import annotations

from enum import Enum


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class BadInputError(ValueError):
    """Raised when caller-supplied data (tabular bytes, selections, blocks) is unusable."""


class ExportError(RuntimeError):
    """Raised when writing an export artifact fails."""


class ReferenceFailureKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    UNAUTHORIZED = "UNAUTHORIZED"
    UNAVAILABLE = "UNAVAILABLE"


class ReferenceResolutionError(RuntimeError):
    """Raised by a media collaborator when one file id cannot be resolved to a URL."""

    def __init__(self, file_id: str, kind: ReferenceFailureKind, message: str | None = None) -> None:
        self.file_id = file_id
        self.kind = ReferenceFailureKind(kind)
        detail = (message or "").strip()
        text = f"{self.kind.value}: {file_id}"
        super().__init__(f"{text} ({detail})" if detail else text)
