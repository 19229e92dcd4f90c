from __future__ import annotations

import copy
from typing import Any, Mapping

from .errors import ReferenceFailureKind, ReferenceResolutionError
from .media import ResolvedReference

_OFFLINE_BASE_URL = "https://media.example.com/files"

_OFFLINE_INTRO = (
    "<p>Spring planting notes: we moved the tomato beds to the south fence and "
    "started tracking yield&nbsp;per bed every week.</p>"
)
_OFFLINE_FOLLOWUP = (
    "<p>Early numbers look <strong>promising</strong>. The raised beds warmed up faster "
    "and the drip lines cut watering time in half.</p>"
)

_DEFAULT_OFFLINE_BLOCKS: list[dict[str, Any]] = [
    {
        "id": "blk-1",
        "postId": "post-1",
        "order": 0,
        "type": "HEADING",
        "data": {"level": 1, "heading": "Garden log"},
    },
    {
        "id": "blk-2",
        "postId": "post-1",
        "order": 1,
        "type": "TEXT",
        "data": {"text": _OFFLINE_INTRO},
    },
    {
        "id": "blk-3",
        "postId": "post-1",
        "order": 2,
        "type": "IMAGES",
        "data": {
            "images": [
                {"id": "img-b", "fileId": "file-beds", "alt": "Raised beds", "order": 1},
                {"id": "img-a", "fileId": "file-fence", "alt": "South fence", "order": 0},
            ]
        },
    },
    {
        "id": "blk-4",
        "postId": "post-1",
        "order": 3,
        "type": "TEXT",
        "data": {"text": _OFFLINE_FOLLOWUP},
    },
    {
        "id": "blk-5",
        "postId": "post-1",
        "order": 4,
        "type": "VIDEO",
        "data": {"videoFileId": "file-tour", "posterFileId": "missing-poster"},
    },
]

_DEFAULT_OFFLINE_ROWS: list[dict[str, Any]] = [
    {"week": "2024-03-04", "bed": "North", "tomatoes": 12, "peppers": "4"},
    {"week": "2024-03-11", "bed": "South", "tomatoes": 18, "peppers": "7"},
    {"week": "2024-03-18", "bed": "North", "tomatoes": 15, "peppers": "n/a"},
    {"week": "2024-03-25", "bed": "South", "tomatoes": 22, "peppers": "9"},
]

_DEFAULT_FAILURES: dict[str, ReferenceFailureKind] = {
    "missing-poster": ReferenceFailureKind.NOT_FOUND,
}


def offline_blocks() -> list[dict[str, Any]]:
    """Sample raw blocks for one post, covering text, images and a video with a broken poster."""
    return copy.deepcopy(_DEFAULT_OFFLINE_BLOCKS)


def offline_rows() -> list[dict[str, Any]]:
    return copy.deepcopy(_DEFAULT_OFFLINE_ROWS)


class OfflineMediaResolver:
    """
    Deterministic, network-free MediaResolver.

    Every file id maps to `{base_url}/{file_id}` unless it is listed in `failures`,
    in which case ReferenceResolutionError is raised with the mapped kind.
    """

    def __init__(
        self,
        *,
        base_url: str = _OFFLINE_BASE_URL,
        failures: Mapping[str, ReferenceFailureKind] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._failures = dict(_DEFAULT_FAILURES if failures is None else failures)
        self.calls: list[str] = []

    async def resolve_reference(self, file_id: str) -> ResolvedReference:
        self.calls.append(file_id)

        kind = self._failures.get(file_id)
        if kind is not None:
            raise ReferenceResolutionError(file_id, kind, "offline failure")

        return ResolvedReference(file_id=file_id, url=f"{self._base_url}/{file_id}")
