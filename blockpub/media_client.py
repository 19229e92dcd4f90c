from __future__ import annotations

from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx

from .errors import ReferenceFailureKind, ReferenceResolutionError
from .media import ResolvedReference

_STATUS_KINDS: dict[int, ReferenceFailureKind] = {
    401: ReferenceFailureKind.UNAUTHORIZED,
    403: ReferenceFailureKind.UNAUTHORIZED,
    404: ReferenceFailureKind.NOT_FOUND,
    410: ReferenceFailureKind.EXPIRED,
}


def _parse_expiry(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


class HttpMediaClient:
    """
    Media collaborator backed by the platform's file API.

    `GET {base_url}/api/files/{file_id}/public-url` answers `{"url": "..."}` and
    optionally `"expiresAt"`. Non-2xx statuses and transport errors are raised as
    ReferenceResolutionError so the resolver can degrade the single reference.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        base = (base_url or "").strip().rstrip("/")
        if not base:
            raise ValueError("base_url is required")

        self._base_url = base
        self._owns_client = client is None

        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        if client is None:
            client = httpx.AsyncClient(
                headers=headers,
                timeout=timeout_seconds,
                follow_redirects=True,
                transport=transport,
            )
        else:
            client.headers.update(headers)
        self._client = client

    @property
    def base_url(self) -> str:
        return self._base_url

    def _url_for(self, file_id: str) -> str:
        return f"{self._base_url}/api/files/{quote(file_id, safe='')}/public-url"

    async def resolve_reference(self, file_id: str) -> ResolvedReference:
        try:
            response = await self._client.get(self._url_for(file_id))
        except httpx.TimeoutException as e:
            raise ReferenceResolutionError(file_id, ReferenceFailureKind.UNAVAILABLE, f"timeout: {e}") from e
        except httpx.HTTPError as e:
            raise ReferenceResolutionError(file_id, ReferenceFailureKind.UNAVAILABLE, str(e)) from e

        if response.status_code in _STATUS_KINDS:
            raise ReferenceResolutionError(
                file_id,
                _STATUS_KINDS[response.status_code],
                f"HTTP {response.status_code}",
            )
        if not response.is_success:
            raise ReferenceResolutionError(
                file_id,
                ReferenceFailureKind.UNAVAILABLE,
                f"HTTP {response.status_code}",
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ReferenceResolutionError(
                file_id, ReferenceFailureKind.UNAVAILABLE, "response was not JSON"
            ) from e

        url = data.get("url") if isinstance(data, dict) else None
        if not isinstance(url, str) or not url.strip():
            raise ReferenceResolutionError(file_id, ReferenceFailureKind.UNAVAILABLE, "response missing url")

        return ResolvedReference(
            file_id=file_id,
            url=url.strip(),
            expires_at=_parse_expiry(data.get("expiresAt")),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpMediaClient":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        await self.aclose()
