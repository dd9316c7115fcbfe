"""Async HTTP client used by the sync engine to replay queued mutations."""

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class TransientNetworkError(Exception):
    """A replay attempt failed; the entry stays queued for the next drain."""


class VistoriaClient:
    """
    Thin wrapper over `httpx.AsyncClient` for the inspection endpoints.

    Any transport error, non-2xx response or unparseable body is raised as
    TransientNetworkError.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def set_token(self, token: str) -> None:
        self._client.headers["Authorization"] = f"Bearer {token}"

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise TransientNetworkError(f"{method} {url} failed: {type(exc).__name__}") from exc
        if response.status_code >= 400:
            raise TransientNetworkError(f"{method} {url} returned {response.status_code}")
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            # captive portals answer 200 with an HTML page
            raise TransientNetworkError(f"{method} {url} returned a non-JSON body") from exc

    async def ping(self) -> bool:
        try:
            response = await self._client.get("/health")
        except httpx.HTTPError:
            return False
        return response.status_code == 200

    async def create_inspection(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/inspections", json=payload)

    async def update_item(self, inspection_id, item_id, condition: str, note: Optional[str] = None) -> Dict[str, Any]:
        return await self._request(
            "PUT",
            f"/inspections/{inspection_id}/items/{item_id}",
            json={"condition": condition, "note": note},
        )

    async def upload_photo(
        self,
        item_id,
        content: bytes,
        filename: str,
        content_type: str,
        caption: Optional[str] = None,
    ) -> Dict[str, Any]:
        data = {"caption": caption} if caption else None
        return await self._request(
            "POST",
            f"/upload/photo/{item_id}",
            files={"photo": (filename, content, content_type)},
            data=data,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()
