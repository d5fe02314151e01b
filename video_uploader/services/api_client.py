"""HTTP adapter for the gallery listing endpoint."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

import httpx

from ..errors import FormatError, ProtocolError, TransportError
from ..models import GalleryItem, UploadConfig

logger = logging.getLogger(__name__)


def parse_gallery(body: Any) -> List[GalleryItem]:
    """Parse a ``[{videoUrl, thumbnailUrl, name}, ...]`` listing."""
    if not isinstance(body, list):
        raise FormatError(f"Expected a JSON array of videos, got {type(body).__name__}")

    items = []
    for entry in body:
        if not isinstance(entry, dict) or not isinstance(entry.get("videoUrl"), str):
            raise FormatError(f"Malformed gallery entry: {entry!r}")
        thumbnail_url = entry.get("thumbnailUrl")
        items.append(
            GalleryItem(
                video_url=entry["videoUrl"],
                thumbnail_url=thumbnail_url if isinstance(thumbnail_url, str) else None,
                name=entry.get("name"),
            )
        )
    return items


class GalleryClient:
    """
    HTTP client adapter for the gallery API.

    Usage:
        async with GalleryClient(UploadConfig(base_url=url)) as gallery:
            items = await gallery.list_videos()
    """

    def __init__(
        self,
        config: Optional[UploadConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: int = 3,
    ):
        self._config = config or UploadConfig()
        self._transport = transport
        self._max_retries = max_retries
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=self._config.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def list_videos(self) -> List[GalleryItem]:
        response = await self.get(self._config.gallery_endpoint)
        try:
            body = response.json()
        except ValueError as exc:
            raise FormatError("Invalid gallery response format") from exc
        return parse_gallery(body)

    async def get(self, endpoint: str) -> httpx.Response:
        if not self._client:
            raise RuntimeError("GalleryClient not initialized. Use 'async with' context.")

        for attempt in range(self._max_retries):
            last_attempt = attempt == self._max_retries - 1
            try:
                response = await self._client.get(endpoint)
            except httpx.RequestError as exc:
                if not last_attempt:
                    logger.debug(f"GET {endpoint} failed ({exc}), retrying")
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue
                raise TransportError(f"Failed to GET {endpoint}: {exc}") from exc

            if response.status_code >= 500 and not last_attempt:
                await asyncio.sleep(0.5 * (attempt + 1))
                continue

            if response.status_code >= 400:
                try:
                    error_detail = response.json().get("error")
                except (ValueError, AttributeError):
                    error_detail = response.text or None
                raise ProtocolError(response.status_code, error_detail)

            return response

        raise TransportError(f"Failed to GET {endpoint} after {self._max_retries} attempts")
