"""
Upload Transport - Single Responsibility: send one file to the upload endpoint.

Posts a multipart body with httpx and turns byte-level progress into
ProgressEvent items:

    0-60   bytes sent (rescaled)
    60     body fully sent, server is generating the thumbnail
    85     2xx response received
    100    set by the orchestrator once the body is parsed

Failures are yielded as TransferResult.fail(...) and never retried here.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Any, AsyncIterator, BinaryIO, Callable, Optional, Union

import httpx

from ..errors import FormatError, ProtocolError, TransportError, UploadError
from ..models import ProgressEvent, TaskStatus, TransferResult, UploadConfig, VideoFile

logger = logging.getLogger(__name__)

UPLOAD_SCALE = 60
RESPONSE_PROGRESS = 85


def _describe_exception(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return message
    return f"{type(exc).__name__}: {repr(exc)}"


def scale_progress(sent: int, total: int) -> int:
    """Rescale bytes sent into the 0-UPLOAD_SCALE range."""
    if total <= 0:
        return UPLOAD_SCALE
    return min(UPLOAD_SCALE, round(sent / total * UPLOAD_SCALE))


class ProgressReader:
    """File-like wrapper reporting the running byte count as httpx reads it."""

    def __init__(self, stream: BinaryIO, callback: Callable[[int], Any]):
        self._stream = stream
        self._callback = callback
        self._sent = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._stream.read(size)
        if chunk:
            self._sent += len(chunk)
            self._callback(self._sent)
        return chunk

    def seek(self, offset: int, whence: int = 0) -> int:
        position = self._stream.seek(offset, whence)
        self._sent = self._stream.tell()
        return position

    def tell(self) -> int:
        return self._stream.tell()

    def close(self) -> None:
        self._stream.close()


def check_response(response: httpx.Response) -> None:
    """Raise ProtocolError for non-2xx responses."""
    if 200 <= response.status_code < 300:
        return
    detail = None
    try:
        body = response.json()
        if isinstance(body, dict) and body.get("error"):
            detail = str(body["error"])
    except ValueError:
        detail = response.text[:200] or None
    raise ProtocolError(response.status_code, detail)


def parse_upload_response(response: httpx.Response) -> TransferResult:
    """Parse ``{videoUrl, thumbnailUrl}``; raise FormatError on anything else."""
    try:
        body = response.json()
    except ValueError as exc:
        raise FormatError("Invalid response format") from exc

    if not isinstance(body, dict):
        raise FormatError(f"Invalid response format: expected object, got {type(body).__name__}")

    video_url = body.get("videoUrl")
    thumbnail_url = body.get("thumbnailUrl")
    if not isinstance(video_url, str) or not video_url:
        raise FormatError("Invalid response format: missing videoUrl")
    if thumbnail_url is not None and not isinstance(thumbnail_url, str):
        raise FormatError("Invalid response format: thumbnailUrl must be a string or null")

    return TransferResult.ok(video_url, thumbnail_url)


class HTTPUploadTransport:
    """
    Multipart upload transport over httpx.

    Implements ITransport protocol.

    Usage:
        async with HTTPUploadTransport(UploadConfig(base_url=url)) as transport:
            async for event in transport.send(video, "/api/upload"):
                ...
    """

    def __init__(
        self,
        config: Optional[UploadConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: Upload configuration (base_url, timeout, field_name)
            client: Pre-built client; not closed on exit
            transport: httpx transport for the client created on enter
        """
        self._config = config or UploadConfig()
        self._client = client
        self._owns_client = client is None
        self._transport = transport

    async def __aenter__(self):
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                timeout=self._config.timeout,
                transport=self._transport,
            )
        return self

    async def __aexit__(self, *args):
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def send(
        self,
        payload: VideoFile,
        endpoint: Optional[str] = None,
    ) -> AsyncIterator[Union[ProgressEvent, TransferResult]]:
        """Upload one payload, yielding progress and then one TransferResult."""
        endpoint = endpoint or self._config.upload_endpoint
        queue: asyncio.Queue = asyncio.Queue()
        reader = ProgressReader(payload.open(), queue.put_nowait)
        request = asyncio.ensure_future(self._post(endpoint, payload, reader))
        request.add_done_callback(lambda _: queue.put_nowait(None))

        last = 0
        body_sent = False
        try:
            while True:
                sent = await queue.get()
                if sent is None:
                    break
                percent = scale_progress(sent, payload.size)
                if percent > last:
                    last = percent
                    yield ProgressEvent(percent)
                if not body_sent and sent >= payload.size:
                    body_sent = True
                    yield ProgressEvent(UPLOAD_SCALE, TaskStatus.PROCESSING)

            if not body_sent and not request.cancelled() and request.exception() is None:
                # Empty bodies are sent without any read reporting bytes
                yield ProgressEvent(UPLOAD_SCALE, TaskStatus.PROCESSING)

            try:
                response = request.result()
                check_response(response)
            except UploadError as exc:
                logger.debug(f"Upload of {payload.name} failed: {exc}")
                yield TransferResult.fail(exc)
                return

            yield ProgressEvent(RESPONSE_PROGRESS, TaskStatus.PROCESSING)

            try:
                result = parse_upload_response(response)
            except FormatError as exc:
                logger.debug(f"Unparsable response for {payload.name}: {exc}")
                yield TransferResult.fail(exc)
                return
            yield result
        finally:
            if not request.done():
                request.cancel()
                with suppress(asyncio.CancelledError):
                    await request
            reader.close()

    async def _post(self, endpoint: str, payload: VideoFile, reader: ProgressReader) -> httpx.Response:
        if not self._client:
            raise RuntimeError("HTTPUploadTransport not initialized. Use 'async with' context.")

        files = {self._config.field_name: (payload.name, reader, payload.content_type)}
        try:
            return await self._client.post(endpoint, files=files)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Timed out uploading {payload.name}: {_describe_exception(exc)}") from exc
        except httpx.RequestError as exc:
            raise TransportError(f"Network Error: {_describe_exception(exc)}") from exc

