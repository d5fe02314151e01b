"""
Protocols (Interfaces) for Dependency Inversion.

The orchestrator depends on ITransport only, so tests and alternative backends
can replace the HTTP transport.
"""
from typing import AsyncIterator, Protocol, Union, runtime_checkable

from .models import ProgressEvent, TransferResult, VideoFile

TransferEvent = Union[ProgressEvent, TransferResult]


@runtime_checkable
class ITransport(Protocol):
    """Interface for a single file transfer."""

    def send(self, payload: VideoFile, endpoint: str) -> AsyncIterator[TransferEvent]:
        """
        Transfer one payload.

        Yields ProgressEvent items (non-decreasing percent) and then exactly one
        TransferResult.
        """
        ...
