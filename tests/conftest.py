"""Shared fakes for uploader tests."""
import asyncio
from typing import Dict, List, Optional

import pytest

from video_uploader.models import ProgressEvent, TaskStatus, TransferResult, UploadConfig, VideoFile
from video_uploader.registry import FileSelectionRegistry

MB = 1024 * 1024


class ScriptedTransport:
    """
    Fake ITransport whose behaviour is keyed by file name.

    failures: name -> exception yielded as TransferResult.fail
    gates: name -> asyncio.Event the transfer waits on before answering
    """

    def __init__(
        self,
        failures: Optional[Dict[str, Exception]] = None,
        gates: Optional[Dict[str, asyncio.Event]] = None,
    ):
        self.failures = failures or {}
        self.gates = gates or {}
        self.calls: List[str] = []
        self.endpoints: List[str] = []
        self.active = 0
        self.max_active = 0
        self.closed = 0

    async def send(self, payload: VideoFile, endpoint: str):
        self.calls.append(payload.name)
        self.endpoints.append(endpoint)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            for percent in (15, 30, 45, 60):
                yield ProgressEvent(percent)
                await asyncio.sleep(0)
            yield ProgressEvent(60, TaskStatus.PROCESSING)

            gate = self.gates.get(payload.name)
            if gate is not None:
                await gate.wait()

            error = self.failures.get(payload.name)
            if error is not None:
                yield TransferResult.fail(error)
                return

            yield ProgressEvent(85, TaskStatus.PROCESSING)
            yield TransferResult.ok(
                f"https://blob.example.com/{payload.name}",
                f"https://blob.example.com/{payload.name}.jpg",
            )
        finally:
            self.active -= 1
            self.closed += 1


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Yield to the event loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


def make_video(name: str = "clip.mp4", size: int = 1024) -> VideoFile:
    return VideoFile.from_bytes(name, b"\x00" * size)


@pytest.fixture
def config():
    return UploadConfig(base_url="http://gallery.test")


@pytest.fixture
def registry(config):
    return FileSelectionRegistry(config)


@pytest.fixture
def transport():
    return ScriptedTransport()
