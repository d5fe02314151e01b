"""Core orchestrator - drives concurrent uploads for the registry's pending files."""
from contextlib import aclosing
from typing import Any, Callable, Dict, Iterable, List, Optional
import asyncio
import logging

import httpx

from ..errors import (
    BatchInProgressError,
    TaskStateError,
    TransportError,
    UnknownTaskError,
)
from ..models import (
    BatchResult,
    FileTask,
    ProgressEvent,
    TaskStatus,
    UploadConfig,
    UploadOutcome,
)
from ..protocols import ITransport
from ..registry import FileSelectionRegistry
from ..services.transport import HTTPUploadTransport
from ..utils.events import EventEmitter

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"


def _describe_exception(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return message
    return f"{type(exc).__name__}: {repr(exc)}"


class UploadOrchestrator:
    """
    Orchestrates concurrent video uploads for one registry.

    Every eligible task is submitted at once; one task failing never cancels
    or blocks the others. Once all tasks have settled, the successful subset is
    returned and, if non-empty, announced once to ``on_complete`` listeners.

    Usage:
        async with UploadOrchestrator(UploadConfig(base_url=url)) as uploader:
            uploader.registry.add([VideoFile.from_path(p) for p in paths])
            uploader.on_task_progress(lambda task: print(task.name, task.progress))
            result = await uploader.run_batch()

            for task_id in result.failures:
                await uploader.retry(task_id)
    """

    def __init__(
        self,
        config: Optional[UploadConfig] = None,
        registry: Optional[FileSelectionRegistry] = None,
        transport: Optional[ITransport] = None,
        on_complete: Optional[Callable[[List[UploadOutcome]], Any]] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            config: Upload configuration
            registry: Registry holding the selected files (created if omitted)
            transport: Transfer implementation; an HTTPUploadTransport is created
                on enter when omitted
            on_complete: Called once per batch with the successful outcomes
            http_transport: httpx transport for the default HTTPUploadTransport
        """
        self._config = config or UploadConfig()
        self._registry = registry or FileSelectionRegistry(self._config)
        self._transport = transport
        self._http_transport = http_transport
        self._owned_transport: Optional[HTTPUploadTransport] = None
        self._events = EventEmitter()
        self._batch_running = False
        self._inflight: Dict[str, asyncio.Future] = {}

        if on_complete:
            self._events.on("complete", on_complete)

    async def __aenter__(self):
        """Create the default HTTP transport if none was injected."""
        if self._transport is None:
            self._owned_transport = HTTPUploadTransport(self._config, transport=self._http_transport)
            await self._owned_transport.__aenter__()
            self._transport = self._owned_transport
        return self

    async def __aexit__(self, *args):
        futures = list(self._inflight.values())
        for future in futures:
            future.cancel()
        # Let cancelled transfers settle before their client goes away
        await asyncio.gather(*futures, return_exceptions=True)
        if self._owned_transport:
            await self._owned_transport.__aexit__(*args)
            self._owned_transport = None
            self._transport = None

    @property
    def registry(self) -> FileSelectionRegistry:
        return self._registry

    @property
    def config(self) -> UploadConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        """True while a batch is in flight."""
        return self._batch_running

    def in_flight(self) -> List[str]:
        """Ids of tasks currently being transferred (batch or retry)."""
        return [task_id for task_id, future in self._inflight.items() if not future.done()]

    # Event subscription methods
    def on_task_progress(self, callback: Callable[[FileTask], Any]):
        """Called on every status/progress change. Receives the FileTask snapshot."""
        self._events.on("task_progress", callback)

    def on_task_complete(self, callback: Callable[[UploadOutcome], Any]):
        """Called when a task reaches COMPLETE. Receives UploadOutcome."""
        self._events.on("task_complete", callback)

    def on_task_fail(self, callback: Callable[[FileTask], Any]):
        """Called when a task settles as ERROR. Receives the FileTask snapshot."""
        self._events.on("task_fail", callback)

    def on_complete(self, callback: Callable[[List[UploadOutcome]], Any]):
        """Called once per batch with the successful outcomes, if any."""
        self._events.on("complete", callback)

    async def run_batch(self, task_ids: Optional[Iterable[str]] = None) -> BatchResult:
        """
        Upload every eligible task concurrently and wait for all to settle.

        Eligible tasks are READY or ERROR; tasks already COMPLETE or in flight
        (e.g. being retried) are skipped.

        Args:
            task_ids: Restrict the batch to these ids (default: all pending)

        Returns:
            BatchResult with outcomes in completion order and per-task failures

        Raises:
            BatchInProgressError: another batch is still running
        """
        if self._batch_running:
            raise BatchInProgressError("An upload batch is already in progress")
        self._require_transport()

        self._batch_running = True
        try:
            ids = list(task_ids) if task_ids is not None else self._registry.pending()
            claimed = self._registry.claim(ids)
            result = BatchResult(total=len(claimed))
            if not claimed:
                logger.info("No pending files to upload")
                return result

            logger.info(f"Starting upload: {len(claimed)} file(s)")

            limiter = None
            if self._config.max_parallel:
                limiter = asyncio.Semaphore(self._config.max_parallel)

            futures = [self._start(task, result, limiter) for task in claimed]
            # Cancelled tasks come back as CancelledError and are already recorded
            await asyncio.gather(*futures, return_exceptions=True)

            logger.info(f"File uploads complete: {result.succeeded} successful, {result.failed} failed")

            if result.outcomes:
                await self._notify(result.outcomes)
            if self._config.reset_after_batch:
                self._reset(result)
            return result
        finally:
            self._batch_running = False

    async def retry(self, task_id: str) -> Optional[UploadOutcome]:
        """
        Re-run the transfer for one failed (or never started) task.

        Independent of any batch in flight for other tasks.

        Returns:
            UploadOutcome on success, None if it failed again or was cancelled

        Raises:
            UnknownTaskError: no such task
            TaskStateError: task is in flight or already complete
        """
        self._require_transport()
        task = self._registry.get(task_id)
        if task is None:
            raise UnknownTaskError(f"No task with id {task_id}")
        if task.status.is_active or task.status == TaskStatus.COMPLETE:
            raise TaskStateError(f"Cannot retry {task.name} while {task.status.value}")

        ready = self._registry.reset(task_id)
        claimed = self._registry.claim([task_id])
        if not claimed:
            raise TaskStateError(f"Task {task.name} was claimed by another upload")
        await self._events.emit("task_progress", ready)

        logger.info(f"Retrying: {task.name}")
        result = BatchResult(total=1)
        future = self._start(claimed[0], result, None)
        await asyncio.gather(future, return_exceptions=True)

        if not result.outcomes:
            return None
        await self._notify(result.outcomes)
        if self._config.reset_after_batch:
            self._reset(result)
        return result.outcomes[0]

    def cancel(self, task_id: str) -> bool:
        """Cancel an in-flight transfer. The task settles as ERROR."""
        future = self._inflight.get(task_id)
        if future is None or future.done():
            return False
        future.cancel()
        return True

    def _require_transport(self) -> ITransport:
        if self._transport is None:
            raise RuntimeError("UploadOrchestrator not initialized. Use 'async with' context.")
        return self._transport

    def _start(
        self,
        task: FileTask,
        result: BatchResult,
        limiter: Optional[asyncio.Semaphore],
    ) -> asyncio.Future:
        future = asyncio.ensure_future(self._run_task(task, result, limiter))
        self._inflight[task.id] = future
        future.add_done_callback(lambda f: self._forget(task.id, f))
        return future

    def _forget(self, task_id: str, future: asyncio.Future) -> None:
        if self._inflight.get(task_id) is future:
            del self._inflight[task_id]

    async def _run_task(
        self,
        task: FileTask,
        result: BatchResult,
        limiter: Optional[asyncio.Semaphore],
    ) -> Optional[UploadOutcome]:
        """Upload one task and record its outcome. Never raises except on cancel."""
        try:
            await self._events.emit("task_progress", task)
            if limiter is None:
                outcome = await self._transfer(task)
            else:
                async with limiter:
                    outcome = await self._transfer(task)
        except asyncio.CancelledError:
            logger.warning(f"Upload cancelled: {task.name}")
            snapshot = self._mark_failed(task, CANCELLED, result)
            if snapshot is not None:
                await asyncio.shield(self._emit_failed(snapshot))
            raise
        except Exception as e:
            error_msg = _describe_exception(e)
            logger.error(f"Error uploading {task.name}: {error_msg}")
            snapshot = self._mark_failed(task, error_msg, result)
            if snapshot is not None:
                await self._emit_failed(snapshot)
            return None

        snapshot = self._registry.update(task.id, status=TaskStatus.COMPLETE, progress=100)
        if snapshot is None:
            logger.debug(f"{task.name} was removed during upload, dropping its outcome")
            return None

        result.outcomes.append(outcome)
        logger.info(f"✓ Uploaded: {task.name}")
        await self._events.emit("task_progress", snapshot)
        await self._events.emit("task_complete", outcome)
        return outcome

    async def _transfer(self, task: FileTask) -> UploadOutcome:
        """Drive the transport for one task, applying progress to the registry."""
        transport = self._require_transport()
        transfer_result = None

        async with aclosing(transport.send(task.payload, self._config.upload_endpoint)) as events:
            async for event in events:
                if isinstance(event, ProgressEvent):
                    snapshot = self._registry.update(task.id, status=event.status, progress=event.percent)
                    if snapshot is not None:
                        logger.debug(f"{task.name}: {snapshot.status.value} {snapshot.progress}%")
                        await self._events.emit("task_progress", snapshot)
                    continue
                transfer_result = event
                break

        if transfer_result is None:
            raise TransportError(f"Transfer of {task.name} ended without a result")
        if not transfer_result.success:
            raise transfer_result.error

        return UploadOutcome(
            task_id=task.id,
            video_url=transfer_result.video_url,
            thumbnail_url=transfer_result.thumbnail_url,
            name=task.name,
        )

    def _mark_failed(self, task: FileTask, error: str, result: BatchResult) -> Optional[FileTask]:
        """Settle a task as ERROR. Tasks removed mid-flight are not reported."""
        snapshot = self._registry.update(task.id, status=TaskStatus.ERROR, error=error)
        if snapshot is not None:
            result.failures[task.id] = error
        return snapshot

    async def _emit_failed(self, snapshot: FileTask) -> None:
        await self._events.emit("task_progress", snapshot)
        await self._events.emit("task_fail", snapshot)

    def _reset(self, result: BatchResult) -> None:
        """Drop the completed tasks of a finished batch; failed ones stay for retry."""
        for outcome in result.outcomes:
            self._registry.remove(outcome.task_id)

    async def _notify(self, outcomes: List[UploadOutcome]) -> None:
        """Announce the successful subset, after the configured linger delay."""
        if self._config.completion_delay > 0:
            await asyncio.sleep(self._config.completion_delay)
        await self._events.emit("complete", list(outcomes))
