"""Tests for the file selection registry."""
import threading

import pytest

from video_uploader.errors import ValidationError
from video_uploader.models import TaskStatus, UploadConfig, VideoFile
from video_uploader.registry import FileSelectionRegistry

from conftest import MB, make_video


class TestAdd:
    def test_add_assigns_unique_ids_ready_at_zero(self, registry):
        tasks = registry.add([make_video("a.mp4"), make_video("b.mp4"), make_video("a.mp4")])

        assert len(tasks) == 3
        assert len({t.id for t in tasks}) == 3
        assert all(t.status == TaskStatus.READY for t in tasks)
        assert all(t.progress == 0 for t in tasks)
        assert [t.name for t in registry.tasks()] == ["a.mp4", "b.mp4", "a.mp4"]

    def test_add_empty_is_noop(self, registry):
        assert registry.add([]) == []
        assert len(registry) == 0

    def test_add_appends_to_existing(self, registry):
        registry.add([make_video("a.mp4")])
        registry.add([make_video("b.mp4")])
        assert len(registry) == 2

    def test_oversized_file_rejected_before_admission(self):
        registry = FileSelectionRegistry(UploadConfig(max_file_size=5 * MB))
        registry.add([make_video("small.mp4", size=MB)])

        with pytest.raises(ValidationError, match="larger than the 5.00 MB limit") as exc_info:
            registry.add([make_video("big.mp4", size=6 * MB)])

        assert exc_info.value.filename == "big.mp4"
        assert len(registry) == 1

    def test_rejection_is_atomic(self):
        registry = FileSelectionRegistry(UploadConfig(max_file_size=5 * MB))

        with pytest.raises(ValidationError):
            registry.add([make_video("ok.mp4", size=MB), make_video("big.mp4", size=6 * MB)])

        assert len(registry) == 0

    def test_file_at_limit_is_admitted(self):
        registry = FileSelectionRegistry(UploadConfig(max_file_size=5 * MB))
        registry.add([make_video("exact.mp4", size=5 * MB)])
        assert len(registry) == 1

    def test_no_limit_by_default(self, registry):
        registry.add([make_video("huge.mp4", size=8 * MB)])
        assert len(registry) == 1

    def test_non_video_rejected(self, registry):
        with pytest.raises(ValidationError, match="unsupported type"):
            registry.add([VideoFile.from_bytes("notes.txt", b"hello")])
        assert len(registry) == 0

    def test_any_type_when_accept_disabled(self):
        registry = FileSelectionRegistry(UploadConfig(accept=None))
        registry.add([VideoFile.from_bytes("notes.txt", b"hello")])
        assert len(registry) == 1


class TestLookupAndRemoval:
    def test_get_unknown_returns_none(self, registry):
        assert registry.get("missing") is None

    def test_remove(self, registry):
        a, b = registry.add([make_video("a.mp4"), make_video("b.mp4")])
        registry.remove(a.id)
        assert registry.get(a.id) is None
        assert a.id not in registry
        assert b.id in registry

    def test_remove_unknown_is_silent(self, registry):
        registry.add([make_video()])
        registry.remove("missing")
        assert len(registry) == 1

    def test_clear(self, registry):
        registry.add([make_video("a.mp4"), make_video("b.mp4")])
        registry.clear()
        assert len(registry) == 0
        assert registry.tasks() == []


class TestMutations:
    def test_update_is_visible_immediately(self, registry):
        (task,) = registry.add([make_video()])
        registry.claim([task.id])
        registry.update(task.id, progress=30)
        assert registry.get(task.id).progress == 30

    def test_progress_never_decreases(self, registry):
        (task,) = registry.add([make_video()])
        registry.claim([task.id])
        registry.update(task.id, progress=45)
        snapshot = registry.update(task.id, progress=20)
        assert snapshot.progress == 45

    def test_progress_clamped(self, registry):
        (task,) = registry.add([make_video()])
        registry.claim([task.id])
        assert registry.update(task.id, progress=250).progress == 100

    def test_terminal_tasks_ignore_updates(self, registry):
        (task,) = registry.add([make_video()])
        registry.claim([task.id])
        registry.update(task.id, status=TaskStatus.ERROR, error="boom")

        snapshot = registry.update(task.id, status=TaskStatus.UPLOADING, progress=50)

        assert snapshot.status == TaskStatus.ERROR
        assert snapshot.error == "boom"

    def test_processing_never_falls_back_to_uploading(self, registry):
        (task,) = registry.add([make_video()])
        registry.claim([task.id])
        registry.update(task.id, status=TaskStatus.PROCESSING, progress=60)

        snapshot = registry.update(task.id, status=TaskStatus.UPLOADING, progress=70)

        assert snapshot.status == TaskStatus.PROCESSING
        assert snapshot.progress == 70

    def test_update_unknown_returns_none(self, registry):
        assert registry.update("missing", progress=10) is None

    def test_claim_only_ready_or_error(self, registry):
        ready, failed, running, done = registry.add([make_video(n) for n in ("r.mp4", "e.mp4", "u.mp4", "c.mp4")])
        registry.claim([failed.id, running.id, done.id])
        registry.update(failed.id, status=TaskStatus.ERROR, error="x")
        registry.update(done.id, status=TaskStatus.COMPLETE, progress=100)

        claimed = registry.claim([ready.id, failed.id, running.id, done.id, "missing"])

        assert [t.id for t in claimed] == [ready.id, failed.id]
        assert all(t.status == TaskStatus.UPLOADING and t.progress == 0 for t in claimed)
        assert registry.get(failed.id).error is None

    def test_pending_lists_ready_and_error(self, registry):
        a, b, c = registry.add([make_video(n) for n in ("a.mp4", "b.mp4", "c.mp4")])
        registry.claim([b.id, c.id])
        registry.update(c.id, status=TaskStatus.ERROR)
        assert registry.pending() == [a.id, c.id]

    def test_reset(self, registry):
        (task,) = registry.add([make_video()])
        registry.claim([task.id])
        registry.update(task.id, status=TaskStatus.ERROR, error="boom")

        snapshot = registry.reset(task.id)

        assert snapshot.status == TaskStatus.READY
        assert snapshot.progress == 0
        assert snapshot.error is None
        assert registry.reset("missing") is None

    def test_concurrent_claims_never_double_claim(self, registry):
        tasks = registry.add([make_video(f"{i}.mp4") for i in range(50)])
        ids = [t.id for t in tasks]
        claimed = []

        def worker():
            claimed.extend(t.id for t in registry.claim(ids))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(claimed) == sorted(ids)
