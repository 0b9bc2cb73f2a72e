"""Tests for the Qt comment bridge and its worker."""

import threading

import pytest
from unittest.mock import MagicMock

from threadboard.adapters.local_cache import LocalAnnotationCache
from threadboard.adapters.remote_store import RemoteCommentStore
from threadboard.adapters.sqlite_collection import SQLiteCollection
from threadboard.core.database import DatabaseManager
from threadboard.core.exceptions import (
    PermissionDeniedError,
    ReadError,
    StorageError,
    ThreadboardError,
    ValidationError,
    WriteError,
)
from threadboard.core.key_value_store import JsonFileStore
from threadboard.core.types import CommentDraft
from threadboard.gui.comment_bridge import CommentBridge, map_error_to_key
from threadboard.gui.workers import CommentActionWorker
from threadboard.services.comment_controller import CommentController


@pytest.fixture
def remote_store(tmp_db_path):
    return RemoteCommentStore(SQLiteCollection(DatabaseManager(tmp_db_path)))


@pytest.fixture
def bridge(qapp, remote_store, alice):
    bridge = CommentBridge(CommentController(remote_store, alice), poll_interval_sec=1)
    yield bridge
    bridge.dispose()


class TestMapErrorToKey:
    def test_validation_error_names_field(self):
        assert map_error_to_key(ValidationError("content", "empty")) == "errors.invalid_content"

    def test_backend_and_permission_errors(self):
        assert map_error_to_key(PermissionDeniedError()) == "errors.permission_denied"
        assert map_error_to_key(WriteError()) == "errors.write_failed"
        assert map_error_to_key(ReadError()) == "errors.read_failed"
        assert map_error_to_key(StorageError()) == "errors.storage_unavailable"

    def test_unknown_error(self):
        assert map_error_to_key(ThreadboardError()) == "errors.unknown"


class TestCommentActionWorker:
    def test_run_emits_result(self, qapp):
        worker = CommentActionWorker()
        results = []
        worker.succeeded.connect(results.append)
        worker.configure(lambda a, b=0: a + b, 2, b=3)
        worker.run()
        assert results == [5]

    def test_run_emits_error(self, qapp):
        worker = CommentActionWorker()
        errors = []
        worker.error_occurred.connect(errors.append)
        worker.configure(MagicMock(side_effect=WriteError("rejected")))
        worker.run()
        assert len(errors) == 1
        assert isinstance(errors[0], WriteError)

    def test_unexpected_exception_still_emits_error(self, qapp):
        worker = CommentActionWorker()
        errors = []
        worker.error_occurred.connect(errors.append)
        worker.configure(MagicMock(side_effect=RuntimeError("boom")))
        worker.run()
        assert len(errors) == 1
        assert map_error_to_key(errors[0]) == "errors.unknown"
        assert "boom" in str(errors[0])

    def test_unconfigured_run_does_nothing(self, qapp):
        worker = CommentActionWorker()
        results = []
        worker.succeeded.connect(results.append)
        worker.run()
        assert results == []


class TestCommentBridge:
    def test_start_loads_on_worker_and_polls_forum(self, bridge):
        worker = bridge.start()
        assert worker.wait(5000)
        assert bridge.controller.is_loading is False
        assert bridge.is_polling is True

        bridge.stop()
        assert bridge.is_polling is False

    def test_poll_interval_from_constructor(self, qapp, remote_store, alice):
        controller = CommentController(remote_store, alice)
        assert CommentBridge(controller, poll_interval_sec=2).poll_interval_sec == 2
        assert CommentBridge(controller, poll_interval_sec=0).poll_interval_sec == 1

    def test_local_context_is_not_polled(self, qapp, tmp_dir, alice):
        cache = LocalAnnotationCache(JsonFileStore(tmp_dir / "annotations"))
        controller = CommentController(cache.for_context("task-1", "task"), alice)
        bridge = CommentBridge(controller)
        assert bridge.start().wait(5000)
        assert bridge.is_polling is False
        assert bridge.request_poll() is None
        bridge.dispose()

    def test_poll_runs_on_worker_and_picks_up_other_clients(self, bridge, tmp_db_path):
        assert bridge.start().wait(5000)
        other_client = RemoteCommentStore(SQLiteCollection(DatabaseManager(tmp_db_path)))
        other_client.add(CommentDraft(content="from elsewhere", author="bob", author_id="u-bob"))

        worker = bridge.request_poll()
        assert worker is not None
        assert worker.wait(5000)
        [thread] = bridge.controller.items
        assert thread.comment.content == "from elsewhere"

    def test_tick_skipped_while_poll_running(self, qapp, alice):
        release = threading.Event()
        store = MagicMock(spec=RemoteCommentStore)
        store.poll.side_effect = lambda: release.wait(5)
        bridge = CommentBridge(CommentController(store, alice))

        first = bridge.request_poll()
        assert bridge.request_poll() is None
        release.set()
        assert first.wait(5000)
        assert store.poll.call_count == 1
        bridge.dispose()

    def test_poll_failure_emits_error_key(self, qapp, alice):
        store = MagicMock(spec=RemoteCommentStore)
        store.poll.side_effect = ReadError("offline")
        bridge = CommentBridge(CommentController(store, alice))
        keys = []
        bridge.error_occurred.connect(keys.append)

        assert bridge.request_poll().wait(5000)
        qapp.processEvents()
        assert keys == ["errors.read_failed"]
        bridge.dispose()

    def test_worker_error_becomes_message_key(self, bridge):
        keys = []
        bridge.error_occurred.connect(keys.append)
        bridge._on_worker_error(PermissionDeniedError())
        assert keys == ["errors.permission_denied"]

    def test_submit_comment_runs_on_worker(self, bridge, remote_store):
        assert bridge.start().wait(5000)
        worker = bridge.submit_comment("Hello from the UI", category="ideas")
        assert worker.wait(5000)
        [comment] = remote_store.list_all()
        assert comment.content == "Hello from the UI"
        assert comment.category == "ideas"

    def test_dispose_detaches_listener(self, qapp, remote_store, alice):
        controller = CommentController(remote_store, alice)
        bridge = CommentBridge(controller)
        states = []
        bridge.state_changed.connect(states.append)
        bridge.dispose()
        controller.start()
        assert states == []
