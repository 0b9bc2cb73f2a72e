"""Qt-facing wrapper that turns controller state into signals."""

import logging
from typing import Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from threadboard.adapters.remote_store import RemoteCommentStore
from threadboard.core.exceptions import (
    PermissionDeniedError,
    ReadError,
    StorageError,
    ThreadboardError,
    ValidationError,
    WriteError,
)
from threadboard.core.types import ViewState
from threadboard.gui.workers import CommentActionWorker
from threadboard.services.comment_controller import CommentController

logger = logging.getLogger("threadboard")


def map_error_to_key(error: ThreadboardError) -> str:
    """Map exception type to a UI message key."""
    if isinstance(error, ValidationError):
        return f"errors.invalid_{error.field}"
    if isinstance(error, PermissionDeniedError):
        return "errors.permission_denied"
    if isinstance(error, WriteError):
        return "errors.write_failed"
    if isinstance(error, ReadError):
        return "errors.read_failed"
    if isinstance(error, StorageError):
        return "errors.storage_unavailable"
    return "errors.unknown"


class CommentBridge(QObject):
    """Connects one CommentController to a Qt view.

    - state_changed carries every ViewState the controller produces
    - the first load, submit_comment / submit_reply / request_delete and
      every poll run on worker threads; the UI thread never calls the
      backend directly
    - a QTimer polls the remote store so other clients' writes show up
      without a manual refresh; a tick is skipped while a poll is running
    """

    state_changed = pyqtSignal(object)    # ViewState
    error_occurred = pyqtSignal(str)      # message key
    action_finished = pyqtSignal(object)  # operation result

    def __init__(self, controller: CommentController, poll_interval_sec: int = 5, parent=None):
        super().__init__(parent)
        self._controller = controller
        self._workers: set[CommentActionWorker] = set()
        self._poll_worker: Optional[CommentActionWorker] = None
        self._remove_listener = controller.add_listener(self._on_state)

        self._poll_timer = QTimer(self)
        self._poll_timer.setInterval(max(1, int(poll_interval_sec)) * 1000)
        self._poll_timer.timeout.connect(self.request_poll)

    @property
    def controller(self) -> CommentController:
        return self._controller

    @property
    def poll_interval_sec(self) -> int:
        return self._poll_timer.interval() // 1000

    @property
    def is_polling(self) -> bool:
        return self._poll_timer.isActive()

    def start(self) -> CommentActionWorker:
        """Load the discussion on a worker and, for the shared forum, start polling."""
        worker = self._run(self._controller.start)
        if isinstance(self._controller.backend, RemoteCommentStore):
            self._poll_timer.start()
        return worker

    def stop(self):
        """Stop polling and detach the controller from its backend."""
        self._poll_timer.stop()
        self._controller.stop()

    def dispose(self):
        self._poll_timer.stop()
        for worker in list(self._workers):
            if worker.isRunning():
                worker.wait(2000)
        self.stop()
        self._remove_listener()

    def request_poll(self) -> Optional[CommentActionWorker]:
        """Check the shared store once on a worker.

        Returns:
            The poll worker, or None when the backend has nothing to poll
            or the previous poll is still running.
        """
        backend = self._controller.backend
        if not isinstance(backend, RemoteCommentStore):
            return None
        if self._poll_worker is not None and self._poll_worker.isRunning():
            logger.debug("Previous poll still running; skipping tick")
            return None
        self._poll_worker = self._run(backend.poll)
        return self._poll_worker

    def submit_comment(self, content: str, title: Optional[str] = None,
                       category: Optional[str] = None,
                       tags: Optional[list[str]] = None) -> CommentActionWorker:
        return self._run(self._controller.add_comment, content,
                         title=title, category=category, tags=tags)

    def submit_reply(self, parent_id: str, content: str) -> CommentActionWorker:
        return self._run(self._controller.add_reply, parent_id, content)

    def request_delete(self, comment_id: str) -> CommentActionWorker:
        return self._run(self._controller.delete_comment, comment_id)

    def _run(self, func, *args, **kwargs) -> CommentActionWorker:
        worker = CommentActionWorker(self)
        worker.configure(func, *args, **kwargs)
        worker.succeeded.connect(self.action_finished.emit)
        worker.error_occurred.connect(self._on_worker_error)
        worker.finished.connect(lambda: self._workers.discard(worker))
        self._workers.add(worker)
        worker.start()
        return worker

    def _on_state(self, state: ViewState):
        self.state_changed.emit(state)

    def _on_worker_error(self, error: ThreadboardError):
        self.error_occurred.emit(map_error_to_key(error))
