"""QThread worker for comment backend operations."""

import logging
from typing import Callable, Optional

from PyQt6.QtCore import QThread, pyqtSignal

from threadboard.core.exceptions import ThreadboardError

logger = logging.getLogger("threadboard")


class CommentActionWorker(QThread):
    """Runs one controller operation off the UI thread.

    Used for add, reply, delete and refresh so a slow backend never
    freezes the window. Emits signals to the main thread; the UI never
    waits on the backend directly.
    """
    succeeded = pyqtSignal(object)       # operation result (comment id or None)
    error_occurred = pyqtSignal(object)  # ThreadboardError

    def __init__(self, parent=None):
        super().__init__(parent)
        self._func: Optional[Callable] = None
        self._args: tuple = ()
        self._kwargs: dict = {}

    def configure(self, func: Callable, *args, **kwargs):
        """Configure the operation to run, then call start().

        Args:
            func: Bound controller method, e.g. controller.add_comment
            *args, **kwargs: Arguments to pass to func
        """
        self._func = func
        self._args = args
        self._kwargs = kwargs

    def run(self):
        """Execute the configured operation."""
        if self._func is None:
            return
        try:
            result = self._func(*self._args, **self._kwargs)
            self.succeeded.emit(result)
        except ThreadboardError as e:
            logger.error(f"Comment action failed: {e}")
            self.error_occurred.emit(e)
        except Exception as e:
            logger.error(f"Unexpected comment action error: {e}")
            self.error_occurred.emit(ThreadboardError(f"Unexpected error: {e}"))
