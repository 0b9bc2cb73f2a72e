"""Abstract base class for comment persistence backends."""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from threadboard.core.types import Comment, CommentDraft

SnapshotCallback = Callable[[list[Comment]], None]
Unsubscribe = Callable[[], None]


class CommentBackend(ABC):
    """Abstract interface shared by the remote store and the local cache.

    The controller depends only on this interface; which implementation it
    gets is decided once, when the controller is built.
    """

    @abstractmethod
    def list_all(self) -> list[Comment]:
        """Return every stored comment, posts and replies undifferentiated.

        Returns:
            List of Comment (empty when nothing is stored)

        Raises:
            ReadError: Backend unavailable
        """
        ...

    @abstractmethod
    def add(self, draft: CommentDraft) -> str:
        """Store a validated draft. The backend assigns id and timestamp.

        Returns:
            The new comment id

        Raises:
            WriteError: Backend unavailable or rejected the write
        """
        ...

    @abstractmethod
    def delete(self, comment_id: str) -> None:
        """Remove one comment. Unknown ids are a no-op.

        Raises:
            WriteError: Backend unavailable or rejected the write
        """
        ...

    def delete_many(self, comment_ids: list[str]) -> None:
        """Remove several comments. Implementations should make this atomic."""
        for comment_id in comment_ids:
            self.delete(comment_id)

    @property
    def supports_push(self) -> bool:
        """Whether subscribe() delivers snapshots of other clients' writes."""
        return False

    def subscribe(self, callback: SnapshotCallback) -> Optional[Unsubscribe]:
        """Register for full-snapshot notifications.

        Returns:
            Unsubscribe handle, or None when the backend has no push.
        """
        return None
