"""Shared forum comment store with full-snapshot change notification."""

import copy
import logging
import threading
from typing import Optional

from threadboard.adapters.comment_backend import CommentBackend, SnapshotCallback, Unsubscribe
from threadboard.adapters.remote_collection import RemoteCollection
from threadboard.core.exceptions import ReadError, ValidationError
from threadboard.core.types import CATEGORIES, Comment, CommentDraft

logger = logging.getLogger("threadboard")


class RemoteCommentStore(CommentBackend):
    """Authoritative multi-client store for forum posts and their replies.

    Consistency is eventual, last-write-wins:
    - the collection assigns ids, so concurrent adds never conflict
    - deleting an id twice is a no-op the second time
    - subscribers of this store are notified right after each of its own
      writes; writes from other clients arrive through poll()

    Every notification carries the full collection, never a delta.
    """

    def __init__(self, collection: RemoteCollection):
        self._collection = collection
        self._subscribers: dict[int, SnapshotCallback] = {}
        self._next_token = 0
        self._last_fingerprint: Optional[tuple] = None
        # Qt workers write while the UI thread polls
        self._lock = threading.RLock()

    @property
    def supports_push(self) -> bool:
        return True

    def list_all(self) -> list[Comment]:
        return self._collection.fetch_all()

    def list_by_category(self, category: str) -> list[Comment]:
        """Records of one category, newest first.

        Raises:
            ValidationError: Unknown category
            ReadError: Collection unreachable
        """
        if category not in CATEGORIES:
            raise ValidationError("category", f"Unknown category '{category}'")
        comments = self._collection.fetch_all(category)
        return sorted(comments, key=lambda c: c.timestamp, reverse=True)

    def add(self, draft: CommentDraft) -> str:
        comment = self._collection.append(draft)
        logger.info(
            f"Added {'reply' if comment.is_reply else 'post'} {comment.id} "
            f"by {comment.author_id}"
        )
        self._notify_after_write()
        return comment.id

    def delete(self, comment_id: str) -> None:
        self.delete_many([comment_id])

    def delete_many(self, comment_ids: list[str]) -> None:
        if not comment_ids:
            return
        self._collection.remove(list(comment_ids))
        logger.info(f"Deleted comment(s): {', '.join(comment_ids)}")
        self._notify_after_write()

    def subscribe(self, callback: SnapshotCallback) -> Unsubscribe:
        """Register callback for full snapshots.

        Returns:
            Handle that detaches the callback. Calling it again is a no-op.
        """
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback
        logger.debug(f"Subscriber {token} registered")

        def unsubscribe() -> None:
            with self._lock:
                if self._subscribers.pop(token, None) is not None:
                    logger.debug(f"Subscriber {token} removed")

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def poll(self) -> bool:
        """Check the collection for writes from other clients.

        Returns:
            True if subscribers were sent a new snapshot.

        Raises:
            ReadError: Collection unreachable
        """
        snapshot = self._collection.fetch_all()
        with self._lock:
            if self._fingerprint(snapshot) == self._last_fingerprint:
                return False
        logger.debug(f"Remote change detected ({len(snapshot)} records)")
        self._deliver(snapshot)
        return True

    def _notify_after_write(self) -> None:
        with self._lock:
            if not self._subscribers:
                return
        try:
            snapshot = self._collection.fetch_all()
        except ReadError as e:
            # The write itself succeeded; the next poll delivers it
            logger.warning(f"Write landed but snapshot refresh failed: {e}")
            return
        self._deliver(snapshot)

    def _deliver(self, snapshot: list[Comment]) -> None:
        with self._lock:
            self._last_fingerprint = self._fingerprint(snapshot)
            subscribers = list(self._subscribers.items())

        for token, callback in subscribers:
            try:
                callback(copy.deepcopy(snapshot))
            except Exception:
                logger.exception(f"Subscriber {token} failed to handle snapshot")

    @staticmethod
    def _fingerprint(snapshot: list[Comment]) -> tuple:
        return tuple(sorted((c.id, c.timestamp) for c in snapshot))
