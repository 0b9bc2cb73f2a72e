"""Per-client comment threads attached to documents and tasks."""

import json
import logging
import threading
import time
from dataclasses import replace
from typing import Iterator

from threadboard.adapters.comment_backend import CommentBackend
from threadboard.core.exceptions import StorageError, ValidationError, WriteError
from threadboard.core.key_value_store import KeyValueStore
from threadboard.core.types import CONTEXT_TYPES, Comment, CommentDraft

logger = logging.getLogger("threadboard")

DEFAULT_KEY_PREFIX = "teamboard_embedded_comments"


class LocalAnnotationCache:
    """Persists one flat comment list per context under "<prefix>_<context_id>".

    The cache is never shared between clients, so there is no change
    notification and no cross-client id coordination. Every mutation
    rewrites the whole list for its context.
    """

    def __init__(self, store: KeyValueStore, key_prefix: str = DEFAULT_KEY_PREFIX):
        self._store = store
        self._key_prefix = key_prefix
        self._counter = 0
        self._last_timestamp = 0.0
        self._lock = threading.RLock()

    def key_for(self, context_id: str) -> str:
        return f"{self._key_prefix}_{context_id}"

    def load(self, context_id: str) -> list[Comment]:
        """Read the thread for a context.

        Absent, unreadable or corrupt storage yields an empty list; the
        problem is logged. Malformed records are skipped one by one.
        """
        key = self.key_for(context_id)
        try:
            raw = self._store.get(key)
        except StorageError as e:
            logger.warning(f"Treating unreadable cache '{key}' as empty: {e}")
            return []
        if raw is None:
            return []

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Treating corrupt cache '{key}' as empty: {e}")
            return []
        if not isinstance(data, list):
            logger.warning(f"Treating cache '{key}' as empty: expected a list, got {type(data).__name__}")
            return []

        comments = []
        for record in self._flatten(data):
            try:
                comments.append(Comment.from_record(record))
            except ValueError as e:
                logger.warning(f"Skipping malformed record in '{key}': {e}")
        return comments

    def save(self, context_id: str, comments: list[Comment]) -> None:
        """Overwrite the thread for a context.

        Raises:
            StorageError: Store cannot be written
        """
        key = self.key_for(context_id)
        raw = json.dumps([c.to_record() for c in comments], ensure_ascii=False)
        self._store.set(key, raw)
        logger.debug(f"Saved {len(comments)} comment(s) to '{key}'")

    def add_top_level(self, context_id: str, draft: CommentDraft) -> Comment:
        """Append a new top-level comment to a context's thread."""
        if draft.parent_id is not None:
            raise ValidationError("parent_id", "Use add_reply for replies")
        with self._lock:
            comments = self.load(context_id)
            comment = self._new_comment(draft, context_id, "comment")
            comments.append(comment)
            self.save(context_id, comments)
        logger.info(f"Added comment {comment.id} to '{context_id}'")
        return comment

    def add_reply(self, context_id: str, parent_id: str, draft: CommentDraft) -> Comment:
        """Append a reply under an existing top-level comment.

        Raises:
            ValidationError: Parent is missing or is itself a reply
            StorageError: Store cannot be written
        """
        with self._lock:
            comments = self.load(context_id)
            parent = next((c for c in comments if c.id == parent_id), None)
            if parent is None:
                raise ValidationError("parent_id", f"Unknown parent comment '{parent_id}'")
            if parent.is_reply:
                raise ValidationError("parent_id", "Replies can only be added to top-level comments")

            comment = self._new_comment(replace(draft, parent_id=parent_id), context_id, "reply")
            comments.append(comment)
            self.save(context_id, comments)
        logger.info(f"Added reply {comment.id} to {parent_id} in '{context_id}'")
        return comment

    def delete(self, context_id: str, comment_id: str) -> list[str]:
        """Delete a comment and, for a top-level comment, its replies.

        Returns:
            Ids actually removed (empty when comment_id is unknown).
        """
        return self.delete_many(context_id, [comment_id])

    def delete_many(self, context_id: str, comment_ids: list[str]) -> list[str]:
        """Delete several comments plus their replies in one rewrite."""
        with self._lock:
            comments = self.load(context_id)
            doomed = set(comment_ids)
            doomed.update(c.id for c in comments if c.parent_id in doomed)
            remaining = [c for c in comments if c.id not in doomed]
            removed = [c.id for c in comments if c.id in doomed]
            if not removed:
                logger.debug(f"Nothing to delete in '{context_id}' for {comment_ids}")
                return []
            self.save(context_id, remaining)
        logger.info(f"Deleted {len(removed)} comment(s) from '{context_id}'")
        return removed

    def for_context(self, context_id: str, context_type: str) -> 'LocalContextBackend':
        return LocalContextBackend(self, context_id, context_type)

    def _new_comment(self, draft: CommentDraft, context_id: str, id_prefix: str) -> Comment:
        now = time.time()
        if now <= self._last_timestamp:
            now = self._last_timestamp + 0.001
        self._last_timestamp = now
        self._counter += 1
        comment_id = f"{id_prefix}_{int(now * 1000)}_{self._counter}"
        return Comment.from_draft(replace(draft, context_id=context_id), comment_id, now)

    @staticmethod
    def _flatten(records: list) -> Iterator:
        """Yield flat records; older data nested replies inside their parent."""
        for record in records:
            if isinstance(record, dict) and isinstance(record.get("replies"), list):
                parent = {k: v for k, v in record.items() if k != "replies"}
                yield parent
                for reply in record["replies"]:
                    if isinstance(reply, dict):
                        yield {**reply, "parentId": reply.get("parentId") or parent.get("id")}
                    else:
                        yield reply
            else:
                yield record


class LocalContextBackend(CommentBackend):
    """CommentBackend view of one document's or task's local thread."""

    def __init__(self, cache: LocalAnnotationCache, context_id: str, context_type: str):
        if not context_id:
            raise ValidationError("context_id", "Context id is required")
        if context_type not in CONTEXT_TYPES:
            raise ValidationError("context_type", f"Unknown context type '{context_type}'")
        self._cache = cache
        self._context_id = context_id
        self._context_type = context_type

    @property
    def context_id(self) -> str:
        return self._context_id

    @property
    def context_type(self) -> str:
        return self._context_type

    def list_all(self) -> list[Comment]:
        return self._cache.load(self._context_id)

    def add(self, draft: CommentDraft) -> str:
        draft = replace(draft, context_id=self._context_id, context_type=self._context_type)
        try:
            if draft.parent_id is None:
                comment = self._cache.add_top_level(self._context_id, draft)
            else:
                comment = self._cache.add_reply(self._context_id, draft.parent_id, draft)
        except StorageError as e:
            raise WriteError(f"Failed to save comment locally: {e}") from e
        return comment.id

    def delete(self, comment_id: str) -> None:
        self.delete_many([comment_id])

    def delete_many(self, comment_ids: list[str]) -> None:
        try:
            self._cache.delete_many(self._context_id, comment_ids)
        except StorageError as e:
            raise WriteError(f"Failed to delete comment locally: {e}") from e
