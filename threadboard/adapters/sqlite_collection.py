"""Remote collection backed by a shared SQLite database file."""

import logging
from typing import Optional

from threadboard.adapters.remote_collection import RemoteCollection
from threadboard.core.database import DatabaseManager
from threadboard.core.exceptions import DatabaseError, ReadError, WriteError
from threadboard.core.types import Comment, CommentDraft

logger = logging.getLogger("threadboard")


class SQLiteCollection(RemoteCollection):
    """Stores forum comments in the comments table of DatabaseManager."""

    def __init__(self, db: DatabaseManager):
        self._db = db

    def fetch_all(self, category: Optional[str] = None) -> list[Comment]:
        try:
            rows = self._db.fetch_comments(category)
        except DatabaseError as e:
            raise ReadError(f"Failed to read comments: {e}") from e
        return [self._row_to_comment(row) for row in rows]

    def append(self, draft: CommentDraft) -> Comment:
        fields = {
            "content": draft.content,
            "author": draft.author,
            "author_id": draft.author_id,
            "parent_id": draft.parent_id,
            "title": draft.title,
            "category": draft.category,
            "tags": draft.tags,
            "is_pinned": draft.is_pinned,
        }
        try:
            comment_id, timestamp = self._db.insert_comment(fields)
        except DatabaseError as e:
            raise WriteError(f"Failed to add comment: {e}") from e
        return Comment.from_draft(draft, comment_id, timestamp)

    def remove(self, comment_ids: list[str]) -> None:
        try:
            self._db.delete_comments(comment_ids)
        except DatabaseError as e:
            raise WriteError(f"Failed to delete comments: {e}") from e

    @staticmethod
    def _row_to_comment(row: dict) -> Comment:
        return Comment(
            id=row['id'],
            content=row['content'],
            author=row['author'],
            author_id=row['author_id'],
            timestamp=row['timestamp'],
            parent_id=row['parent_id'],
            title=row['title'],
            category=row['category'],
            tags=list(row['tags']),
            is_pinned=row['is_pinned'],
        )
