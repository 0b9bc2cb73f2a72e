"""Thread-safe singleton DatabaseManager for the shared SQLite comment store."""

import json
import logging
import sqlite3
import threading
import time
import uuid
from pathlib import Path
from typing import Optional

from threadboard.core.exceptions import DatabaseError

logger = logging.getLogger("threadboard")


class DatabaseManager:
    """Thread-safe singleton DatabaseManager for SQLite operations.

    Every client pointed at the same database file shares one comment
    collection. Ids and timestamps are assigned here, never by callers.
    All public methods are protected with RLock for thread safety.
    """

    _instance: Optional['DatabaseManager'] = None
    _lock = threading.RLock()

    def __new__(cls, db_path: Optional[Path] = None):
        """Ensure only one instance exists (Singleton pattern)."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize DatabaseManager with SQLite connection.

        Args:
            db_path: Absolute path to SQLite database file.
                     Only used on first initialization.
        """
        if self._initialized:
            return

        if db_path is None:
            raise DatabaseError("db_path is required for first initialization")

        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)

            # check_same_thread=False lets Qt workers share the connection;
            # access is serialized with RLock
            self._conn = sqlite3.connect(
                str(db_path),
                check_same_thread=False
            )
            self._conn.row_factory = sqlite3.Row

            self._init_schema()

            self._initialized = True
            logger.info(f"DatabaseManager initialized with db_path: {db_path}")

        except (OSError, sqlite3.Error) as e:
            raise DatabaseError(f"Failed to initialize database: {e}")

    def _init_schema(self) -> None:
        """Create database tables if they don't exist."""
        try:
            with self._lock:
                self._conn.execute("""
                    CREATE TABLE IF NOT EXISTS comments (
                        id          TEXT PRIMARY KEY,
                        content     TEXT NOT NULL,
                        author      TEXT NOT NULL DEFAULT '',
                        author_id   TEXT NOT NULL,
                        timestamp   REAL NOT NULL,
                        parent_id   TEXT,
                        title       TEXT,
                        category    TEXT NOT NULL DEFAULT 'general',
                        tags        TEXT NOT NULL DEFAULT '[]',
                        is_pinned   INTEGER NOT NULL DEFAULT 0
                    )
                """)
                self._conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_comments_category "
                    "ON comments(category, timestamp)"
                )
                self._conn.commit()
                logger.debug("Database schema initialized")

        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to initialize schema: {e}")

    def insert_comment(self, fields: dict) -> tuple[str, float]:
        """Insert a comment, assigning its id and timestamp.

        Timestamps are strictly increasing across the whole table so that
        creation order survives clock skew between writers.

        Args:
            fields: content, author, author_id, parent_id, title, category,
                    tags (list), is_pinned.

        Returns:
            (id, timestamp) assigned to the new row.

        Raises:
            DatabaseError: If database operation fails.
        """
        comment_id = uuid.uuid4().hex
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT MAX(timestamp) AS latest FROM comments"
                ).fetchone()
                timestamp = time.time()
                if row['latest'] is not None and timestamp <= row['latest']:
                    timestamp = row['latest'] + 0.000001

                self._conn.execute(
                    """
                    INSERT INTO comments (
                        id, content, author, author_id, timestamp,
                        parent_id, title, category, tags, is_pinned
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        comment_id,
                        fields["content"],
                        fields.get("author", ""),
                        fields["author_id"],
                        timestamp,
                        fields.get("parent_id"),
                        fields.get("title"),
                        fields.get("category") or "general",
                        json.dumps(fields.get("tags") or [], ensure_ascii=False),
                        1 if fields.get("is_pinned") else 0,
                    )
                )
                self._conn.commit()
                logger.debug(f"Inserted comment: {comment_id}")
                return comment_id, timestamp

        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to insert comment: {e}")

    def fetch_comments(self, category: Optional[str] = None) -> list[dict]:
        """Fetch all comment rows, oldest first.

        Args:
            category: Restrict to one category (None = all rows).

        Returns:
            List of row dicts with decoded tags.

        Raises:
            DatabaseError: If database operation fails.
        """
        try:
            with self._lock:
                if category is None:
                    cursor = self._conn.execute(
                        "SELECT * FROM comments ORDER BY timestamp ASC"
                    )
                else:
                    cursor = self._conn.execute(
                        "SELECT * FROM comments WHERE category = ? ORDER BY timestamp ASC",
                        (category,)
                    )
                rows = cursor.fetchall()

            result = []
            for row in rows:
                data = dict(row)
                try:
                    data['tags'] = json.loads(data['tags'] or '[]')
                except json.JSONDecodeError:
                    logger.warning(f"Corrupt tags for comment {data['id']}; using []")
                    data['tags'] = []
                data['is_pinned'] = bool(data['is_pinned'])
                result.append(data)
            return result

        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to fetch comments: {e}")

    def delete_comments(self, comment_ids: list[str]) -> int:
        """Delete rows by id in a single transaction.

        Unknown ids are ignored.

        Returns:
            Number of rows actually removed.

        Raises:
            DatabaseError: If database operation fails (nothing is removed).
        """
        if not comment_ids:
            return 0
        try:
            with self._lock:
                removed = 0
                try:
                    for comment_id in comment_ids:
                        cursor = self._conn.execute(
                            "DELETE FROM comments WHERE id = ?", (comment_id,)
                        )
                        removed += cursor.rowcount
                    self._conn.commit()
                except sqlite3.Error:
                    self._conn.rollback()
                    raise
                logger.debug(f"Deleted {removed} comment(s) of {len(comment_ids)} requested")
                return removed

        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to delete comments {comment_ids}: {e}")

    def close(self) -> None:
        """Close the database connection."""
        try:
            with self._lock:
                if hasattr(self, '_conn') and self._conn:
                    self._conn.close()
                    logger.info("Database connection closed")

        except sqlite3.Error as e:
            logger.error(f"Error closing database connection: {e}")

    @classmethod
    def reset(cls) -> None:
        """Reset singleton instance (for testing).

        Closes the connection if open and clears the singleton instance.
        """
        with cls._lock:
            if cls._instance is not None:
                if hasattr(cls._instance, '_conn') and cls._instance._conn:
                    try:
                        cls._instance._conn.close()
                        logger.debug("Connection closed during reset")
                    except sqlite3.Error as e:
                        logger.error(f"Error closing connection during reset: {e}")

                cls._instance = None
                logger.debug("DatabaseManager singleton reset")
