"""Data Transfer Objects for Threadboard."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

CATEGORIES = ("general", "documents", "planning", "ideas", "questions")
DEFAULT_CATEGORY = "general"

CONTEXT_TYPES = ("document", "task")

_FRACTION_PATTERN = re.compile(r'\.(\d+)')


@dataclass
class UserIdentity:
    """Acting user as supplied by the identity collaborator (read-only)."""

    id: str
    username: str
    role: str = "viewer"             # 'admin' | 'editor' | 'viewer'


@dataclass
class CommentDraft:
    """Client-chosen fields of a comment, before the backend assigns id/timestamp."""

    content: str
    author: str = ""
    author_id: str = ""
    parent_id: Optional[str] = None
    title: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    context_id: Optional[str] = None
    context_type: Optional[str] = None   # "document" | "task"
    is_pinned: bool = False


@dataclass
class Comment:
    """A forum post, embedded comment, or reply."""

    id: str
    content: str
    author: str
    author_id: str
    timestamp: float                 # epoch seconds, assigned by the backend
    parent_id: Optional[str] = None  # None = top-level post
    title: Optional[str] = None
    category: str = DEFAULT_CATEGORY
    tags: list[str] = field(default_factory=list)
    context_id: Optional[str] = None
    context_type: Optional[str] = None
    is_pinned: bool = False

    def __post_init__(self):
        # empty optional strings mean "absent"
        self.parent_id = self.parent_id or None
        self.title = self.title or None
        self.category = self.category or DEFAULT_CATEGORY
        self.context_id = self.context_id or None
        self.context_type = self.context_type or None

    @property
    def is_reply(self) -> bool:
        return self.parent_id is not None

    @classmethod
    def from_draft(cls, draft: CommentDraft, comment_id: str, timestamp: float) -> 'Comment':
        return cls(
            id=comment_id,
            content=draft.content,
            author=draft.author,
            author_id=draft.author_id,
            timestamp=timestamp,
            parent_id=draft.parent_id,
            title=draft.title,
            category=draft.category or DEFAULT_CATEGORY,
            tags=list(draft.tags),
            context_id=draft.context_id,
            context_type=draft.context_type,
            is_pinned=draft.is_pinned,
        )

    def to_record(self) -> dict:
        """Serialize to the camelCase storage record shared with the web client."""
        record = {
            "id": self.id,
            "content": self.content,
            "author": self.author,
            "authorId": self.author_id,
            "timestamp": self.timestamp,
            "category": self.category,
            "tags": list(self.tags),
            "isPinned": self.is_pinned,
        }
        optional = {
            "parentId": self.parent_id,
            "title": self.title,
            "contextId": self.context_id,
            "contextType": self.context_type,
        }
        record.update({k: v for k, v in optional.items() if v is not None})
        return record

    @classmethod
    def from_record(cls, record: dict) -> 'Comment':
        """Build a Comment from a storage record.

        Raises:
            ValueError: If a required key is missing or has the wrong type.
        """
        if not isinstance(record, dict):
            raise ValueError(f"Comment record must be a mapping, got {type(record).__name__}")
        try:
            comment_id = record["id"]
            content = record["content"]
            author_id = record["authorId"]
            timestamp = parse_timestamp(record["timestamp"])
        except KeyError as e:
            raise ValueError(f"Comment record missing key {e}")

        if not isinstance(comment_id, str) or not isinstance(content, str):
            raise ValueError("Comment id and content must be strings")

        tags = record.get("tags") or []
        if not isinstance(tags, list):
            raise ValueError("Comment tags must be a list")

        return cls(
            id=comment_id,
            content=content,
            author=str(record.get("author", "")),
            author_id=str(author_id),
            timestamp=timestamp,
            parent_id=record.get("parentId") or None,
            title=record.get("title") or None,
            category=record.get("category") or DEFAULT_CATEGORY,
            tags=[str(t) for t in tags],
            context_id=record.get("contextId") or None,
            context_type=record.get("contextType") or None,
            is_pinned=bool(record.get("isPinned", False)),
        )


@dataclass
class ThreadItem:
    """A top-level comment with its replies nested one level."""

    comment: Comment
    replies: list[Comment] = field(default_factory=list)


@dataclass(frozen=True)
class ViewState:
    """Snapshot of what the presentation layer should render."""

    is_loading: bool = True
    items: tuple = ()                # tuple[ThreadItem, ...]
    error: Optional[Exception] = None


def parse_timestamp(value: Any) -> float:
    """Convert epoch seconds or an RFC 3339 string to epoch seconds.

    Accepts the ISO strings written by the web client ("2024-01-01T10:00:00.000Z")
    and Firestore timestamps with nanosecond precision.

    Raises:
        ValueError: If the value cannot be interpreted.
    """
    if isinstance(value, bool):
        raise ValueError("Timestamp cannot be a boolean")
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"Unsupported timestamp type: {type(value).__name__}")

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # datetime only keeps microseconds
    text = _FRACTION_PATTERN.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()
