"""Comment controller: routes user actions to a backend and owns view state."""

import logging
import threading
import time
import uuid
from typing import Callable, Optional

from threadboard.adapters.comment_backend import CommentBackend, Unsubscribe
from threadboard.core.exceptions import (
    PermissionDeniedError,
    ThreadboardError,
    ValidationError,
)
from threadboard.core.types import (
    CATEGORIES,
    Comment,
    CommentDraft,
    ThreadItem,
    UserIdentity,
    ViewState,
)
from threadboard.core.validation import validate_draft
from threadboard.services.thread_assembler import (
    ALL_CATEGORIES,
    assemble_threads,
    count_by_category,
    find_comment,
)

logger = logging.getLogger("threadboard")

StateListener = Callable[[ViewState], None]


class CommentController:
    """Orchestrates create/reply/delete for one discussion.

    Responsibilities:
    - Validate drafts and enforce one-level nesting before any write
    - Refuse deletes by non-authors without an elevated role
    - Keep the last snapshot, pending optimistic adds and filters
    - Rebuild the thread tree and notify listeners on every change

    Snapshots pushed by the backend are authoritative: they replace the
    whole view, including any pending optimistic comments. Failed writes
    are never retried; the error is recorded in the view state and
    re-raised so the caller can keep the user's draft.
    """

    def __init__(
        self,
        backend: CommentBackend,
        user: Optional[UserIdentity],
        elevated_roles: tuple = ("admin",),
        context_id: Optional[str] = None,
        context_type: Optional[str] = None,
    ):
        self._backend = backend
        self._user = user
        self._elevated_roles = frozenset(elevated_roles)
        self._context_id = context_id
        self._context_type = context_type

        self._snapshot: list[Comment] = []
        self._pending: dict[str, Comment] = {}
        self._items: tuple = ()
        self._is_loading = True
        self._error: Optional[ThreadboardError] = None

        self._search_term = ""
        self._category: Optional[str] = None
        self._tag: Optional[str] = None

        self._listeners: dict[int, StateListener] = {}
        self._next_listener = 0
        self._unsubscribe: Optional[Unsubscribe] = None
        self._started = False
        self._lock = threading.RLock()

    # --- State ---

    @property
    def backend(self) -> CommentBackend:
        return self._backend

    @property
    def user(self) -> Optional[UserIdentity]:
        return self._user

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def items(self) -> list[ThreadItem]:
        return list(self._items)

    @property
    def error(self) -> Optional[ThreadboardError]:
        return self._error

    @property
    def state(self) -> ViewState:
        with self._lock:
            return ViewState(is_loading=self._is_loading, items=self._items, error=self._error)

    @property
    def comments(self) -> list[Comment]:
        """Flat copy of the last snapshot (without pending comments)."""
        with self._lock:
            return list(self._snapshot)

    @property
    def category_counts(self) -> dict[str, int]:
        with self._lock:
            return count_by_category(self._snapshot)

    @property
    def search_term(self) -> str:
        return self._search_term

    @property
    def category(self) -> Optional[str]:
        return self._category

    @property
    def tag(self) -> Optional[str]:
        return self._tag

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Call listener with a ViewState after every change.

        Returns:
            Handle that removes the listener (idempotent).
        """
        with self._lock:
            token = self._next_listener
            self._next_listener += 1
            self._listeners[token] = listener

        def remove() -> None:
            with self._lock:
                self._listeners.pop(token, None)

        return remove

    # --- Lifecycle ---

    def start(self) -> None:
        """Subscribe to pushes (if any) and perform the first load.

        A failed first load leaves is_loading True and records the error;
        it does not raise.
        """
        if self._started:
            return
        self._started = True
        if self._backend.supports_push:
            self._unsubscribe = self._backend.subscribe(self._on_snapshot)
        try:
            self.refresh()
        except ThreadboardError:
            logger.warning("Initial comment load failed; waiting for refresh or push")

    def stop(self) -> None:
        """Detach from the backend. Safe to call more than once."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._started = False

    def refresh(self) -> None:
        """Reload the collection from the backend.

        Raises:
            ReadError: Backend unavailable (also recorded as error)
        """
        try:
            comments = self._backend.list_all()
        except ThreadboardError as e:
            self._fail(e, "load comments")
            raise
        self._replace_snapshot(comments)

    def _on_snapshot(self, comments: list[Comment]) -> None:
        logger.debug(f"Snapshot received ({len(comments)} records)")
        self._replace_snapshot(comments)

    def _replace_snapshot(self, comments: list[Comment]) -> None:
        with self._lock:
            self._snapshot = list(comments)
            self._pending.clear()
            self._is_loading = False
            self._rebuild()
        self._emit()

    # --- Mutations ---

    def add_comment(self, content: str, title: Optional[str] = None,
                    category: Optional[str] = None,
                    tags: Optional[list[str]] = None) -> str:
        """Create a top-level comment.

        Returns:
            New comment id

        Raises:
            PermissionDeniedError: No acting user
            ValidationError: Empty content, unknown category, ...
            WriteError: Backend failed
        """
        user = self._require_user()
        draft = CommentDraft(
            content=content,
            author=user.username,
            author_id=user.id,
            title=title,
            category=category,
            tags=list(tags or []),
            context_id=self._context_id,
            context_type=self._context_type,
        )
        return self._submit(draft)

    def add_reply(self, parent_id: str, content: str) -> str:
        """Reply to a top-level comment.

        Raises:
            PermissionDeniedError: No acting user
            ValidationError: Empty content, unknown parent, parent is a reply
            WriteError: Backend failed
        """
        user = self._require_user()
        draft = CommentDraft(
            content=content,
            author=user.username,
            author_id=user.id,
            parent_id=parent_id,
            context_id=self._context_id,
            context_type=self._context_type,
        )
        return self._submit(draft)

    def delete_comment(self, comment_id: str) -> None:
        """Delete a comment; a top-level comment takes its replies with it.

        The decision is made against a fresh read of the backend, so a
        comment or reply written by another client since the last snapshot
        is still checked and cascaded. Ids unknown to the backend are a no-op.

        Raises:
            PermissionDeniedError: Acting user is neither author nor elevated
            ReadError: Backend could not be read before deleting
            WriteError: Backend failed
        """
        user = self._require_user()
        self.refresh()
        with self._lock:
            target = find_comment(self._snapshot, comment_id)
            if target is None:
                logger.info(f"Delete of unknown comment {comment_id} ignored")
                return
            doomed = [comment_id]
            if not target.is_reply:
                doomed = [c.id for c in self._snapshot if c.parent_id == comment_id] + doomed

        if not self.can_delete(target):
            error = PermissionDeniedError(
                f"User {user.id} may not delete comment {comment_id}"
            )
            self._fail(error, "delete comment")
            raise error

        try:
            self._backend.delete_many(doomed)
        except ThreadboardError as e:
            self._fail(e, "delete comment")
            raise

        logger.info(f"User {user.id} deleted {len(doomed)} comment(s) starting at {comment_id}")
        self._after_write()

    def can_delete(self, comment: Comment) -> bool:
        """Whether the acting user may delete this comment."""
        if self._user is None:
            return False
        return (
            self._user.id == comment.author_id
            or self._user.role in self._elevated_roles
        )

    def _submit(self, draft: CommentDraft) -> str:
        try:
            draft = validate_draft(draft)
            if draft.parent_id is not None:
                self._check_parent(draft.parent_id)
        except ValidationError as e:
            self._fail(e, "validate comment")
            raise

        pending_id = None
        if self._unsubscribe is not None:
            pending_id = self._add_pending(draft)

        try:
            comment_id = self._backend.add(draft)
        except ThreadboardError as e:
            with self._lock:
                if pending_id is not None:
                    self._pending.pop(pending_id, None)
                    self._rebuild()
            self._fail(e, "add comment")
            raise

        with self._lock:
            if pending_id is not None:
                self._pending.pop(pending_id, None)
        self._after_write()
        return comment_id

    def _check_parent(self, parent_id: str) -> None:
        with self._lock:
            parent = find_comment(self._snapshot, parent_id)
        if parent is None:
            raise ValidationError("parent_id", f"Unknown parent comment '{parent_id}'")
        if parent.is_reply:
            raise ValidationError("parent_id", "Replies can only be added to top-level comments")

    def _add_pending(self, draft: CommentDraft) -> str:
        pending_id = f"pending_{uuid.uuid4().hex[:12]}"
        with self._lock:
            self._pending[pending_id] = Comment.from_draft(draft, pending_id, time.time())
            self._rebuild()
        self._emit()
        return pending_id

    def _after_write(self) -> None:
        """Clear the error and bring the view up to date after a successful write.

        Subscribed controllers already received the backend's snapshot; the
        others re-read the collection.
        """
        with self._lock:
            self._error = None
            subscribed = self._unsubscribe is not None
        if subscribed:
            with self._lock:
                self._rebuild()
            self._emit()
            return
        try:
            self.refresh()
        except ThreadboardError:
            logger.warning("Write succeeded but reloading comments failed")

    def _require_user(self) -> UserIdentity:
        if self._user is None:
            error = PermissionDeniedError("Sign in to comment")
            self._fail(error, "comment")
            raise error
        return self._user

    # --- Filters ---

    def set_search_term(self, term: str) -> None:
        with self._lock:
            self._search_term = term or ""
            self._rebuild()
        self._emit()

    def set_category(self, category: Optional[str]) -> None:
        """Filter by category; None or "all" shows every category.

        Raises:
            ValidationError: Unknown category
        """
        if category == ALL_CATEGORIES:
            category = None
        if category is not None and category not in CATEGORIES:
            error = ValidationError("category", f"Unknown category '{category}'")
            self._fail(error, "filter comments")
            raise error
        with self._lock:
            self._category = category
            self._rebuild()
        self._emit()

    def set_tag(self, tag: Optional[str]) -> None:
        with self._lock:
            self._tag = tag or None
            self._rebuild()
        self._emit()

    # --- Internals ---

    def _rebuild(self) -> None:
        """Re-run the assembler over snapshot + pending. Caller holds the lock."""
        self._items = tuple(assemble_threads(
            self._snapshot + list(self._pending.values()),
            search_term=self._search_term,
            category=self._category,
            tag=self._tag,
        ))

    def _fail(self, error: ThreadboardError, action: str) -> None:
        with self._lock:
            self._error = error
        logger.error(f"Failed to {action}: {error}")
        self._emit()

    def _emit(self) -> None:
        state = self.state
        with self._lock:
            listeners = list(self._listeners.items())
        for token, listener in listeners:
            try:
                listener(state)
            except Exception:
                logger.exception(f"State listener {token} failed")
