"""Validation of comment drafts before they reach a backend."""

from dataclasses import replace
from typing import Optional

from threadboard.core.exceptions import ValidationError
from threadboard.core.types import (
    CATEGORIES,
    CONTEXT_TYPES,
    DEFAULT_CATEGORY,
    CommentDraft,
)


def validate_draft(draft: CommentDraft, require_category: bool = True) -> CommentDraft:
    """Validate and normalize a candidate comment.

    Checks run in a fixed order and the first failure wins:
    content, author_id, category, context_type, context_id.

    Args:
        draft: Draft as entered by the user.
        require_category: Default a missing category to "general". When False
            a missing category stays None (the backend applies its default).

    Returns:
        A new draft with trimmed content/title and cleaned tags.

    Raises:
        ValidationError: Naming the first failing field.
    """
    content = (draft.content or "").strip()
    if not content:
        raise ValidationError("content", "Comment cannot be empty")

    author_id = (draft.author_id or "").strip()
    if not author_id:
        raise ValidationError("author_id", "Anonymous comments are not allowed")

    category = draft.category
    if category is None or category == "":
        category = DEFAULT_CATEGORY if require_category else None
    elif category not in CATEGORIES:
        raise ValidationError("category", f"Unknown category '{category}'")

    if draft.context_type is not None and draft.context_type not in CONTEXT_TYPES:
        raise ValidationError("context_type", f"Unknown context type '{draft.context_type}'")
    if draft.context_type is not None and not draft.context_id:
        raise ValidationError("context_id", "Context id is required for embedded comments")

    title = (draft.title or "").strip() or None

    return replace(
        draft,
        content=content,
        author_id=author_id,
        title=title,
        category=category,
        tags=normalize_tags(draft.tags),
    )


def normalize_tags(tags: Optional[list]) -> list[str]:
    """Strip tags, drop blanks and case-insensitive duplicates, keep first-seen order."""
    seen = set()
    result = []
    for tag in tags or []:
        cleaned = str(tag).strip()
        key = cleaned.lower()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        result.append(cleaned)
    return result
