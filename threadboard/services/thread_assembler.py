"""Builds the displayed discussion tree from a flat comment collection."""

from typing import Iterable, Optional

from threadboard.core.exceptions import ValidationError
from threadboard.core.types import CATEGORIES, Comment, ThreadItem

ALL_CATEGORIES = "all"


def assemble_threads(
    comments: Iterable[Comment],
    search_term: str = "",
    category: Optional[str] = None,
    tag: Optional[str] = None,
) -> list[ThreadItem]:
    """Turn a flat collection into top-level threads with one level of replies.

    Filters apply to top-level comments only; a reply is shown iff its
    parent is shown. Replies whose parent is missing, or whose parent is
    itself a reply, are orphans and are dropped.

    Order: pinned posts first, then newest first. Replies keep append order
    (timestamp ascending, input order on ties).

    Args:
        comments: Posts and replies in any order
        search_term: Case-insensitive substring over content, title, author
        category: One of CATEGORIES; None or "all" disables the filter
        tag: Case-insensitive exact tag match

    Returns:
        List of ThreadItem

    Raises:
        ValidationError: Unknown category
    """
    if category == ALL_CATEGORIES:
        category = None
    if category is not None and category not in CATEGORIES:
        raise ValidationError("category", f"Unknown category '{category}'")

    indexed = list(enumerate(comments))
    top_level = [(i, c) for i, c in indexed if c.parent_id is None]
    replies = [(i, c) for i, c in indexed if c.parent_id is not None]

    replies_by_parent: dict[str, list[tuple[int, Comment]]] = {}
    for i, reply in replies:
        replies_by_parent.setdefault(reply.parent_id, []).append((i, reply))

    needle = search_term.lower() if search_term else ""
    wanted_tag = tag.strip().lower() if tag else ""

    visible = [
        (i, c) for i, c in top_level
        if (category is None or c.category == category)
        and _matches_search(c, needle)
        and (not wanted_tag or wanted_tag in (t.lower() for t in c.tags))
    ]
    visible.sort(key=lambda pair: (pair[1].is_pinned, pair[1].timestamp, -pair[0]), reverse=True)

    threads = []
    for _, comment in visible:
        children = sorted(replies_by_parent.get(comment.id, []),
                          key=lambda pair: (pair[1].timestamp, pair[0]))
        threads.append(ThreadItem(comment=comment, replies=[c for _, c in children]))
    return threads


def _matches_search(comment: Comment, needle: str) -> bool:
    if not needle:
        return True
    return (
        needle in comment.content.lower()
        or needle in (comment.title or "").lower()
        or needle in comment.author.lower()
    )


def count_by_category(comments: Iterable[Comment]) -> dict[str, int]:
    """Number of top-level posts per category; every category is present."""
    counts = {category: 0 for category in CATEGORIES}
    for comment in comments:
        if comment.parent_id is None and comment.category in counts:
            counts[comment.category] += 1
    return counts


def find_comment(comments: Iterable[Comment], comment_id: str) -> Optional[Comment]:
    """Look up a comment by id in a flat collection."""
    return next((c for c in comments if c.id == comment_id), None)
