"""Tests for draft validation and the Comment record model."""

import pytest

from threadboard.core.exceptions import ValidationError
from threadboard.core.types import Comment, CommentDraft, parse_timestamp
from threadboard.core.validation import normalize_tags, validate_draft


def make_draft(**kwargs) -> CommentDraft:
    """Helper to create test CommentDraft."""
    defaults = {
        "content": "Hello team",
        "author": "alice",
        "author_id": "u-alice",
    }
    defaults.update(kwargs)
    return CommentDraft(**defaults)


class TestValidateDraft:
    def test_trims_content_and_title(self):
        draft = validate_draft(make_draft(content="  Hello  ", title="  Agenda "))
        assert draft.content == "Hello"
        assert draft.title == "Agenda"

    def test_blank_title_becomes_none(self):
        assert validate_draft(make_draft(title="   ")).title is None

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_empty_content_rejected(self, content):
        with pytest.raises(ValidationError) as exc:
            validate_draft(make_draft(content=content))
        assert exc.value.field == "content"

    def test_missing_author_id_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_draft(make_draft(author_id="  "))
        assert exc.value.field == "author_id"

    def test_first_failing_field_is_reported(self):
        with pytest.raises(ValidationError) as exc:
            validate_draft(make_draft(content="", author_id="", category="bogus"))
        assert exc.value.field == "content"

    def test_category_defaults_to_general(self):
        assert validate_draft(make_draft()).category == "general"

    def test_category_left_empty_when_not_required(self):
        assert validate_draft(make_draft(), require_category=False).category is None

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_draft(make_draft(category="random"))
        assert exc.value.field == "category"

    def test_known_category_kept(self):
        assert validate_draft(make_draft(category="ideas")).category == "ideas"

    def test_unknown_context_type_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_draft(make_draft(context_id="doc-1", context_type="sheet"))
        assert exc.value.field == "context_type"

    def test_context_type_without_id_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_draft(make_draft(context_type="task"))
        assert exc.value.field == "context_id"

    def test_input_draft_not_modified(self):
        draft = make_draft(content="  x  ")
        validate_draft(draft)
        assert draft.content == "  x  "


class TestNormalizeTags:
    def test_strips_and_drops_blanks(self):
        assert normalize_tags([" urgent ", "", "  "]) == ["urgent"]

    def test_drops_case_insensitive_duplicates_keeping_first(self):
        assert normalize_tags(["Bug", "ui", "bug", "UI"]) == ["Bug", "ui"]

    def test_none_gives_empty_list(self):
        assert normalize_tags(None) == []


class TestCommentRecords:
    def test_record_uses_camel_case_keys(self):
        comment = Comment(
            id="r1", content="Yes", author="bob", author_id="u-bob",
            timestamp=1700000100.0, parent_id="p1",
        )
        record = comment.to_record()
        assert record["authorId"] == "u-bob"
        assert record["parentId"] == "p1"
        assert "title" not in record
        assert "contextId" not in record

    def test_record_round_trip(self):
        comment = Comment(
            id="c1", content="Looks good", author="alice", author_id="u-alice",
            timestamp=1700000000.5, title="Review", category="documents",
            tags=["review", "q3"], context_id="doc-9", context_type="document",
            is_pinned=True,
        )
        assert Comment.from_record(comment.to_record()) == comment

    def test_empty_optional_strings_normalized(self):
        comment = Comment(
            id="c1", content="x", author="alice", author_id="u-alice",
            timestamp=1.0, parent_id="", title="", category="", context_id="", context_type="",
        )
        assert comment.parent_id is None
        assert comment.title is None
        assert comment.category == "general"
        assert comment.context_id is None
        assert comment.context_type is None
        assert Comment.from_record(comment.to_record()) == comment

    def test_from_record_accepts_iso_timestamp(self):
        record = {
            "id": "comment_1", "content": "Hi", "author": "alice",
            "authorId": "u-alice", "timestamp": "2023-11-14T22:13:20.000Z",
        }
        comment = Comment.from_record(record)
        assert comment.timestamp == pytest.approx(1700000000.0)
        assert comment.category == "general"
        assert comment.tags == []

    def test_from_record_missing_key_raises(self):
        with pytest.raises(ValueError):
            Comment.from_record({"id": "x", "content": "y"})

    def test_from_record_rejects_non_mapping(self):
        with pytest.raises(ValueError):
            Comment.from_record(["not", "a", "dict"])


class TestParseTimestamp:
    def test_numbers_pass_through(self):
        assert parse_timestamp(5) == 5.0
        assert parse_timestamp(1.25) == 1.25

    def test_nanosecond_precision_is_truncated(self):
        value = parse_timestamp("2023-11-14T22:13:20.123456789Z")
        assert value == pytest.approx(1700000000.123456)

    def test_offset_is_respected(self):
        assert parse_timestamp("2023-11-15T00:13:20+02:00") == pytest.approx(1700000000.0)

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")

    def test_bool_rejected(self):
        with pytest.raises(ValueError):
            parse_timestamp(True)
