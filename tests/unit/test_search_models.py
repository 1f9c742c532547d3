"""Unit tests for sort key parsing and search term wrapping."""

import pytest

from notesync.exceptions import InvalidSortKeyError
from notesync.models.search import (
    SortColumn,
    SortDirection,
    SortKey,
    escape_like,
    like_pattern,
)


class TestSortKeyParse:
    """Tests for the sort clause allowlist."""

    def test_parse_column_and_direction(self):
        key = SortKey.parse("modified desc")
        assert key.column is SortColumn.MODIFIED
        assert key.direction is SortDirection.DESC

    def test_parse_defaults_to_ascending(self):
        assert SortKey.parse("title").direction is SortDirection.ASC

    def test_parse_is_case_insensitive(self):
        assert SortKey.parse("  Favorite  DESC ") == SortKey(
            SortColumn.FAVORITE, SortDirection.DESC
        )

    def test_str_round_trips(self):
        assert str(SortKey.parse("title asc")) == "title asc"

    def test_default_is_newest_first(self):
        assert str(SortKey()) == "modified desc"

    @pytest.mark.parametrize(
        "clause",
        [
            "",
            "content asc",
            "modified sideways",
            "modified desc, id",
            "modified desc; DROP TABLE note",
            "(SELECT 1)",
        ],
    )
    def test_rejects_anything_else(self, clause):
        with pytest.raises(InvalidSortKeyError):
            SortKey.parse(clause)

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            SortKey.parse("etag asc")


class TestLikePattern:
    """Tests for search term wrapping."""

    def test_wraps_term(self):
        assert like_pattern("milk") == "%milk%"

    def test_empty_term_matches_everything(self):
        assert like_pattern("") == "%%"

    def test_escapes_wildcards(self):
        assert escape_like("50%_off") == "50\\%\\_off"

    def test_escapes_escape_character(self):
        assert escape_like("a\\b") == "a\\\\b"
