"""Search modes and the sort key allowlist."""

from dataclasses import dataclass
from enum import Enum

from notesync.exceptions import InvalidSortKeyError

LIKE_ESCAPE = "\\"


class SearchMode(str, Enum):
    """Filter applied by a note search."""

    CATEGORY = "category"  # Category title equals C or starts with C/
    FAVORITES = "favorites"
    UNCATEGORIZED = "uncategorized"  # Category title is empty
    ALL = "all"


class SortColumn(str, Enum):
    """Columns a search may be ordered by."""

    MODIFIED = "modified"
    TITLE = "title"
    FAVORITE = "favorite"


class SortDirection(str, Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortKey:
    """A validated ordering clause of the form '<column> <direction>'."""

    column: SortColumn = SortColumn.MODIFIED
    direction: SortDirection = SortDirection.DESC

    @classmethod
    def parse(cls, clause: str) -> "SortKey":
        """Parse a sort clause, accepting only allowlisted columns and directions.

        Args:
            clause: e.g. "modified desc" or "title" (direction defaults to asc)

        Returns:
            The validated SortKey

        Raises:
            InvalidSortKeyError: If the column or direction is not allowed
        """
        parts = clause.strip().lower().split()
        if not parts or len(parts) > 2:
            raise InvalidSortKeyError(f"Invalid sort clause: {clause!r}")

        try:
            column = SortColumn(parts[0])
        except ValueError:
            raise InvalidSortKeyError(f"Unknown sort column: {parts[0]!r}") from None

        direction = SortDirection.ASC
        if len(parts) == 2:
            try:
                direction = SortDirection(parts[1])
            except ValueError:
                raise InvalidSortKeyError(
                    f"Unknown sort direction: {parts[1]!r}"
                ) from None

        return cls(column=column, direction=direction)

    def __str__(self) -> str:
        return f"{self.column.value} {self.direction.value}"


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def like_pattern(term: str) -> str:
    """Wrap a user search term for substring matching."""
    return f"%{escape_like(term)}%"
