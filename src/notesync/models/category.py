"""Category model for notesync."""

from dataclasses import dataclass
from typing import Optional

CATEGORY_SEPARATOR = "/"
UNCATEGORIZED_ID = 0


@dataclass
class Category:
    """A note category; nested categories use '/' in their title."""

    account_id: int
    title: str
    id: Optional[int] = None
