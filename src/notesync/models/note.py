"""Note model for notesync."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class DBStatus(str, Enum):
    """Synchronization state of a locally stored note."""

    CLEAN = ""  # In sync with the last remote acknowledgement
    LOCAL_EDITED = "LOCAL_EDITED"  # Pending push
    LOCAL_DELETED = "LOCAL_DELETED"  # Pending remote removal
    VOID = "VOID"  # Legacy pending marker, pushed like LOCAL_EDITED

    @property
    def is_pending(self) -> bool:
        """True if the note has local changes the remote has not seen."""
        return self is not DBStatus.CLEAN


@dataclass
class Note:
    """A note as stored locally for one account."""

    account_id: int
    title: str = ""
    content: str = ""

    # Remote identity, assigned after the first successful push
    remote_id: Optional[int] = None
    etag: Optional[str] = None
    modified: int = 0

    category_id: int = 0  # 0 = uncategorized
    favorite: bool = False

    # Local database metadata
    id: Optional[int] = None
    status: DBStatus = DBStatus.LOCAL_EDITED
    scroll_y: int = 0

    def __post_init__(self) -> None:
        """Validate and convert fields after initialization."""
        if isinstance(self.status, str) and not isinstance(self.status, DBStatus):
            self.status = DBStatus(self.status)
        if self.remote_id == 0:
            self.remote_id = None

    @property
    def is_pushed(self) -> bool:
        """True once the remote service has assigned an id."""
        return self.remote_id is not None


@dataclass
class NoteWithCategory:
    """Search projection row: a note joined with its category title."""

    note: Note
    category: str = ""


@dataclass(frozen=True)
class SyncWitness:
    """User-visible column values captured before a remote operation.

    When the result of the remote call is later committed locally, the
    stored row must still carry exactly these values, otherwise the user
    edited the note during the round trip and the commit is skipped.
    """

    content: str
    favorite: bool
    category_id: int

    @classmethod
    def from_note(cls, note: Note) -> "SyncWitness":
        return cls(
            content=note.content,
            favorite=note.favorite,
            category_id=note.category_id,
        )


@dataclass(frozen=True)
class SyncPayload:
    """Remote-acknowledged note values to reconcile into a local row."""

    title: str
    content: str
    favorite: bool
    category_id: int
    modified: int
    etag: Optional[str]
