"""User-initiated note operations.

Every edit moves the note through the status machine so the next sync
pass picks it up. Store calls block on I/O; UI callers should run them off
their foreground thread.
"""

import logging
import time
from typing import Optional

from notesync.database.repository import NoteRepository
from notesync.exceptions import NoteNotFoundError
from notesync.models.note import DBStatus, Note
from notesync.services.status_machine import SyncEvent, next_status

logger = logging.getLogger(__name__)


class NoteService:
    """Local note editing for one account.

    Args:
        repository (NoteRepository): The note store
        account_id (int): Account all operations are scoped to

    Attributes:
        repository (NoteRepository): The note store
        account_id (int): Account all operations are scoped to
    """

    def __init__(self, repository: NoteRepository, account_id: int):
        self.repository = repository
        self.account_id = account_id

    def _require(self, note_id: int) -> Note:
        note = self.repository.get_note(self.account_id, note_id)
        if note is None:
            raise NoteNotFoundError(f"Note {note_id} not found")
        return note

    def create_note(
        self,
        title: str,
        content: str = "",
        category: str = "",
        favorite: bool = False,
    ) -> Note:
        """Create a note that has never been pushed."""
        note = Note(
            account_id=self.account_id,
            title=title,
            content=content,
            category_id=self.repository.get_or_create_category(self.account_id, category),
            favorite=favorite,
            modified=int(time.time()),
            status=next_status(None, SyncEvent.CREATE),
        )
        self.repository.add_note(note)
        logger.info("Created note %d", note.id)
        return note

    def edit_note(
        self,
        note_id: int,
        title: Optional[str] = None,
        content: Optional[str] = None,
        category: Optional[str] = None,
        favorite: Optional[bool] = None,
    ) -> Note:
        """Change user-visible fields and mark the note as locally edited."""
        fields = {}
        if title is not None:
            fields["title"] = title
        if content is not None:
            fields["content"] = content
        if category is not None:
            fields["category_id"] = self.repository.get_or_create_category(
                self.account_id, category
            )
        if favorite is not None:
            fields["favorite"] = favorite
        fields["modified"] = int(time.time())
        return self._apply_edit(note_id, fields)

    def toggle_favorite(self, note_id: int) -> Note:
        """Flip the favorite flag; the note is queued for push."""
        self._require(note_id)
        self.repository.toggle_favorite(note_id)
        return self._require(note_id)

    def set_category(self, note_id: int, category: str) -> Note:
        """Move a note to a category (created on demand)."""
        category_id = self.repository.get_or_create_category(self.account_id, category)
        return self._apply_edit(note_id, {"category_id": category_id})

    def _apply_edit(self, note_id: int, fields: dict) -> Note:
        # A sync pass may rewrite the row at any time; only the edited
        # columns are written, never a copy of the whole row
        self._require(note_id)
        if not self.repository.update_user_fields(note_id, **fields):
            raise NoteNotFoundError(f"Note {note_id} not found")
        return self._require(note_id)

    def delete_note(self, note_id: int) -> None:
        """Mark a note for deletion; it disappears from every read surface."""
        note = self._require(note_id)
        self.repository.update_status(
            note_id, next_status(note.status, SyncEvent.USER_DELETE)
        )
        logger.info("Note %d marked %s", note_id, DBStatus.LOCAL_DELETED.value)

    def set_scroll_y(self, note_id: int, scroll_y: int) -> None:
        """Remember the scroll offset; does not affect sync."""
        self.repository.update_scroll_y(note_id, scroll_y)
