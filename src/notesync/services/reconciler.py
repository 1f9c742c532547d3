"""Reconciler: guarded local commits of remote sync results.

Both operations are single conditional UPDATE statements, so the guard and
the write happen atomically against the row. A skipped update is a normal
outcome meaning "re-reconcile on the next sync pass".
"""

import logging
from enum import Enum

from notesync.database.repository import NoteRepository
from notesync.models.note import Note, SyncPayload, SyncWitness

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    """Result of a guarded update."""

    COMMITTED = "committed"
    SKIPPED = "skipped"

    @classmethod
    def from_rowcount(cls, rowcount: int) -> "ReconcileOutcome":
        return cls.COMMITTED if rowcount > 0 else cls.SKIPPED


class Reconciler:
    """Applies push acknowledgements and pulled remote changes to local rows."""

    def __init__(self, repository: NoteRepository):
        """Initialize the reconciler.

        Args:
            repository: Note store holding the rows to reconcile
        """
        self.repository = repository

    @staticmethod
    def snapshot(note: Note) -> SyncWitness:
        """Capture the witness of a note before a remote operation."""
        return SyncWitness.from_note(note)

    def push_commit(
        self, note_id: int, payload: SyncPayload, witness: SyncWitness
    ) -> ReconcileOutcome:
        """Commit the remote acknowledgement of a pushed note.

        Skipped if content, favorite or category changed locally since the
        witness was taken; the note then stays pending and is pushed again.
        The status is not changed here.

        Args:
            note_id: Local id of the pushed note
            payload: Values the remote acknowledged
            witness: Values captured before the push

        Returns:
            COMMITTED or SKIPPED
        """
        rowcount = self.repository.update_if_not_modified_locally_during_sync(
            note_id, payload, witness
        )
        outcome = ReconcileOutcome.from_rowcount(rowcount)
        if outcome is ReconcileOutcome.SKIPPED:
            logger.debug("Push commit for note %d skipped: edited during sync", note_id)
        return outcome

    def pull_apply(self, note_id: int, payload: SyncPayload) -> ReconcileOutcome:
        """Apply a remote version to a local note without unsynced edits.

        Skipped if the note has pending local changes or if nothing tracked
        differs from the stored row.
        """
        rowcount = self.repository.update_if_not_modified_locally_and_remote_changed(
            note_id, payload
        )
        outcome = ReconcileOutcome.from_rowcount(rowcount)
        logger.debug("Pull apply for note %d: %s", note_id, outcome.value)
        return outcome
