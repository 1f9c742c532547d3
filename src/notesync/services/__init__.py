"""Services for notesync."""

from notesync.services.note_service import NoteService
from notesync.services.notes_api import NotesAPIClient, NotesAPIError, RemoteNote
from notesync.services.reconciler import ReconcileOutcome, Reconciler
from notesync.services.status_machine import SyncEvent, can_transition, next_status
from notesync.services.sync_driver import SyncDriver, SyncResult

__all__ = [
    "NoteService",
    "NotesAPIClient",
    "NotesAPIError",
    "ReconcileOutcome",
    "Reconciler",
    "RemoteNote",
    "SyncDriver",
    "SyncEvent",
    "SyncResult",
    "can_transition",
    "next_status",
]
