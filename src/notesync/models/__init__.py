"""Data models for notesync."""

from notesync.models.category import Category
from notesync.models.note import DBStatus, Note, NoteWithCategory, SyncPayload, SyncWitness
from notesync.models.search import SearchMode, SortColumn, SortDirection, SortKey

__all__ = [
    "Category",
    "DBStatus",
    "Note",
    "NoteWithCategory",
    "SearchMode",
    "SortColumn",
    "SortDirection",
    "SortKey",
    "SyncPayload",
    "SyncWitness",
]
