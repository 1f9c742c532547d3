"""Unit tests for NoteService."""

import pytest

from notesync.exceptions import NoteNotFoundError
from notesync.models.note import DBStatus, SyncPayload, SyncWitness
from notesync.services.note_service import NoteService

ACCOUNT = 1


@pytest.fixture
def service(repository):
    """Create a NoteService for a single account."""
    return NoteService(repository, ACCOUNT)


def mark_clean(repository, note_id: int) -> None:
    """Simulate a completed push."""
    repository.update_status(note_id, DBStatus.CLEAN)


class TestCreateNote:
    """Tests for creating notes."""

    def test_new_note_is_pending(self, service, repository):
        note = service.create_note("Plan", "draft")

        stored = repository.get_note(ACCOUNT, note.id)
        assert stored.title == "Plan"
        assert stored.status is DBStatus.LOCAL_EDITED
        assert stored.remote_id is None
        assert stored.modified > 0

    def test_category_created_on_demand(self, service, repository):
        note = service.create_note("Plan", category="Work/Q3")

        assert repository.get_category_title(ACCOUNT, note.category_id) == "Work/Q3"

    def test_uncategorized_by_default(self, service):
        assert service.create_note("Plan").category_id == 0


class TestEditNote:
    """Tests for editing notes."""

    def test_edit_marks_clean_note_edited(self, service, repository):
        note = service.create_note("Plan", "draft")
        mark_clean(repository, note.id)

        service.edit_note(note.id, content="final")

        stored = repository.get_note(ACCOUNT, note.id)
        assert stored.content == "final"
        assert stored.title == "Plan"
        assert stored.status is DBStatus.LOCAL_EDITED

    def test_edit_changes_category_and_favorite(self, service, repository):
        note = service.create_note("Plan")

        service.edit_note(note.id, category="Work", favorite=True)

        stored = repository.get_note(ACCOUNT, note.id)
        assert repository.get_category_title(ACCOUNT, stored.category_id) == "Work"
        assert stored.favorite is True

    def test_edit_missing_note(self, service):
        with pytest.raises(NoteNotFoundError):
            service.edit_note(999, content="x")

    def test_edit_deleted_note_rejected(self, service):
        note = service.create_note("Plan")
        service.delete_note(note.id)

        with pytest.raises(NoteNotFoundError):
            service.edit_note(note.id, content="x")


class TestFavoriteAndCategory:
    """Tests for single-field changes."""

    def test_toggle_favorite(self, service, repository):
        note = service.create_note("Plan")
        mark_clean(repository, note.id)

        toggled = service.toggle_favorite(note.id)

        assert toggled.favorite is True
        assert toggled.status is DBStatus.LOCAL_EDITED

    def test_set_category(self, service, repository):
        note = service.create_note("Plan")
        mark_clean(repository, note.id)

        moved = service.set_category(note.id, "Archive")

        assert repository.get_category_title(ACCOUNT, moved.category_id) == "Archive"
        assert moved.status is DBStatus.LOCAL_EDITED

    def test_set_scroll_y_keeps_status(self, service, repository):
        note = service.create_note("Plan")
        mark_clean(repository, note.id)

        service.set_scroll_y(note.id, 250)

        stored = repository.get_note(ACCOUNT, note.id)
        assert stored.scroll_y == 250
        assert stored.status is DBStatus.CLEAN


class TestDeleteNote:
    """Tests for deleting notes."""

    def test_delete_hides_note(self, service, repository):
        note = service.create_note("Plan")

        service.delete_note(note.id)

        assert repository.get_note(ACCOUNT, note.id) is None
        pending = repository.get_local_modified_notes(ACCOUNT)
        assert [(n.id, n.status) for n in pending] == [(note.id, DBStatus.LOCAL_DELETED)]

    def test_delete_missing_note(self, service):
        with pytest.raises(NoteNotFoundError):
            service.delete_note(42)

    def test_other_account_not_visible(self, repository):
        note = NoteService(repository, 2).create_note("Theirs")

        with pytest.raises(NoteNotFoundError):
            NoteService(repository, ACCOUNT).delete_note(note.id)


class TestSingleStatementEdits:
    """Edits write only their own columns, in one statement."""

    def test_set_category_commits_once(self, service, repository):
        note = service.create_note("Plan")
        mark_clean(repository, note.id)
        repository.get_or_create_category(ACCOUNT, "Archive")
        note_writes = []
        repository.observer.subscribe("note", lambda: note_writes.append(1))

        service.set_category(note.id, "Archive")

        assert len(note_writes) == 1
        assert repository.get_note(ACCOUNT, note.id).status is DBStatus.LOCAL_EDITED

    def test_edit_keeps_sync_columns_written_meanwhile(self, service, repository, monkeypatch):
        note = service.create_note("Plan", "draft")
        read_note = service._require

        def require_then_sync(note_id):
            found = read_note(note_id)
            # Sync completes after the service has read the row
            repository.update_remote_id(note_id, 100)
            repository.update_status(note_id, DBStatus.CLEAN)
            repository.update_if_not_modified_locally_during_sync(
                note_id,
                SyncPayload("Plan", "draft", False, 0, 5, "etag-1"),
                SyncWitness("draft", False, 0),
            )
            monkeypatch.setattr(service, "_require", read_note)
            return found

        monkeypatch.setattr(service, "_require", require_then_sync)
        edited = service.edit_note(note.id, content="v2")

        assert edited.content == "v2"
        assert edited.remote_id == 100
        assert edited.etag == "etag-1"
        assert edited.status is DBStatus.LOCAL_EDITED
