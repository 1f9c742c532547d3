"""Sync driver: pushes local changes, then pulls remote changes.

For every pending note the driver snapshots a witness, performs the remote
call and hands the acknowledged values plus the witness to the reconciler.
A whole pass is retried with exponential backoff on transient failures.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from notesync.database.repository import NoteRepository
from notesync.exceptions import StorageError
from notesync.models.note import DBStatus, Note, SyncPayload
from notesync.services.notes_api import NotesAPIClient, NotesAPIError, RemoteNote
from notesync.services.reconciler import ReconcileOutcome, Reconciler
from notesync.services.status_machine import SyncEvent, next_status

logger = logging.getLogger(__name__)

HTTP_PRECONDITION_FAILED = 412
HTTP_TOO_MANY_REQUESTS = 429


@dataclass
class SyncResult:
    """Counters of one sync pass."""

    pushed: int = 0
    push_skipped: int = 0
    deleted_remote: int = 0
    pulled: int = 0
    pull_skipped: int = 0
    created_local: int = 0
    removed_local: int = 0

    def __str__(self) -> str:
        return (
            f"pushed={self.pushed} push_skipped={self.push_skipped} "
            f"deleted_remote={self.deleted_remote} pulled={self.pulled} "
            f"pull_skipped={self.pull_skipped} created_local={self.created_local} "
            f"removed_local={self.removed_local}"
        )


def is_retryable(error: BaseException) -> bool:
    """Storage failures and server-side or connection API failures are retried."""
    if isinstance(error, StorageError):
        return True
    if isinstance(error, NotesAPIError):
        return (
            error.status_code == 0
            or error.status_code == HTTP_TOO_MANY_REQUESTS
            or error.status_code >= 500
        )
    return False


class SyncDriver:
    """Synchronizes one account's notes with the remote service.

    Args:
        repository (NoteRepository): Local note store
        client (NotesAPIClient): Remote notes service client
        account_id (int): Account to synchronize
        max_attempts (int): Attempts per sync pass before giving up
        backoff_min (float): First backoff delay in seconds
        backoff_max (float): Upper bound of the backoff delay in seconds
    """

    def __init__(
        self,
        repository: NoteRepository,
        client: NotesAPIClient,
        account_id: int,
        max_attempts: int = 5,
        backoff_min: float = 1.0,
        backoff_max: float = 60.0,
    ):
        self.repository = repository
        self.client = client
        self.account_id = account_id
        self.reconciler = Reconciler(repository)
        self.max_attempts = max_attempts
        self.backoff_min = backoff_min
        self.backoff_max = backoff_max

    def synchronize(self) -> SyncResult:
        """Run push then pull, retrying the pass with exponential backoff.

        Raises:
            NotesAPIError: If the remote keeps failing or rejects a request
            StorageError: If the local store keeps failing
        """
        retrying = Retrying(
            retry=retry_if_exception(is_retryable),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.backoff_min, min=self.backoff_min, max=self.backoff_max
            ),
            before_sleep=self._log_retry,
            reraise=True,
        )
        return retrying(self._synchronize_once)

    def _synchronize_once(self) -> SyncResult:
        result = SyncResult()
        self.push_local_changes(result)
        self.pull_remote_changes(result)
        logger.info("Sync of account %d finished: %s", self.account_id, result)
        return result

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Sync attempt %d failed (%s), retrying",
            retry_state.attempt_number,
            error,
        )

    # ==================== Push ====================

    def push_local_changes(self, result: Optional[SyncResult] = None) -> SyncResult:
        """Push every note with a pending status to the remote."""
        result = result or SyncResult()
        for note in self.repository.get_local_modified_notes(self.account_id):
            if note.status is DBStatus.LOCAL_DELETED:
                self._push_deletion(note, result)
            else:
                self._push_edit(note, result)
        return result

    def _push_deletion(self, note: Note, result: SyncResult) -> None:
        if note.is_pushed:
            try:
                self.client.delete_note(note.remote_id)
            except NotesAPIError as e:
                if not e.is_not_found:
                    raise
                logger.debug("Remote note %d was already gone", note.remote_id)

        result.deleted_remote += self.repository.delete_by_id_and_status(
            note.id, DBStatus.LOCAL_DELETED
        )

    def _push_edit(self, note: Note, result: SyncResult) -> None:
        witness = self.reconciler.snapshot(note)
        category = self.repository.get_category_title(self.account_id, note.category_id) or ""

        remote = None
        if note.is_pushed:
            remote = self._update_remote(note, category)
        if remote is None:
            remote = self.client.create_note(
                note.title, note.content, category, note.favorite, note.modified
            )
        if remote.remote_id != note.remote_id:
            self.repository.update_remote_id(note.id, remote.remote_id)

        outcome = self.reconciler.push_commit(note.id, self._payload(remote), witness)
        if outcome is ReconcileOutcome.COMMITTED:
            self.repository.update_status(note.id, next_status(note.status, SyncEvent.PUSH_OK))
            result.pushed += 1
        else:
            result.push_skipped += 1

    def _update_remote(self, note: Note, category: str) -> Optional[RemoteNote]:
        """Update the remote copy; None if it no longer exists there."""
        args = (note.remote_id, note.title, note.content, category, note.favorite, note.modified)
        try:
            return self.client.update_note(*args, etag=note.etag)
        except NotesAPIError as e:
            if e.is_not_found:
                logger.info("Remote note %d vanished, re-creating it", note.remote_id)
                return None
            if e.status_code != HTTP_PRECONDITION_FAILED:
                raise
        # Remote changed concurrently; the pending local edit wins
        logger.warning("Remote note %d changed concurrently, overwriting", note.remote_id)
        return self.client.update_note(*args)

    # ==================== Pull ====================

    def pull_remote_changes(self, result: Optional[SyncResult] = None) -> SyncResult:
        """Apply remote changes to clean local notes and mirror remote deletions."""
        result = result or SyncResult()
        remote_notes = self.client.list_notes()

        local_ids = {
            remote_id: local_id
            for local_id, remote_id in self.repository.get_remote_id_and_id(self.account_id)
            if remote_id is not None
        }
        pending_deletion = {
            note.remote_id
            for note in self.repository.get_local_modified_notes(self.account_id)
            if note.status is DBStatus.LOCAL_DELETED and note.remote_id is not None
        }

        seen: set[int] = set()
        for remote in remote_notes:
            seen.add(remote.remote_id)
            if remote.remote_id in pending_deletion:
                continue

            payload = self._payload(remote)
            local_id = local_ids.get(remote.remote_id)
            if local_id is None:
                self.repository.add_note(self._new_local_note(remote, payload))
                result.created_local += 1
            elif self.reconciler.pull_apply(local_id, payload) is ReconcileOutcome.COMMITTED:
                result.pulled += 1
            else:
                result.pull_skipped += 1

        for remote_id, local_id in local_ids.items():
            if remote_id not in seen:
                # Notes with pending local edits survive and are re-created on push
                result.removed_local += self.repository.delete_by_id_and_status(
                    local_id, DBStatus.CLEAN
                )
        return result

    # ==================== Helper Methods ====================

    def _payload(self, remote: RemoteNote) -> SyncPayload:
        return SyncPayload(
            title=remote.title,
            content=remote.content,
            favorite=remote.favorite,
            category_id=self.repository.get_or_create_category(
                self.account_id, remote.category
            ),
            modified=remote.modified,
            etag=remote.etag,
        )

    def _new_local_note(self, remote: RemoteNote, payload: SyncPayload) -> Note:
        return Note(
            account_id=self.account_id,
            remote_id=remote.remote_id,
            title=payload.title,
            content=payload.content,
            category_id=payload.category_id,
            favorite=payload.favorite,
            modified=payload.modified,
            etag=payload.etag,
            status=DBStatus.CLEAN,
        )
