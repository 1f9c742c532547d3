"""Synchronization status lifecycle of a note."""

from enum import Enum
from typing import Optional

from notesync.exceptions import InvalidStatusTransitionError
from notesync.models.note import DBStatus


class SyncEvent(str, Enum):
    """Things that happen to a note during its life."""

    CREATE = "create"  # Note created locally, never pushed
    USER_EDIT = "user_edit"
    USER_DELETE = "user_delete"
    PUSH_OK = "push_ok"  # Remote acknowledged the local change
    REMOTE_DELETE_OK = "remote_delete_ok"  # Remote acknowledged the removal


# (current status, event) -> next status; None as a target means the row is removed
_TRANSITIONS: dict[tuple[Optional[DBStatus], SyncEvent], Optional[DBStatus]] = {
    (None, SyncEvent.CREATE): DBStatus.LOCAL_EDITED,
    (DBStatus.CLEAN, SyncEvent.USER_EDIT): DBStatus.LOCAL_EDITED,
    (DBStatus.LOCAL_EDITED, SyncEvent.USER_EDIT): DBStatus.LOCAL_EDITED,
    (DBStatus.VOID, SyncEvent.USER_EDIT): DBStatus.LOCAL_EDITED,
    (DBStatus.LOCAL_EDITED, SyncEvent.PUSH_OK): DBStatus.CLEAN,
    (DBStatus.VOID, SyncEvent.PUSH_OK): DBStatus.CLEAN,
    (DBStatus.CLEAN, SyncEvent.USER_DELETE): DBStatus.LOCAL_DELETED,
    (DBStatus.LOCAL_EDITED, SyncEvent.USER_DELETE): DBStatus.LOCAL_DELETED,
    (DBStatus.VOID, SyncEvent.USER_DELETE): DBStatus.LOCAL_DELETED,
    (DBStatus.LOCAL_DELETED, SyncEvent.REMOTE_DELETE_OK): None,
}


def can_transition(current: Optional[DBStatus], event: SyncEvent) -> bool:
    """Check whether `event` is admissible from `current`."""
    return (current, event) in _TRANSITIONS


def next_status(current: Optional[DBStatus], event: SyncEvent) -> Optional[DBStatus]:
    """Return the status a note moves to when `event` happens.

    Args:
        current: Status of the note, or None for a note that does not exist yet
        event: What happened

    Returns:
        The new status, or None if the row is to be physically removed

    Raises:
        InvalidStatusTransitionError: If the event is not admissible
    """
    try:
        return _TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidStatusTransitionError(current, event) from None
