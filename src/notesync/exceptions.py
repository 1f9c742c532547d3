"""Exceptions raised by the note store and its services."""


class NoteSyncError(Exception):
    """Base class for notesync errors."""

    pass


class StorageError(NoteSyncError):
    """A storage-level failure (I/O, corruption or constraint violation).

    Args:
        message (str): Error message
        operation (str): Name of the store operation that failed

    Attributes:
        message (str): Error message
        operation (str): Name of the store operation that failed
    """

    def __init__(self, message: str, operation: str = ""):
        self.message = message
        self.operation = operation
        super().__init__(f"{operation}: {message}" if operation else message)


class InvalidSortKeyError(NoteSyncError, ValueError):
    """Sort clause not in the allowlist."""

    pass


class InvalidStatusTransitionError(NoteSyncError):
    """A sync event is not admissible from the note's current status."""

    def __init__(self, current, event):
        self.current = current
        self.event = event
        super().__init__(f"Cannot apply {event} to a note in status {current!r}")


class NoteNotFoundError(NoteSyncError, LookupError):
    """No live note with the given id exists for the account."""

    pass
