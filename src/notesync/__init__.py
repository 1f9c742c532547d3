"""notesync: local note store with optimistic-concurrency sync against a remote notes service."""

__version__ = "0.1.0"
