"""Pytest fixtures for notesync tests."""

import tempfile
from pathlib import Path

import pytest

from notesync.database.repository import NoteRepository


@pytest.fixture
def temp_db_path():
    """Provide a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def repository(temp_db_path):
    """Provide a repository with a temporary database."""
    return NoteRepository(f"sqlite:///{temp_db_path}")
