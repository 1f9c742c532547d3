"""Unit tests for NotesAPIClient."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from notesync.services.notes_api import API_PATH, NotesAPIClient, NotesAPIError, RemoteNote

NOTE_JSON = {
    "id": 42,
    "etag": "abc",
    "modified": 1700000000,
    "title": "Groceries",
    "category": "Personal",
    "favorite": True,
    "content": "milk",
}


def make_response(status_code: int = 200, json_data=None, text: str = "") -> MagicMock:
    """Helper to create a mocked requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data
    response.content = b"" if json_data is None else b"{}"
    response.text = text
    response.reason = "Reason"
    return response


@pytest.fixture
def mock_requests():
    """Mock the requests module."""
    with patch("notesync.services.notes_api.requests") as mock:
        mock.exceptions = requests.exceptions
        yield mock


@pytest.fixture
def client():
    """Create a NotesAPIClient instance."""
    return NotesAPIClient("https://cloud.example.com/", "alice", "secret")


class TestRemoteNote:
    """Tests for parsing API payloads."""

    def test_from_json(self):
        note = RemoteNote.from_json(NOTE_JSON)

        assert note.remote_id == 42
        assert note.etag == "abc"
        assert note.category == "Personal"
        assert note.favorite is True

    def test_from_json_defaults(self):
        note = RemoteNote.from_json({"id": "7"})

        assert note.remote_id == 7
        assert note.title == ""
        assert note.favorite is False
        assert note.etag is None


class TestRequests:
    """Tests for the HTTP layer."""

    def test_base_url(self, client):
        assert client.base_url == "https://cloud.example.com" + API_PATH

    def test_list_notes(self, client, mock_requests):
        mock_requests.request.return_value = make_response(json_data=[NOTE_JSON])

        notes = client.list_notes()

        assert [n.remote_id for n in notes] == [42]
        args, kwargs = mock_requests.request.call_args
        assert args == ("GET", client.base_url + "/notes")
        assert kwargs["auth"] == ("alice", "secret")

    def test_create_note_posts_payload(self, client, mock_requests):
        mock_requests.request.return_value = make_response(json_data=NOTE_JSON)

        note = client.create_note("Groceries", "milk", "Personal", True, 1700000000)

        assert note.remote_id == 42
        args, kwargs = mock_requests.request.call_args
        assert args[0] == "POST"
        assert kwargs["json"]["category"] == "Personal"
        assert "If-Match" not in kwargs["headers"]

    def test_update_note_sends_etag(self, client, mock_requests):
        mock_requests.request.return_value = make_response(json_data=NOTE_JSON)

        client.update_note(42, "Groceries", "milk", "Personal", True, 1, etag="abc")

        args, kwargs = mock_requests.request.call_args
        assert args == ("PUT", client.base_url + "/notes/42")
        assert kwargs["headers"]["If-Match"] == '"abc"'

    def test_delete_note(self, client, mock_requests):
        mock_requests.request.return_value = make_response()

        client.delete_note(42)

        args, _ = mock_requests.request.call_args
        assert args == ("DELETE", client.base_url + "/notes/42")


class TestErrors:
    """Tests for error mapping."""

    def test_http_error_raises(self, client, mock_requests):
        mock_requests.request.return_value = make_response(404, json_data={"message": "Not found"})

        with pytest.raises(NotesAPIError, match="Not found") as exc_info:
            client.delete_note(1)

        assert exc_info.value.status_code == 404
        assert exc_info.value.is_not_found

    def test_http_error_without_json(self, client, mock_requests):
        response = make_response(500, text="boom")
        response.json.side_effect = ValueError("no json")
        mock_requests.request.return_value = response

        with pytest.raises(NotesAPIError, match="boom") as exc_info:
            client.list_notes()

        assert exc_info.value.status_code == 500

    def test_connection_error_retried_then_raised(self, client, mock_requests):
        mock_requests.request.side_effect = requests.exceptions.ConnectionError("down")

        with patch.object(NotesAPIClient._send.retry, "sleep"):
            with pytest.raises(NotesAPIError, match="Cannot reach") as exc_info:
                client.list_notes()

        assert exc_info.value.status_code == 0
        assert mock_requests.request.call_count == 3

    def test_connection_error_recovers(self, client, mock_requests):
        mock_requests.request.side_effect = [
            requests.exceptions.Timeout("slow"),
            make_response(json_data=[]),
        ]

        with patch.object(NotesAPIClient._send.retry, "sleep"):
            assert client.list_notes() == []
