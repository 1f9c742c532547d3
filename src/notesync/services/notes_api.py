"""Client for the remote notes service (Nextcloud Notes REST API v1).

Uses the REST API directly via the requests library.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

API_PATH = "/index.php/apps/notes/api/v1"


class NotesAPIError(Exception):
    """Exception raised for remote notes API errors.

    Args:
        message (str): Error message
        status_code (int): HTTP status code, 0 if no response was received

    Attributes:
        message (str): Error message
        status_code (int): HTTP status code, 0 if no response was received
    """

    def __init__(self, message: str, status_code: int = 0):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class _TransientError(Exception):
    """Connection-level failure worth retrying immediately."""

    pass


@dataclass
class RemoteNote:
    """A note as returned by the remote service."""

    remote_id: int
    title: str
    content: str
    category: str
    favorite: bool
    modified: int
    etag: Optional[str] = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "RemoteNote":
        return cls(
            remote_id=int(data["id"]),
            title=data.get("title", ""),
            content=data.get("content", ""),
            category=data.get("category", ""),
            favorite=bool(data.get("favorite", False)),
            modified=int(data.get("modified", 0)),
            etag=data.get("etag"),
        )


class NotesAPIClient:
    """Service for reading and writing notes on the remote server.

    Args:
        base_url (str): Server URL, e.g. https://cloud.example.com
        username (str): Account user name
        password (str): Account password or app token
        timeout (float): Request timeout in seconds

    Attributes:
        base_url (str): Notes API base URL
        timeout (float): Request timeout in seconds
    """

    def __init__(self, base_url: str, username: str, password: str, timeout: float = 30):
        self.base_url = base_url.rstrip("/") + API_PATH
        self.timeout = timeout
        self._auth = (username, password)

    def _get_headers(self, etag: Optional[str] = None) -> dict[str, str]:
        """Get standard headers for API requests."""
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if etag:
            headers["If-Match"] = f'"{etag}"'
        return headers

    def _handle_response(self, response: requests.Response) -> Any:
        """Handle API response and raise NotesAPIError on failure."""
        if response.status_code >= 400:
            try:
                message = response.json().get("message", "") or response.reason
            except ValueError:
                message = response.text or response.reason or "Unknown error"
            raise NotesAPIError(message=message, status_code=response.status_code)
        if not response.content:
            return None
        return response.json()

    @retry(
        retry=retry_if_exception_type(_TransientError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            return requests.request(
                method, url, auth=self._auth, timeout=self.timeout, **kwargs
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise _TransientError(str(e)) from e

    def _request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[dict[str, Any]] = None,
        etag: Optional[str] = None,
    ) -> Any:
        url = f"{self.base_url}{endpoint}"
        try:
            response = self._send(method, url, headers=self._get_headers(etag), json=payload)
        except _TransientError as e:
            raise NotesAPIError(f"Cannot reach notes server: {e}") from e
        except requests.exceptions.RequestException as e:
            raise NotesAPIError(f"Request failed: {e}") from e
        return self._handle_response(response)

    @staticmethod
    def _note_payload(
        title: str, content: str, category: str, favorite: bool, modified: int
    ) -> dict[str, Any]:
        return {
            "title": title,
            "content": content,
            "category": category,
            "favorite": favorite,
            "modified": modified,
        }

    def list_notes(self) -> list[RemoteNote]:
        """Fetch all notes of the account."""
        data = self._request("GET", "/notes") or []
        return [RemoteNote.from_json(item) for item in data]

    def create_note(
        self, title: str, content: str, category: str, favorite: bool, modified: int
    ) -> RemoteNote:
        """Create a note on the server and return it with its assigned id."""
        data = self._request(
            "POST",
            "/notes",
            self._note_payload(title, content, category, favorite, modified),
        )
        return RemoteNote.from_json(data)

    def update_note(
        self,
        remote_id: int,
        title: str,
        content: str,
        category: str,
        favorite: bool,
        modified: int,
        etag: Optional[str] = None,
    ) -> RemoteNote:
        """Update an existing note.

        Raises:
            NotesAPIError: status 404 if the note no longer exists remotely,
                412 if the remote etag no longer matches
        """
        data = self._request(
            "PUT",
            f"/notes/{remote_id}",
            self._note_payload(title, content, category, favorite, modified),
            etag=etag,
        )
        return RemoteNote.from_json(data)

    def delete_note(self, remote_id: int) -> None:
        """Delete a note on the server."""
        self._request("DELETE", f"/notes/{remote_id}")
