"""
HTTP client for the notes REST API.

Every identifier coming back from the server is normalized to a string so
callers never compare 1 with "1".
"""
import logging
import os

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:5000/api"
DEFAULT_TIMEOUT = 10
HEALTH_TIMEOUT = 5
ID_FIELDS = ("id", "file_id", "folder_id")


class NoteServiceError(Exception):
    """A request failed in transport or came back with a non-2xx status."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


def ensure_string_id(value):
    return str(value)


def _normalize_entity(data):
    item = dict(data)
    for field in ID_FIELDS:
        if field not in item:
            continue
        value = item[field]
        if value is None or value == "":
            item[field] = None
        else:
            item[field] = ensure_string_id(value)
    return item


def process_api_response(data):
    """Stringify ids in one entity or a list of entities; pass anything else through."""
    if isinstance(data, list):
        return [_normalize_entity(item) if isinstance(item, dict) else item for item in data]
    if isinstance(data, dict):
        return _normalize_entity(data)
    return data


def _error_message(response):
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason
    if isinstance(payload, dict) and payload.get("error"):
        return payload["error"]
    return response.reason


class NoteService:
    def __init__(self, base_url=None, session=None, timeout=None):
        self.base_url = (base_url or os.environ.get("NOTES_API_URL") or DEFAULT_API_URL).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout or float(os.environ.get("NOTES_API_TIMEOUT", DEFAULT_TIMEOUT))

    def _request(self, method, path, payload=None, timeout=None):
        url = f"{self.base_url}{path}"
        logger.debug("Request: %s %s", method, url)
        try:
            response = self.session.request(method, url, json=payload, timeout=timeout or self.timeout)
        except requests.RequestException as exc:
            logger.error("Error unknown from %s: %s", url, exc)
            raise NoteServiceError(f"{method} {url} failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            message = _error_message(response)
            logger.error("Error %s from %s: %s", response.status_code, url, message)
            raise NoteServiceError(message, status_code=response.status_code)

        logger.debug("Response: %s from %s", response.status_code, url)
        if response.status_code == 204 or not response.content:
            return None
        return process_api_response(response.json())

    # Files

    def get_all_files(self):
        return self._request("GET", "/files") or []

    def create_file(self, name="New File", folder_id=None):
        payload = {"name": name}
        if folder_id is not None:
            payload["folder_id"] = folder_id
        return self._request("POST", "/files", payload)

    def update_file(self, file_id, file_data):
        payload = file_data if isinstance(file_data, dict) else {"name": file_data}
        return self._request("PUT", f"/files/{file_id}", payload)

    def move_file(self, file_id, folder_id):
        """Move a file into folder_id, or to the root when folder_id is None."""
        return self.update_file(file_id, {"folder_id": folder_id})

    def delete_file(self, file_id):
        return self._request("DELETE", f"/files/{file_id}")

    def update_file_order(self, file_ids):
        return self._request("PUT", "/files/reorder", {"fileIds": [ensure_string_id(i) for i in file_ids]})

    # Notes

    def get_notes(self, file_id):
        return self._request("GET", f"/files/{file_id}/notes") or []

    def create_note(self, file_id, after_note_id=None, content="", format="text"):
        return self._request(
            "POST",
            f"/files/{file_id}/notes",
            {"content": content, "format": format, "after_note_id": after_note_id},
        )

    def update_note(self, note_id, note_data):
        return self._request("PUT", f"/notes/{note_id}", note_data)

    def delete_note(self, note_id):
        return self._request("DELETE", f"/notes/{note_id}")

    def update_note_order(self, note_ids):
        return self._request("PUT", "/notes/reorder", {"noteIds": [ensure_string_id(i) for i in note_ids]})

    # Folders

    def get_folders(self):
        return self._request("GET", "/folders") or []

    def create_folder(self, name):
        return self._request("POST", "/folders", {"name": name})

    def update_folder(self, folder_id, folder_data):
        return self._request("PUT", f"/folders/{folder_id}", folder_data)

    def delete_folder(self, folder_id):
        return self._request("DELETE", f"/folders/{folder_id}")

    def check_api_health(self):
        try:
            data = self._request("GET", "/health", timeout=HEALTH_TIMEOUT)
        except NoteServiceError as exc:
            logger.error("API health check failed: %s", exc)
            return False
        return isinstance(data, dict) and data.get("status") == "ok"
