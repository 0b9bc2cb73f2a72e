"""Cloud Firestore REST adapter for the shared comment collection."""

import logging
from typing import Any, Optional

import requests

from threadboard.adapters.remote_collection import RemoteCollection
from threadboard.core.exceptions import BackendError, ReadError, WriteError
from threadboard.core.types import Comment, CommentDraft

logger = logging.getLogger("threadboard")


class FirestoreCollection(RemoteCollection):
    """Reads and writes one Firestore collection through the v1 REST API.

    Documents written by the web client (which stores a
    `timestamp` field) and documents written here (which rely on the
    server's createTime) are both readable.
    """

    API_ROOT = "https://firestore.googleapis.com/v1"
    PAGE_SIZE = 300

    def __init__(
        self,
        project_id: str,
        collection: str = "comments",
        database: str = "(default)",
        api_key: str = "",
        id_token: Optional[str] = None,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self._collection = collection
        self._api_key = api_key
        self._timeout = timeout
        self._documents_path = f"projects/{project_id}/databases/{database}/documents"
        self._base_url = f"{self.API_ROOT}/{self._documents_path}"
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        if id_token:
            self._session.headers.update({"Authorization": f"Bearer {id_token}"})

    def fetch_all(self, category: Optional[str] = None) -> list[Comment]:
        url = f"{self._base_url}/{self._collection}"
        params: dict[str, Any] = {"pageSize": self.PAGE_SIZE}

        comments = []
        while True:
            data = self._request("GET", url, ReadError, params=params)
            for document in data.get("documents", []):
                try:
                    comments.append(self._parse_document(document))
                except ValueError as e:
                    logger.warning(f"Skipping malformed document {document.get('name', '?')}: {e}")

            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params = {"pageSize": self.PAGE_SIZE, "pageToken": page_token}

        if category is not None:
            comments = [c for c in comments if c.category == category]
        comments.sort(key=lambda c: c.timestamp)
        logger.debug(f"Fetched {len(comments)} documents from '{self._collection}'")
        return comments

    def append(self, draft: CommentDraft) -> Comment:
        url = f"{self._base_url}/{self._collection}"
        body = {"fields": self._encode_draft(draft)}
        data = self._request("POST", url, WriteError, json=body)
        try:
            return self._parse_document(data)
        except ValueError as e:
            raise WriteError(f"Unexpected create response: {e}") from e

    def remove(self, comment_ids: list[str]) -> None:
        if not comment_ids:
            return
        # commit applies all writes atomically; deleting a missing document succeeds
        writes = [
            {"delete": f"{self._documents_path}/{self._collection}/{comment_id}"}
            for comment_id in comment_ids
        ]
        self._request("POST", f"{self._base_url}:commit", WriteError, json={"writes": writes})

    def _request(self, method: str, url: str, error_cls: type[BackendError],
                 params: Optional[dict] = None, json: Optional[dict] = None) -> dict:
        """Send one request; translate transport and HTTP failures into error_cls."""
        params = dict(params or {})
        if self._api_key:
            params["key"] = self._api_key

        try:
            response = self._session.request(
                method, url, params=params, json=json, timeout=self._timeout
            )
        except requests.RequestException as e:
            logger.error(f"Firestore {method} failed: {e}")
            raise error_cls(f"Firestore unreachable: {e}") from e

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.error(f"Firestore {method} returned {response.status_code}: {message}")
            raise error_cls(f"Firestore rejected {method} ({response.status_code}): {message}")

        try:
            return response.json() or {}
        except ValueError as e:
            raise error_cls(f"Firestore returned invalid JSON: {e}") from e

    @staticmethod
    def _error_message(response) -> str:
        try:
            return response.json().get("error", {}).get("message", "") or response.text
        except ValueError:
            return response.text

    @staticmethod
    def _encode_draft(draft: CommentDraft) -> dict:
        fields = {
            "content": draft.content,
            "author": draft.author,
            "authorId": draft.author_id,
            "category": draft.category or "general",
            "tags": list(draft.tags),
            "isPinned": draft.is_pinned,
        }
        if draft.parent_id is not None:
            fields["parentId"] = draft.parent_id
        if draft.title is not None:
            fields["title"] = draft.title
        return {name: encode_value(value) for name, value in fields.items()}

    @staticmethod
    def _parse_document(document: dict) -> Comment:
        name = document.get("name")
        if not name:
            raise ValueError("document has no name")
        record = {
            key: decode_value(value)
            for key, value in document.get("fields", {}).items()
        }
        record["id"] = name.rsplit("/", 1)[-1]
        if record.get("timestamp") is None:
            record["timestamp"] = document.get("createTime")
        return Comment.from_record(record)


def encode_value(value: Any) -> dict:
    """Encode a Python value as a Firestore REST Value."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": {k: encode_value(v) for k, v in value.items()}}}
    raise TypeError(f"Cannot encode {type(value).__name__} for Firestore")


def decode_value(value: dict) -> Any:
    """Decode a Firestore REST Value. Timestamps stay RFC 3339 strings."""
    if "stringValue" in value:
        return value["stringValue"]
    if "booleanValue" in value:
        return value["booleanValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "timestampValue" in value:
        return value["timestampValue"]
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return {k: decode_value(v) for k, v in value["mapValue"].get("fields", {}).items()}
    return None
