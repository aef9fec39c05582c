"""HTTP client for the knowledge-base server's REST API."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional, Union

import requests

from pandabase.session import TokenStore, tokens_from_response

DEFAULT_SERVER_URL = "http://localhost:8080"
SHORT_TIMEOUT = 10
LONG_TIMEOUT = 30
MIN_PASSWORD_LENGTH = 8


class ApiError(Exception):
    """Raised when the server cannot be reached or answers with an unexpected status."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class PandabaseClient:
    """Calls the server's API on behalf of one user."""

    def __init__(
        self,
        server_url: str = DEFAULT_SERVER_URL,
        access_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.access_token = access_token
        self.session = session if session is not None else requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.server_url}/api/v1{path}"

    def _headers(self) -> dict[str, str]:
        if self.access_token:
            return {"Authorization": f"Bearer {self.access_token}"}
        return {}

    def _request(self, method: str, path: str, timeout: Optional[int], **kwargs: Any) -> requests.Response:
        headers = self._headers()
        headers.update(kwargs.pop("headers", {}))
        return self.session.request(method, self._url(path), headers=headers, timeout=timeout, **kwargs)

    @staticmethod
    def _expect(response: requests.Response, status: int, action: str) -> None:
        if response.status_code != status:
            raise ApiError(f"{action}: {response.text}", response.status_code, response.text)

    @staticmethod
    def _json_or_empty(response: requests.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def _auth_call(self, path: str, payload: dict[str, str], status: int, action: str) -> TokenStore:
        try:
            response = self._request("POST", path, None, json=payload)
        except requests.RequestException as exc:
            raise ApiError(f"failed to connect to server: {exc}") from exc
        self._expect(response, status, action)
        tokens = tokens_from_response(response.json())
        self.access_token = tokens.access_token
        return tokens

    def login(self, email: str, password: str) -> TokenStore:
        """Log in and return the issued tokens."""
        return self._auth_call(
            "/auth/login", {"email": email, "password": password}, 200, "login failed"
        )

    def register(self, name: str, email: str, password: str) -> TokenStore:
        """Register the initial admin account and return its tokens."""
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")
        return self._auth_call(
            "/auth/register",
            {"name": name, "email": email, "password": password},
            201,
            "registration failed",
        )

    def me(self) -> dict[str, Any]:
        """Return the current user; raises ``ApiError`` with status 401 for a bad token."""
        try:
            response = self._request("GET", "/auth/me", SHORT_TIMEOUT)
        except requests.RequestException as exc:
            raise ApiError(f"failed to connect to server: {exc}") from exc
        if response.status_code == 401:
            raise ApiError("token expired or invalid", 401, response.text)
        return response.json()

    def list_namespaces(self) -> list[dict[str, Any]]:
        """Return the namespaces visible to the user."""
        response = self._request("GET", "/namespaces", SHORT_TIMEOUT)
        self._expect(response, 200, "failed to list namespaces")
        return response.json() or []

    def create_namespace(self, name: str) -> dict[str, Any]:
        """Create a namespace and return the server's answer, which holds its id."""
        response = self._request(
            "POST", "/namespaces", SHORT_TIMEOUT, json={"name": name, "description": ""}
        )
        self._expect(response, 201, "failed to create namespace")
        return self._json_or_empty(response)

    def delete_namespace(self, namespace_id: str) -> None:
        """Delete a namespace."""
        response = self._request("DELETE", f"/namespaces/{namespace_id}", SHORT_TIMEOUT)
        self._expect(response, 200, "failed to delete namespace")

    def list_documents(self, namespace_id: str, status: Optional[str] = None) -> dict[str, Any]:
        """Return a page of documents, with ``data`` and ``total`` keys."""
        params = {"status": status} if status else None
        response = self._request(
            "GET", f"/namespaces/{namespace_id}/documents", SHORT_TIMEOUT, params=params
        )
        self._expect(response, 200, "failed to list documents")
        return response.json()

    def upload_document(
        self,
        namespace_id: str,
        file_path: Union[str, "os.PathLike[str]"],
        chunk_size: int = 500,
        chunk_overlap: int = 50,
    ) -> dict[str, Any]:
        """Upload a file; returns document id, task id and status."""
        path = Path(file_path)
        with path.open("rb") as fh:
            response = self._request(
                "POST",
                f"/namespaces/{namespace_id}/documents",
                LONG_TIMEOUT,
                files={"file": (path.name, fh)},
                data={"chunk_size": str(chunk_size), "chunk_overlap": str(chunk_overlap)},
            )
        self._expect(response, 201, "upload failed")
        return self._json_or_empty(response)

    def delete_document(self, namespace_id: str, document_id: str) -> None:
        """Queue a document for deletion."""
        response = self._request(
            "DELETE", f"/namespaces/{namespace_id}/documents/{document_id}", SHORT_TIMEOUT
        )
        self._expect(response, 200, "failed to delete document")

    def download_document(
        self,
        namespace_id: str,
        document_id: str,
        output_path: Union[str, "os.PathLike[str]"],
    ) -> int:
        """Save a document's original file and return the number of bytes written."""
        response = self._request(
            "GET",
            f"/namespaces/{namespace_id}/documents/{document_id}/download",
            LONG_TIMEOUT,
            stream=True,
        )
        with response:
            self._expect(response, 200, "failed to download document")
            size = 0
            with open(output_path, "wb") as out:
                for block in response.iter_content(chunk_size=65536):
                    out.write(block)
                    size += len(block)
        return size

    def import_url(
        self,
        namespace_id: str,
        url: str,
        parser: str = "web",
        chunk_size: int = 1000,
        chunk_overlap: int = 100,
        render: bool = False,
    ) -> dict[str, Any]:
        """Queue an import of ``url``; returns document and task ids."""
        payload = {
            "url": url,
            "parser_type": parser,
            "chunk_size": chunk_size,
            "chunk_overlap": chunk_overlap,
            "render_javascript": render,
        }
        response = self._request(
            "POST", f"/namespaces/{namespace_id}/documents/import", LONG_TIMEOUT, json=payload
        )
        self._expect(response, 201, f"import failed for {url}")
        return self._json_or_empty(response)

    def search(self, namespace_id: str, query: str, top_k: int = 5) -> list[dict[str, Any]]:
        """Return the chunks most similar to ``query``."""
        payload = {"namespace_ids": [namespace_id], "query": query, "top_k": top_k}
        response = self._request("POST", "/search", SHORT_TIMEOUT, json=payload)
        self._expect(response, 200, "search failed")
        return response.json() or []