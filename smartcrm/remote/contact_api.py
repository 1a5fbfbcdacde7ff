"""
Contact API client - REST calls against the hosted contact store.

Endpoints (relative to CRM_API_BASE_URL):
    POST   /contacts            create
    PATCH  /contacts/{id}       update
    DELETE /contacts/{id}       delete

An HTTP 409 means the server copy diverged; it raises ConflictError with the
server's current record so the sync engine can resolve it.
"""

import logging
from typing import Optional

import requests

from smartcrm import config
from smartcrm.sync.errors import ConflictError

logger = logging.getLogger("smartcrm.remote.contact_api")


class ContactAPIError(Exception):
    """Raised when the contact store rejects a call or is unreachable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ContactAPIClient:
    """Thin requests-based client for contact CRUD."""

    def __init__(self, base_url: str = None, api_key: str = None,
                 timeout: int = None, session: requests.Session = None):
        self.base_url = (base_url or config.CRM_API_BASE_URL).rstrip("/")
        self.api_key = config.CRM_API_KEY if api_key is None else api_key
        self.timeout = timeout or config.CRM_API_TIMEOUT
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _request(self, method: str, path: str, payload: dict = None):
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(
                method, url, json=payload, headers=self._headers(), timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ContactAPIError(f"{method} {path} failed: {e}") from e

        if resp.status_code == 409:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            server_data = body.get("current", body) if isinstance(body, dict) else {}
            raise ConflictError(f"{method} {path} conflicted with server copy", server_data)

        if resp.status_code >= 400:
            raise ContactAPIError(
                f"{method} {path} returned HTTP {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return None

    def create_contact(self, data: dict) -> dict:
        logger.info("Creating contact")
        return self._request("POST", "/contacts", data)

    def update_contact(self, contact_id: str, updates: dict) -> dict:
        if not updates:
            raise ValueError("No updates provided")
        logger.info("Updating contact %s (%s)", contact_id, ", ".join(sorted(updates)))
        return self._request("PATCH", f"/contacts/{contact_id}", updates)

    def delete_contact(self, contact_id: str):
        logger.info("Deleting contact %s", contact_id)
        self._request("DELETE", f"/contacts/{contact_id}")
