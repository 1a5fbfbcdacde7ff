"""
Unit tests for the contact API client. All HTTP goes through a mocked session.
"""

import os
import sys
from unittest.mock import MagicMock

import pytest
import requests

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../.."))

from smartcrm.remote.contact_api import ContactAPIClient, ContactAPIError
from smartcrm.sync.errors import ConflictError


def _response(status, body=None, text=""):
    resp = MagicMock(status_code=status, text=text)
    resp.content = b"x" if body is not None else b""
    resp.json.return_value = body
    return resp


def _client(resp=None, error=None, api_key="anon-key"):
    session = MagicMock()
    if error is not None:
        session.request.side_effect = error
    else:
        session.request.return_value = resp
    return ContactAPIClient(base_url="http://crm.local/api/", api_key=api_key,
                            timeout=5, session=session), session


def test_create_posts_payload_with_auth():
    client, session = _client(_response(201, {"id": "c1", "firstName": "Jane"}))

    created = client.create_contact({"firstName": "Jane"})

    assert created["id"] == "c1"
    method, url = session.request.call_args[0]
    kwargs = session.request.call_args[1]
    assert (method, url) == ("POST", "http://crm.local/api/contacts")
    assert kwargs["json"] == {"firstName": "Jane"}
    assert kwargs["headers"]["Authorization"] == "Bearer anon-key"
    assert kwargs["timeout"] == 5


def test_no_auth_header_without_key():
    client, session = _client(_response(200, {}), api_key="")
    client.create_contact({"firstName": "Jane"})
    assert "Authorization" not in session.request.call_args[1]["headers"]


def test_update_patches_contact():
    client, session = _client(_response(200, {"id": "c1", "title": "VP"}))
    client.update_contact("c1", {"title": "VP"})
    assert session.request.call_args[0] == ("PATCH", "http://crm.local/api/contacts/c1")


def test_update_requires_fields():
    client, session = _client(_response(200, {}))
    with pytest.raises(ValueError, match="No updates provided"):
        client.update_contact("c1", {})
    session.request.assert_not_called()


def test_delete_accepts_no_content():
    client, session = _client(_response(204))
    assert client.delete_contact("c1") is None
    assert session.request.call_args[0] == ("DELETE", "http://crm.local/api/contacts/c1")


def test_conflict_carries_server_record():
    client, _ = _client(_response(409, {"error": "stale", "current": {"id": "c1", "title": "CTO"}}))
    with pytest.raises(ConflictError) as exc:
        client.update_contact("c1", {"title": "VP"})
    assert exc.value.server_data == {"id": "c1", "title": "CTO"}


def test_http_error_raises_contact_api_error():
    client, _ = _client(_response(500, {}, text="internal error"))
    with pytest.raises(ContactAPIError) as exc:
        client.create_contact({"firstName": "Jane"})
    assert exc.value.status_code == 500


def test_transport_error_raises_contact_api_error():
    client, _ = _client(error=requests.Timeout("read timed out"))
    with pytest.raises(ContactAPIError):
        client.delete_contact("c1")
