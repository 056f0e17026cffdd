import json
from datetime import timedelta

import google.auth
import pytest
from google.auth.exceptions import DefaultCredentialsError
from google.oauth2 import credentials as oauth2_credentials

from credential_library.credentials import AccessToken, credentials_from_json
from tests.fixtures.credential_mocks import (
    FakeTokenSource,
    service_account_credential,
    utcnow,
)


def _authorized_user_json(**extra):
    info = {
        "type": "authorized_user",
        "client_id": "client-123.apps.googleusercontent.com",
        "client_secret": "secret",
        "refresh_token": "1//refresh-a",
    }
    info.update(extra)
    return json.dumps(info).encode()


def test_authorized_user_payload_is_loaded_directly(monkeypatch):
    def _unexpected(*args, **kwargs):
        raise AssertionError("generic loader should not be used")

    monkeypatch.setattr(google.auth, "load_credentials_from_dict", _unexpected)

    credential = credentials_from_json(_authorized_user_json(), ["a", "b"], "key.json")

    assert isinstance(credential.token_source, oauth2_credentials.Credentials)
    assert credential.token_source.scopes == ["a", "b"]
    assert credential.project_id is None
    assert credential.source == "key.json"


def test_unsupported_payload_type_is_rejected():
    raw = json.dumps({"type": "external_account"}).encode()
    with pytest.raises(DefaultCredentialsError):
        credentials_from_json(raw, ["a"], "key.json")


def test_incomplete_authorized_user_payload_is_rejected():
    raw = json.dumps({"type": "authorized_user", "client_id": "x"}).encode()
    with pytest.raises(ValueError):
        credentials_from_json(raw, ["a"], "key.json")


@pytest.mark.asyncio
async def test_refreshes_share_one_transport_request():
    first = FakeTokenSource(lifetime=timedelta(seconds=-1))
    second = FakeTokenSource()

    await service_account_credential(token_source=first).token()
    await service_account_credential(token_source=first).token()
    await service_account_credential(token_source=second).token()

    assert first.refresh_count == 2
    assert first.requests[0] is first.requests[1]
    assert first.requests[0] is second.requests[0]


def test_expires_in():
    now = utcnow()
    token = AccessToken("t", expiry=now + timedelta(seconds=90))

    assert token.expires_in(now) == 90
    assert AccessToken("t", expiry=now - timedelta(seconds=5)).expires_in(now) == -5
    assert AccessToken("t").expires_in(now) == 0
