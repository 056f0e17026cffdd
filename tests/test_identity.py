import json
import logging

import httpx
import pytest
import respx

from credential_library import Credential, IdentityResolutionError, UpstreamError
from credential_library.identity import USER_INFO_URI, client_id_of, email_of
from tests.fixtures.credential_mocks import (
    FakeTokenSource,
    authorized_user_credential,
    service_account_credential,
)


@pytest.mark.asyncio
async def test_service_account_email_needs_no_network():
    credential = service_account_credential()
    with respx.mock(assert_all_called=False) as mock:
        email = await email_of(credential)
        assert not mock.calls
    assert email == "svc@proj.iam.gserviceaccount.com"
    assert credential.token_source.refresh_count == 0


@pytest.mark.asyncio
async def test_authorized_user_email_from_userinfo():
    credential = authorized_user_credential(token_source=FakeTokenSource(token="ya29.user"))
    with respx.mock() as mock:
        mock.get(USER_INFO_URI).return_value = httpx.Response(
            200, json={"id": "1", "Email": "u@example.com", "verified_email": True}
        )
        email = await email_of(credential)
        request = mock.calls.last.request

    assert email == "u@example.com"
    assert request.url.params["access_token"] == "ya29.user"


@pytest.mark.asyncio
async def test_userinfo_error_status_is_identity_error(caplog):
    credential = authorized_user_credential()
    with respx.mock() as mock:
        mock.get(USER_INFO_URI).return_value = httpx.Response(401, text="unauthorized")
        with caplog.at_level(logging.DEBUG, logger="credential_library"):
            with pytest.raises(IdentityResolutionError) as excinfo:
                await email_of(credential)

    cause = excinfo.value.__cause__
    assert isinstance(cause, UpstreamError)
    assert cause.status_code == 401
    assert cause.body == "unauthorized"
    assert "unauthorized" in caplog.text


@pytest.mark.asyncio
async def test_userinfo_unparsable_body_is_identity_error():
    credential = authorized_user_credential()
    with respx.mock() as mock:
        mock.get(USER_INFO_URI).return_value = httpx.Response(200, text="<html>")
        with pytest.raises(IdentityResolutionError):
            await email_of(credential)


@pytest.mark.asyncio
async def test_userinfo_without_email_is_identity_error():
    credential = authorized_user_credential()
    with respx.mock() as mock:
        mock.get(USER_INFO_URI).return_value = httpx.Response(200, json={"id": "1"})
        with pytest.raises(IdentityResolutionError):
            await email_of(credential)


@pytest.mark.asyncio
async def test_token_failure_is_identity_error():
    credential = authorized_user_credential(token_source=FakeTokenSource(fail=True))
    with pytest.raises(IdentityResolutionError):
        await email_of(credential)


@pytest.mark.asyncio
async def test_unsupported_type_is_identity_error():
    credential = Credential(
        raw=json.dumps({"type": "external_account"}).encode(),
        token_source=FakeTokenSource(),
    )
    with pytest.raises(IdentityResolutionError, match="Unexpected type: external_account"):
        await email_of(credential)


@pytest.mark.asyncio
async def test_unparsable_payload_is_identity_error():
    credential = Credential(raw=b"not json", token_source=FakeTokenSource())
    with pytest.raises(IdentityResolutionError):
        await email_of(credential)
    with pytest.raises(IdentityResolutionError):
        client_id_of(credential)


def test_client_id_of_service_account():
    assert client_id_of(service_account_credential()) == "svc@proj.iam.gserviceaccount.com"


def test_client_id_of_authorized_user_depends_on_refresh_token():
    first = client_id_of(authorized_user_credential(refresh_token="1//a"))
    again = client_id_of(authorized_user_credential(refresh_token="1//a"))
    other = client_id_of(authorized_user_credential(refresh_token="1//b"))

    assert first == again
    assert first != other
    assert first.startswith("client-123.apps.googleusercontent.com:")
    assert "1//a" not in first
