import httpx
import pytest
import respx

from credential_library import ResolutionError, UpstreamError
from credential_library.project_resolver import numeric_id_of
from tests.fixtures.credential_mocks import FakeTokenSource, service_account_credential

PROJECT_URL = "https://cloudresourcemanager.googleapis.com/v1/projects/proj"


@pytest.mark.asyncio
async def test_numeric_id_is_parsed():
    credential = service_account_credential(token_source=FakeTokenSource(token="ya29.sa"))
    with respx.mock() as mock:
        mock.get(PROJECT_URL).return_value = httpx.Response(
            200, json={"projectId": "proj", "projectNumber": "123456789012"}
        )
        number = await numeric_id_of(credential, "proj")
        request = mock.calls.last.request

    assert number == 123456789012
    assert request.headers["Authorization"] == "Bearer ya29.sa"


@pytest.mark.asyncio
async def test_empty_project_returns_zero_without_network():
    credential = service_account_credential()
    with respx.mock(assert_all_called=False) as mock:
        assert await numeric_id_of(credential, "") == 0
        assert not mock.calls
    assert credential.token_source.refresh_count == 0


@pytest.mark.asyncio
async def test_project_id_is_escaped():
    credential = service_account_credential()
    with respx.mock() as mock:
        mock.get(host="cloudresourcemanager.googleapis.com").respond(
            200, json={"projectNumber": "7"}
        )
        assert await numeric_id_of(credential, "a/b") == 7
        request = mock.calls.last.request
    assert request.url.raw_path == b"/v1/projects/a%2Fb"


@pytest.mark.asyncio
async def test_forbidden_is_upstream_error():
    credential = service_account_credential()
    with respx.mock() as mock:
        mock.get(PROJECT_URL).return_value = httpx.Response(403, text="denied")
        with pytest.raises(UpstreamError) as excinfo:
            await numeric_id_of(credential, "proj")

    assert excinfo.value.status_code == 403
    assert isinstance(excinfo.value, ResolutionError)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"projectNumber": "12ab"},
        {"projectNumber": 123},
        {"projectNumber": "99999999999999999999"},
        {},
    ],
)
async def test_bad_project_number_is_upstream_error(body):
    credential = service_account_credential()
    with respx.mock() as mock:
        mock.get(PROJECT_URL).return_value = httpx.Response(200, json=body)
        with pytest.raises(UpstreamError):
            await numeric_id_of(credential, "proj")


@pytest.mark.asyncio
async def test_token_failure_is_resolution_error():
    credential = service_account_credential(token_source=FakeTokenSource(fail=True))
    with pytest.raises(ResolutionError):
        await numeric_id_of(credential, "proj")
