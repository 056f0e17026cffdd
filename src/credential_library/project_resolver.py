# src/credential_library/project_resolver.py

import logging
import re
from urllib.parse import quote

import httpx

from .credentials import Credential
from .error_handler import ResolutionError, UpstreamError
from .timeout_config import TimeoutConfig

lib_logger = logging.getLogger("credential_library")

# https://cloud.google.com/resource-manager/reference/rest/v1/projects/get
# Service accounts need the Cloud Resource Manager API enabled on their project.
PROJECTS_URI = "https://cloudresourcemanager.googleapis.com/v1/projects/{}"

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_DECIMAL = re.compile(r"[+-]?[0-9]+")


def _parse_project_number(value) -> int:
    if not isinstance(value, str) or not _DECIMAL.fullmatch(value):
        raise ValueError(f"projectNumber is not a decimal string: {value!r}")
    number = int(value)
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise ValueError(f"projectNumber out of range: {value}")
    return number


async def numeric_id_of(credential: Credential, project_id: str) -> int:
    """
    Look up the numeric project number of `project_id`.

    Returns 0 without any network call when no project is known.
    """
    if not project_id:
        return 0

    url = PROJECTS_URI.format(quote(project_id, safe=""))
    try:
        token = await credential.token()
    except ResolutionError as e:
        raise ResolutionError(f"Failed to resolve numeric project number: {e}") from e

    try:
        async with httpx.AsyncClient(timeout=TimeoutConfig.upstream()) as client:
            response = await client.get(
                url,
                headers={"Authorization": f"{token.token_type} {token.access_token}"},
            )
    except httpx.HTTPError as e:
        raise ResolutionError(f"Failed to resolve numeric project number: {e}") from e

    if response.status_code != 200:
        error = UpstreamError(
            f"Unexpected response from project endpoint: {response.status_code}",
            endpoint=url,
            status_code=response.status_code,
            body=response.text,
        )
        error.log_details()
        raise error

    try:
        project = response.json()
        if not isinstance(project, dict):
            raise ValueError("project response is not an object")
        number = _parse_project_number(project.get("projectNumber"))
    except ValueError as e:
        error = UpstreamError(
            f"Unexpected response from project endpoint: {e}",
            endpoint=url,
            status_code=response.status_code,
            body=response.text,
        )
        error.log_details()
        raise error from e

    lib_logger.debug(f"Resolved project {project_id} to number {number}")
    return number
