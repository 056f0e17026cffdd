# src/credential_library/identity.py
"""
Derives the identity (email address) behind a credential.

Service account payloads carry their email. Authorized user payloads (the
ones `gcloud auth application-default login` writes) don't, so the email is
looked up on the userinfo endpoint with a freshly minted token.
"""

import hashlib

import httpx

from .credentials import Credential, TYPE_AUTHORIZED_USER, TYPE_SERVICE_ACCOUNT
from .error_handler import IdentityResolutionError, ResolutionError, UpstreamError
from .timeout_config import TimeoutConfig

USER_INFO_URI = "https://www.googleapis.com/oauth2/v1/userinfo"


def _payload(credential: Credential) -> dict:
    try:
        return credential.payload()
    except ValueError as e:
        raise IdentityResolutionError(f"Failed to parse credentials JSON: {e}") from e


def client_id_of(credential: Credential) -> str:
    """
    Return the stable key used to tell two resolved credentials apart.

    Only parses the payload. Service accounts are keyed by their email;
    authorized users by OAuth client id plus a fingerprint of the refresh
    token, since every gcloud login shares the same client id.
    """
    payload = _payload(credential)
    credential_type = payload.get("type")
    if credential_type == TYPE_SERVICE_ACCOUNT:
        email = payload.get("client_email")
        if not email:
            raise IdentityResolutionError("Service account credentials without client_email")
        return email
    if credential_type == TYPE_AUTHORIZED_USER:
        refresh_token = payload.get("refresh_token") or ""
        fingerprint = hashlib.sha256(refresh_token.encode("utf-8")).hexdigest()[:16]
        return f"{payload.get('client_id', '')}:{fingerprint}"
    raise IdentityResolutionError(f"Unexpected type: {credential_type}")


async def email_of(credential: Credential) -> str:
    """Return the email address of the credential."""
    payload = _payload(credential)
    credential_type = payload.get("type")
    if credential_type == TYPE_SERVICE_ACCOUNT:
        email = payload.get("client_email")
        if not email:
            raise IdentityResolutionError("Service account credentials without client_email")
        return email
    if credential_type == TYPE_AUTHORIZED_USER:
        return await _email_of_authorized_user(credential)
    raise IdentityResolutionError(f"Unexpected type: {credential_type}")


async def _email_of_authorized_user(credential: Credential) -> str:
    try:
        token = await credential.token()
    except ResolutionError as e:
        raise IdentityResolutionError(f"Failed to get token to resolve email: {e}") from e

    try:
        async with httpx.AsyncClient(timeout=TimeoutConfig.upstream()) as client:
            response = await client.get(
                USER_INFO_URI, params={"access_token": token.access_token}
            )
    except httpx.HTTPError as e:
        raise IdentityResolutionError(
            f"Failed to access the userinfo endpoint: {e}"
        ) from e

    if response.status_code != 200:
        error = UpstreamError(
            f"Unexpected response from the userinfo endpoint: {response.status_code}",
            endpoint=USER_INFO_URI,
            status_code=response.status_code,
            body=response.text,
        )
        error.log_details()
        raise IdentityResolutionError(str(error)) from error

    try:
        user_info = response.json()
        if not isinstance(user_info, dict):
            raise ValueError("userinfo response is not an object")
    except ValueError as e:
        error = UpstreamError(
            f"Failed to parse response from the userinfo endpoint: {e}",
            endpoint=USER_INFO_URI,
            status_code=response.status_code,
            body=response.text,
        )
        error.log_details()
        raise IdentityResolutionError(str(error)) from error

    # Field names are matched case-insensitively.
    email = next(
        (value for key, value in user_info.items() if key.lower() == "email"), None
    )
    if not email or not isinstance(email, str):
        raise IdentityResolutionError(
            "The userinfo endpoint returned no email: "
            "the token may lack the userinfo.email scope"
        )
    return email
