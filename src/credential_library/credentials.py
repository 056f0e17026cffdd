# src/credential_library/credentials.py
"""
Credential model shared by the source chain, the resolvers and the cache.

A Credential keeps the raw JSON payload it was built from next to the
google-auth credentials object that mints tokens for it. The payload is what
identity resolution inspects; the google-auth object is the token source.
"""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

import google.auth
from google.auth import credentials as ga_credentials
from google.auth.exceptions import DefaultCredentialsError, GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import credentials as oauth2_credentials
from google.oauth2 import service_account

from .error_handler import ResolutionError

TYPE_AUTHORIZED_USER = "authorized_user"
TYPE_SERVICE_ACCOUNT = "service_account"

# Shared by every refresh; google-auth reuses its requests.Session.
_refresh_request = Request()


def _utcnow() -> datetime:
    # google-auth keeps expiry as a naive UTC datetime
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class AccessToken:
    access_token: str
    token_type: str = "Bearer"
    expiry: Optional[datetime] = None

    def expires_in(self, now: Optional[datetime] = None) -> int:
        """Whole seconds until expiry; zero or negative once expired."""
        if self.expiry is None:
            return 0
        if now is None:
            now = _utcnow()
        return int((self.expiry - now).total_seconds())


@dataclass
class Credential:
    """
    A resolved credential.

    Attributes:
        raw: JSON payload with a "type" discriminant (and "client_email" for
             service accounts)
        token_source: google-auth credentials used to mint access tokens
        project_id: Project the credential belongs to, if known
        source: Human readable origin, used in logs
    """

    raw: bytes
    token_source: ga_credentials.Credentials
    project_id: Optional[str] = None
    source: str = "unknown"
    _token_lock: asyncio.Lock = field(
        default_factory=asyncio.Lock, init=False, repr=False, compare=False
    )

    def payload(self) -> Dict[str, Any]:
        """Parse the raw payload. Raises ValueError when it is not a JSON object."""
        data = json.loads(self.raw)
        if not isinstance(data, dict):
            raise ValueError("credentials JSON is not an object")
        return data

    async def token(self) -> AccessToken:
        """
        Return an access token from the token source.

        The token source is only refreshed when google-auth reports its
        current token as missing or expired.
        """
        async with self._token_lock:
            if not self.token_source.valid:
                try:
                    await asyncio.to_thread(self.token_source.refresh, _refresh_request)
                except GoogleAuthError as e:
                    raise ResolutionError(
                        f"Failed to get token from {self.source}: {e}"
                    ) from e
            return AccessToken(
                access_token=self.token_source.token,
                expiry=self.token_source.expiry,
            )


def credentials_from_json(
    raw: bytes, scopes: Sequence[str], source: str
) -> Credential:
    """
    Build a Credential from a credentials JSON document.

    Raises ValueError for malformed JSON and GoogleAuthError for payloads
    google-auth cannot load.
    """
    info = json.loads(raw)
    if not isinstance(info, dict):
        raise ValueError("credentials JSON is not an object")
    credential_type = info.get("type")
    if credential_type == TYPE_SERVICE_ACCOUNT:
        token_source = service_account.Credentials.from_service_account_info(
            info, scopes=list(scopes)
        )
        project_id = info.get("project_id")
    elif credential_type == TYPE_AUTHORIZED_USER:
        token_source = oauth2_credentials.Credentials.from_authorized_user_info(
            info, scopes=list(scopes)
        )
        project_id = None
    else:
        raise DefaultCredentialsError(
            f"Unsupported credentials type in {source}: {credential_type}"
        )
    return Credential(
        raw=raw, token_source=token_source, project_id=project_id, source=source
    )


def describe_credentials(token_source: ga_credentials.Credentials) -> Dict[str, Any]:
    """Rebuild the identifying part of a payload from a google-auth object."""
    if isinstance(token_source, service_account.Credentials):
        return {
            "type": TYPE_SERVICE_ACCOUNT,
            "client_email": token_source.service_account_email,
        }
    if isinstance(token_source, oauth2_credentials.Credentials):
        return {
            "type": TYPE_AUTHORIZED_USER,
            "client_id": token_source.client_id,
            "refresh_token": token_source.refresh_token,
        }
    return {"type": type(token_source).__name__}


def credentials_from_default(scopes: Sequence[str]) -> Credential:
    """Run google-auth's Application Default Credentials discovery."""
    token_source, project_id = google.auth.default(scopes=list(scopes))
    raw = json.dumps(describe_credentials(token_source)).encode("utf-8")
    return Credential(
        raw=raw,
        token_source=token_source,
        project_id=project_id,
        source="application default credentials",
    )
