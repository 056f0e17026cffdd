import asyncio
import logging
from typing import Optional

from . import identity, project_resolver
from .credentials import AccessToken, Credential
from .error_handler import ResolutionError

lib_logger = logging.getLogger("credential_library")


class CachedCredential:
    """
    A Credential together with the metadata derived from it.

    `client_id` and `project_id` are fixed when the instance is created.
    `email` and the numeric project id are looked up on first use and then
    memoized for the lifetime of the instance; failed lookups are not
    remembered. Tokens are never memoized here.
    """

    def __init__(self, credential: Credential, client_id: str, project_id: str):
        self.credential = credential
        self.client_id = client_id
        self.project_id = project_id
        self._email: Optional[str] = None
        self._numeric_project_id: Optional[int] = None
        # Serializes memoized field lookups so each is fetched at most once.
        self._lock = asyncio.Lock()

    @classmethod
    def wrap(
        cls, credential: Credential, project_override: Optional[str] = None
    ) -> "CachedCredential":
        client_id = identity.client_id_of(credential)
        project_id = project_override or credential.project_id or ""
        return cls(credential, client_id, project_id)

    async def get_email(self) -> str:
        async with self._lock:
            if self._email is None:
                self._email = await identity.email_of(self.credential)
            return self._email

    async def get_numeric_project_id(self) -> int:
        if not self.project_id:
            return 0
        async with self._lock:
            if self._numeric_project_id is None:
                self._numeric_project_id = await project_resolver.numeric_id_of(
                    self.credential, self.project_id
                )
            return self._numeric_project_id

    async def token(self) -> AccessToken:
        return await self.credential.token()


class CredentialCache:
    """
    Single slot holding the credential resolved for the default scopes.

    A newly resolved credential replaces the slot only when its client id
    differs from the cached one; otherwise the cached instance, with whatever
    it has memoized, is handed out again.
    """

    def __init__(self):
        self._current: Optional[CachedCredential] = None
        self._lock = asyncio.Lock()

    @property
    def current(self) -> Optional[CachedCredential]:
        return self._current

    async def get_or_create(
        self, credential: Credential, project_override: Optional[str] = None
    ) -> CachedCredential:
        candidate = CachedCredential.wrap(credential, project_override)
        async with self._lock:
            current = self._current
            if current is not None and current.client_id == candidate.client_id:
                return current
            self._current = candidate

        await self._announce(candidate)
        return candidate

    async def _announce(self, cached: CachedCredential):
        try:
            email = await cached.get_email()
        except ResolutionError as e:
            lib_logger.debug(f"Could not resolve email of new credentials: {e}")
            lib_logger.info(f"New credentials: client_id={cached.client_id}")
            return
        lib_logger.info(f"New credentials: {email}")
