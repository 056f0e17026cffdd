from typing import Optional, Sequence

from .credential_cache import CachedCredential, CredentialCache
from .credential_manager import CredentialManager


class DefaultCredentialsProvider:
    """
    Hands out credentials to metadata handlers.

    Requests using the configured default scopes share the cache slot.
    Requests asking for explicit scopes get a single-use credential that
    never touches the slot.
    """

    def __init__(
        self,
        manager: CredentialManager,
        scopes: Sequence[str],
        project_override: Optional[str] = None,
        cache: Optional[CredentialCache] = None,
    ):
        self.manager = manager
        self.scopes = list(scopes)
        self.project_override = project_override or None
        self.cache = cache if cache is not None else CredentialCache()

    async def default_credentials(self) -> CachedCredential:
        credential = await self.manager.resolve(self.scopes)
        return await self.cache.get_or_create(credential, self.project_override)

    async def credentials_for_scopes(self, scopes: Sequence[str]) -> CachedCredential:
        credential = await self.manager.resolve(list(scopes))
        return CachedCredential.wrap(credential, self.project_override)
