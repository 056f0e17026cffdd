import asyncio
import os
import stat
import logging
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from google.auth.exceptions import GoogleAuthError

from .credentials import Credential, credentials_from_default, credentials_from_json
from .error_handler import NoCredentialsError

lib_logger = logging.getLogger("credential_library")

# File gcloud writes on `gcloud auth application-default login`.
APPLICATION_DEFAULT_CREDENTIALS_FILE = "application_default_credentials.json"
CLOUDSDK_CONFIG_ENV = "CLOUDSDK_CONFIG"


class CredentialSource:
    """A single step of the credential chain."""

    name: str = "credentials"

    async def resolve(self, scopes: Sequence[str]) -> Optional[Credential]:
        """Return a Credential, or None to let the next source try."""
        raise NotImplementedError


class _FileSource(CredentialSource):
    """
    Loads a credentials JSON file.

    Failures are logged as a warning once; the warning is re-armed after the
    next successful load so a recurring problem is reported again.
    """

    warn_when_missing = True
    missing_message = "Failed to stat specified credentials file: ignored."
    stat_failure_message = missing_message
    failure_message = "Failed to load specified credentials file: ignored."

    def __init__(self):
        self._warned = False

    def _path(self) -> Optional[Path]:
        raise NotImplementedError

    def _warn_once(self, message: str, path: Path, error: Optional[Exception] = None):
        if self._warned:
            return
        self._warned = True
        if error is not None:
            lib_logger.warning(f"{message} file={path} error={error}")
        else:
            lib_logger.warning(f"{message} file={path}")

    async def resolve(self, scopes: Sequence[str]) -> Optional[Credential]:
        path = self._path()
        if path is None:
            return None
        try:
            file_stat = path.stat()
        except (FileNotFoundError, NotADirectoryError):
            file_stat = None
        except OSError as e:
            # permission errors, overlong names, symlink loops
            self._warn_once(self.stat_failure_message, path, e)
            return None
        if file_stat is None or stat.S_ISDIR(file_stat.st_mode):
            if self.warn_when_missing:
                self._warn_once(self.missing_message, path)
            return None
        try:
            raw = await asyncio.to_thread(path.read_bytes)
            credential = await asyncio.to_thread(
                credentials_from_json, raw, scopes, str(path)
            )
        except (OSError, ValueError, GoogleAuthError) as e:
            self._warn_once(self.failure_message, path, e)
            return None
        self._warned = False
        return credential


class ExplicitFileSource(_FileSource):
    """The credentials file named in the server configuration."""

    name = "explicit credentials file"

    def __init__(self, path: Optional[Union[Path, str]]):
        super().__init__()
        self.path = Path(path).expanduser() if path else None

    def _path(self) -> Optional[Path]:
        return self.path


class CloudSDKConfigSource(_FileSource):
    """application_default_credentials.json inside a gcloud config directory."""

    name = "cloud sdk configuration"
    warn_when_missing = False
    stat_failure_message = (
        "Failed to stat credentials in specified cloud-sdk configuration directory: ignored."
    )
    failure_message = (
        "Failed to load credentials from specified cloud-sdk configuration directory: ignored."
    )

    def __init__(
        self,
        directory: Optional[Union[Path, str]] = None,
        env_vars: Optional[Mapping[str, str]] = None,
    ):
        super().__init__()
        self.directory = directory
        self.env_vars = env_vars if env_vars is not None else os.environ

    def _path(self) -> Optional[Path]:
        # google-auth doesn't honour CLOUDSDK_CONFIG for this lookup on its own
        directory = self.directory or self.env_vars.get(CLOUDSDK_CONFIG_ENV)
        if not directory:
            return None
        return Path(directory).expanduser() / APPLICATION_DEFAULT_CREDENTIALS_FILE


class AmbientSource(CredentialSource):
    """google-auth Application Default Credentials discovery."""

    name = "application default credentials"

    async def resolve(self, scopes: Sequence[str]) -> Optional[Credential]:
        try:
            return await asyncio.to_thread(credentials_from_default, scopes)
        except (GoogleAuthError, ValueError) as e:
            lib_logger.debug(f"Application default credentials lookup failed: {e}")
            return None


class CredentialManager:
    """
    Finds the credential that answers metadata requests.

    Sources are tried in order and the first one producing a credential wins:
    explicit credentials file, gcloud configuration directory, then
    Application Default Credentials discovery.
    """

    def __init__(self, sources: Iterable[CredentialSource]):
        self.sources: List[CredentialSource] = list(sources)

    @classmethod
    def from_config(
        cls,
        google_application_credentials: Optional[str] = None,
        cloudsdk_config: Optional[str] = None,
        env_vars: Optional[Mapping[str, str]] = None,
    ) -> "CredentialManager":
        return cls(
            [
                ExplicitFileSource(google_application_credentials),
                CloudSDKConfigSource(cloudsdk_config, env_vars),
                AmbientSource(),
            ]
        )

    async def resolve(self, scopes: Sequence[str]) -> Credential:
        for source in self.sources:
            credential = await source.resolve(scopes)
            if credential is not None:
                lib_logger.debug(f"Resolved credentials from {source.name}")
                return credential
        raise NoCredentialsError()
