from .credential_cache import CachedCredential, CredentialCache
from .credential_manager import (
    AmbientSource,
    CloudSDKConfigSource,
    CredentialManager,
    CredentialSource,
    ExplicitFileSource,
)
from .credentials import AccessToken, Credential
from .error_handler import (
    CredentialError,
    IdentityResolutionError,
    NoCredentialsError,
    ResolutionError,
    UpstreamError,
)
from .provider import DefaultCredentialsProvider

__version__ = "0.3.0"

__all__ = [
    "AccessToken",
    "AmbientSource",
    "CachedCredential",
    "CloudSDKConfigSource",
    "Credential",
    "CredentialCache",
    "CredentialError",
    "CredentialManager",
    "CredentialSource",
    "DefaultCredentialsProvider",
    "ExplicitFileSource",
    "IdentityResolutionError",
    "NoCredentialsError",
    "ResolutionError",
    "UpstreamError",
]
