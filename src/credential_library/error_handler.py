import logging
from typing import Optional

lib_logger = logging.getLogger("credential_library")


class CredentialError(Exception):
    """Base class for every credential related failure."""


class ResolutionError(CredentialError):
    """Raised when no usable identity can be derived for a request."""


class NoCredentialsError(ResolutionError):
    """
    Raised when every credential source in the chain came up empty.

    The message carries the remediation guidance shown to the operator.
    """

    REMEDIATION = (
        "Could not retrieve default credentials\n"
        "You may haven't set up credentials. You can set up your credentials in one of those ways:\n"
        "\n"
        "  * Run `gcloud auth application-default login`. Share ~/.config/gcloud with volume mounts in docker containers.\n"
        "  * Put the service account key file (a json file), and specify the path with GOOGLE_APPLICATION_CREDENTIALS environment variable.\n"
    )

    def __init__(self, detail: Optional[str] = None):
        message = self.REMEDIATION
        if detail:
            message = f"{message}\nLast error: {detail}"
        super().__init__(message)
        self.detail = detail


class IdentityResolutionError(ResolutionError):
    """Raised when the email of a credential cannot be determined."""


class UpstreamError(ResolutionError):
    """
    Raised when a Google endpoint answers with an unexpected status or body.

    Attributes:
        endpoint: URL that was called (without credentials in the query)
        status_code: HTTP status of the response, if one was received
        body: Raw response body, kept for debug logging
    """

    def __init__(
        self,
        message: str,
        endpoint: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body

    def log_details(self):
        """Emit the upstream response at debug level for troubleshooting."""
        lib_logger.debug(
            f"Unexpected response from {self.endpoint}: status={self.status_code} body={self.body!r}"
        )
