import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from credential_library import (
    CredentialManager,
    DefaultCredentialsProvider,
    ResolutionError,
    __version__,
)

from . import metadata_api
from .config import ServerConfig
from .metadata_api import (
    METADATA_FLAVOR,
    METADATA_FLAVOR_HEADER,
    AccountMismatchError,
    error_response,
)
from .request_logger import access_log_middleware

logger = logging.getLogger(__name__)

UNIMPLEMENTED_PATH_MESSAGE = (
    "Unimplemented path is accessed: "
    "this may be a metadata server feature the emulator doesn't provide yet."
)


async def check_metadata_flavor(request: Request, call_next):
    """Reject requests that don't carry `Metadata-Flavor: Google`."""
    if request.headers.get(METADATA_FLAVOR_HEADER) != METADATA_FLAVOR:
        logger.debug(
            f"Accessed without Metadata-Flavor: Google method={request.method} path={request.url.path}"
        )
        return Response(status_code=404)
    return await call_next(request)


async def unimplemented_path_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(
        f"{UNIMPLEMENTED_PATH_MESSAGE} method={request.method} path={request.url.path} status={exc.status_code}"
    )
    return error_response(exc.status_code)


async def account_mismatch_handler(request: Request, exc: AccountMismatchError):
    logger.warning(
        f"Request for unknown service account '{exc.account}': path={request.url.path}"
    )
    return error_response(404)


async def resolution_error_handler(request: Request, exc: ResolutionError):
    logger.error(f"Could not serve {request.url.path}: {exc}")
    return error_response(500)


def create_app(
    config: ServerConfig,
    credential_manager: Optional[CredentialManager] = None,
) -> FastAPI:
    """
    Build the metadata emulator application.

    Args:
        config: Server configuration.
        credential_manager: Credential chain to use; built from `config` when omitted.
    """
    if credential_manager is None:
        credential_manager = CredentialManager.from_config(
            google_application_credentials=config.google_application_credentials,
            cloudsdk_config=config.cloudsdk_config,
        )

    app = FastAPI(
        title="GCE Metadata Emulator",
        version=__version__,
        redirect_slashes=False,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = config
    app.state.credentials_provider = DefaultCredentialsProvider(
        credential_manager,
        scopes=config.scopes,
        project_override=config.project,
    )

    app.include_router(metadata_api.router)

    app.add_exception_handler(StarletteHTTPException, unimplemented_path_handler)
    app.add_exception_handler(AccountMismatchError, account_mismatch_handler)
    app.add_exception_handler(ResolutionError, resolution_error_handler)

    # The last middleware added runs first: access log wraps the flavor check.
    app.middleware("http")(check_metadata_flavor)
    app.middleware("http")(access_log_middleware)
    return app
