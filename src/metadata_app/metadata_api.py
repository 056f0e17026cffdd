"""
Metadata API Module

FastAPI endpoints emulating the subset of the GCE metadata server that
Google client libraries need to obtain project information and tokens.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from credential_library import CachedCredential, DefaultCredentialsProvider, ResolutionError

from .config import ServerConfig

logger = logging.getLogger(__name__)

METADATA_FLAVOR_HEADER = "Metadata-Flavor"
METADATA_FLAVOR = "Google"
TEXT_CONTENT_TYPE = "application/text"
DEFAULT_ACCOUNT = "default"

router = APIRouter(prefix="/computeMetadata/v1", tags=["metadata"])


class ServiceAccountInfo(BaseModel):
    """Recursive listing of a service account."""

    scopes: List[str]
    email: str
    aliases: List[str] = Field(default_factory=lambda: [DEFAULT_ACCOUNT])


class TokenResponse(BaseModel):
    access_token: str
    token_type: str
    expires_in: int


class AccountMismatchError(Exception):
    """Raised when a request names a service account other than the resolved one."""

    def __init__(self, account: str):
        super().__init__(f"Unknown service account: {account}")
        self.account = account


@dataclass
class AccountContext:
    """Credentials validated for a per-account request."""

    account: str
    credentials: CachedCredential


def get_credentials_provider(request: Request) -> DefaultCredentialsProvider:
    """Dependency to get the credentials provider from app state."""
    return request.app.state.credentials_provider


def get_server_config(request: Request) -> ServerConfig:
    return request.app.state.config


def text_response(text: str) -> Response:
    return Response(
        content=text,
        media_type=TEXT_CONTENT_TYPE,
        headers={METADATA_FLAVOR_HEADER: METADATA_FLAVOR},
    )


def json_response(model: BaseModel) -> JSONResponse:
    return JSONResponse(
        content=model.model_dump(),
        headers={METADATA_FLAVOR_HEADER: METADATA_FLAVOR},
    )


def error_response(status_code: int) -> Response:
    """Metadata server errors carry no body, only a status code."""
    return Response(
        status_code=status_code,
        headers={METADATA_FLAVOR_HEADER: METADATA_FLAVOR},
    )


async def validate_account(
    account: str,
    provider: DefaultCredentialsProvider = Depends(get_credentials_provider),
) -> AccountContext:
    """
    Resolve the default credentials and check the account path segment.

    "default" always matches; anything else must be exactly the email of the
    resolved credentials. Resolution failures propagate as ResolutionError.
    """
    credentials = await provider.default_credentials()
    if account == DEFAULT_ACCOUNT:
        return AccountContext(account=account, credentials=credentials)

    email = await credentials.get_email()
    if account != email:
        raise AccountMismatchError(account)
    return AccountContext(account=account, credentials=credentials)


@router.get("/project/project-id")
async def get_project_id(
    provider: DefaultCredentialsProvider = Depends(get_credentials_provider),
):
    try:
        credentials = await provider.default_credentials()
    except ResolutionError as e:
        logger.error(f"Could not resolve default credentials: {e}")
        return text_response("")
    return text_response(credentials.project_id)


@router.get("/project/numeric-project-id")
async def get_numeric_project_id(
    provider: DefaultCredentialsProvider = Depends(get_credentials_provider),
):
    try:
        credentials = await provider.default_credentials()
    except ResolutionError as e:
        logger.error(f"Could not resolve default credentials: {e}")
        return text_response("0")

    try:
        numeric_project_id = await credentials.get_numeric_project_id()
    except ResolutionError as e:
        logger.error(f"Failed to resolve numeric project id: {e}")
        return error_response(500)
    return text_response(str(numeric_project_id))


@router.get("/instance/service-accounts/")
async def list_service_accounts(
    provider: DefaultCredentialsProvider = Depends(get_credentials_provider),
):
    credentials = await provider.default_credentials()
    email = await credentials.get_email()
    return text_response(f"{DEFAULT_ACCOUNT}/\n{email}\n")


# Registered without account validation: the endpoint is unsupported whatever
# the credential state is.
@router.get("/instance/service-accounts/{account}/identity")
async def get_service_account_identity(account: str):
    logger.warning("/identity endpoint is not supported.")
    return error_response(404)


@router.get("/instance/service-accounts/{account}/")
async def get_service_account(
    recursive: Optional[str] = None,
    context: AccountContext = Depends(validate_account),
    config: ServerConfig = Depends(get_server_config),
):
    if recursive != "true":
        return text_response("email/\nscopes/\ntoken\n")

    email = await context.credentials.get_email()
    return json_response(ServiceAccountInfo(scopes=list(config.scopes), email=email))


@router.get("/instance/service-accounts/{account}/email")
async def get_service_account_email(
    context: AccountContext = Depends(validate_account),
):
    email = await context.credentials.get_email()
    return text_response(email)


@router.get("/instance/service-accounts/{account}/token")
async def get_service_account_token(
    scopes: Optional[str] = None,
    context: AccountContext = Depends(validate_account),
    provider: DefaultCredentialsProvider = Depends(get_credentials_provider),
):
    credentials = context.credentials
    requested = [scope for scope in (scopes or "").split(",") if scope]
    if requested:
        credentials = await provider.credentials_for_scopes(requested)

    try:
        token = await credentials.token()
    except ResolutionError as e:
        logger.error(f"Could not retrieve token: {e}")
        return error_response(500)

    return json_response(
        TokenResponse(
            access_token=token.access_token,
            token_type=token.token_type,
            expires_in=token.expires_in(),
        )
    )
