import logging
from typing import Optional

from fastapi import Request

logger = logging.getLogger(__name__)


def log_request_to_console(method: str, uri: str, status_code: int, size: Optional[int]):
    """
    Logs a concise, single-line summary of a served request.
    """
    logger.info(f"{method} {uri} {status_code} size={size if size is not None else 0}")


async def access_log_middleware(request: Request, call_next):
    """HTTP middleware writing one access log line per request."""
    response = await call_next(request)
    uri = request.url.path
    if request.url.query:
        uri = f"{uri}?{request.url.query}"
    content_length = response.headers.get("content-length")
    log_request_to_console(
        request.method,
        uri,
        response.status_code,
        int(content_length) if content_length else None,
    )
    return response
