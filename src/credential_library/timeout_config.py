# src/credential_library/timeout_config.py
"""
Timeout configuration for outbound calls to Google endpoints.

All values can be overridden via environment variables:
    TIMEOUT_CONNECT - Connection establishment timeout (default: 10s)
    TIMEOUT_READ - Response read timeout (default: 30s)
    TIMEOUT_WRITE - Request body send timeout (default: 10s)
    TIMEOUT_POOL - Connection pool acquisition timeout (default: 10s)

Nothing here retries: a timed out call surfaces as an error to the request
that issued it.
"""

import os
import logging
import httpx

lib_logger = logging.getLogger("credential_library")


class TimeoutConfig:
    """
    Timeout configuration for userinfo and resource manager lookups.

    All values can be overridden via environment variables.
    """

    # Default values (in seconds)
    _CONNECT = 10.0
    _READ = 30.0
    _WRITE = 10.0
    _POOL = 10.0

    @classmethod
    def _get_env_float(cls, key: str, default: float) -> float:
        """Get a float value from environment variable, or return default."""
        value = os.environ.get(key)
        if value is not None:
            try:
                return float(value)
            except ValueError:
                lib_logger.warning(
                    f"Invalid value for {key}: {value}. Using default: {default}"
                )
        return default

    @classmethod
    def connect(cls) -> float:
        return cls._get_env_float("TIMEOUT_CONNECT", cls._CONNECT)

    @classmethod
    def read(cls) -> float:
        return cls._get_env_float("TIMEOUT_READ", cls._READ)

    @classmethod
    def write(cls) -> float:
        return cls._get_env_float("TIMEOUT_WRITE", cls._WRITE)

    @classmethod
    def pool(cls) -> float:
        return cls._get_env_float("TIMEOUT_POOL", cls._POOL)

    @classmethod
    def upstream(cls) -> httpx.Timeout:
        """Timeout applied to every call made on behalf of a metadata request."""
        return httpx.Timeout(
            connect=cls.connect(),
            read=cls.read(),
            write=cls.write(),
            pool=cls.pool(),
        )
