# src/credential_library/utils/__init__.py

from .paths import (
    get_default_root,
    get_logs_dir,
    get_data_file,
)

__all__ = [
    "get_default_root",
    "get_logs_dir",
    "get_data_file",
]
