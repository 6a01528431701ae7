"""
Configuration for cpdb.

Values come from the process environment, optionally seeded from a .env
file in the working directory. The real environment always wins over .env.
"""

import os

from dotenv import load_dotenv

# Load .env early so environment variables are available for the Config class
load_dotenv(override=False)


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Runtime configuration for the bindings."""

    # Shared libraries
    # A bare name is resolved with ctypes.util.find_library, a path is loaded as-is
    FRONTEND_LIBRARY = os.environ.get("CPDB_FRONTEND_LIBRARY", "cpdb-frontend")
    GLIB_LIBRARY = os.environ.get("CPDB_GLIB_LIBRARY", "glib-2.0")

    # Logging
    LOG_LEVEL = os.environ.get("CPDB_LOG_LEVEL", "WARNING").upper()
    LOG_DIR = os.environ.get("CPDB_LOG_DIR", "")
    ENABLE_FILE_LOGGING = _env_flag("CPDB_ENABLE_FILE_LOGGING")

    # Frontend defaults
    HIDE_REMOTE_PRINTERS = _env_flag("CPDB_HIDE_REMOTE_PRINTERS")
    HIDE_TEMPORARY_PRINTERS = _env_flag("CPDB_HIDE_TEMPORARY_PRINTERS")

