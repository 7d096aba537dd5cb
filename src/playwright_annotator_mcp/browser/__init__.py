"""
Browser session package

Configuration, the shared session record, the lifecycle manager that keeps
a connected browser and open page available, and the error taxonomy used to
recognize a lost connection.
"""

from .config import ServerConfig, build_browser_settings, load_server_config
from .errors import (
    BrowserInitializationError,
    ElementIndexError,
    ErrorKind,
    classify_error,
)
from .lifecycle import SessionManager
from .session import SessionState

__all__ = [
    "ServerConfig",
    "build_browser_settings",
    "load_server_config",
    "BrowserInitializationError",
    "ElementIndexError",
    "ErrorKind",
    "classify_error",
    "SessionManager",
    "SessionState",
]
