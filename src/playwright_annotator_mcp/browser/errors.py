"""
Error taxonomy for browser failures

Playwright does not expose a typed "the browser went away" exception, so
engine fault messages are mapped to an ErrorKind here, in one place. Callers
branch on the kind, never on message text.
"""

from enum import Enum

from ..types import EngineName


class ErrorKind(Enum):
    """Classification of a failure raised while driving the page"""

    CONNECTION_LOST = "connection_lost"
    GENERIC = "generic"


class BrowserInitializationError(RuntimeError):
    """Raised when a browser and page could not be provided after all attempts"""


class ElementIndexError(LookupError):
    """Raised when an annotation index is not present in the current annotation list"""

    def __init__(self, index: int, count: int):
        self.index = index
        self.count = count
        if count == 0:
            message = f"Element with index {index} not found. No annotated elements on the page"
        else:
            message = f"Element with index {index} not found. Available indices: 0-{count - 1}"
        super().__init__(message)


# Substrings that mean the page, context or browser is no longer usable.
# Known to be incomplete for firefox/webkit; extend per engine as gaps show up.
_CONNECTION_LOST_PATTERNS: dict[str, tuple[str, ...]] = {
    "common": (
        "Target page, context or browser has been closed",
        "Browser has been disconnected",
        "Target closed",
        "Protocol error",
        "Connection closed",
    ),
    "chromium": (),
    "firefox": ("Browser closed",),
    "webkit": ("Browser closed",),
}


def connection_lost_patterns(engine: EngineName | None = None) -> tuple[str, ...]:
    """
    Get the message fragments that indicate a lost connection.

    Args:
        engine: Engine in use. None returns the patterns of every engine.

    Returns:
        Tuple of substrings
    """
    if engine is None:
        patterns: list[str] = []
        for group in _CONNECTION_LOST_PATTERNS.values():
            patterns.extend(p for p in group if p not in patterns)
        return tuple(patterns)
    return _CONNECTION_LOST_PATTERNS["common"] + _CONNECTION_LOST_PATTERNS.get(engine, ())


def classify_error(error: BaseException | str, engine: EngineName | None = None) -> ErrorKind:
    """
    Classify an exception (or its message) into an ErrorKind.

    Args:
        error: The exception raised by a handler, or its message
        engine: Engine in use, narrows the pattern set

    Returns:
        ErrorKind.CONNECTION_LOST if the message matches a known disconnection
        fault, otherwise ErrorKind.GENERIC
    """
    message = error if isinstance(error, str) else str(error)
    if any(pattern in message for pattern in connection_lost_patterns(engine)):
        return ErrorKind.CONNECTION_LOST
    return ErrorKind.GENERIC
