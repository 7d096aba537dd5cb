"""
Type Definitions

Define TypedDict classes for browser settings, annotated elements, and tool results.
"""

from typing import Any, Literal, TypedDict

EngineName = Literal["chromium", "firefox", "webkit"]


class ViewportSize(TypedDict, total=False):
    """Viewport dimensions in CSS pixels."""

    width: int
    height: int


class ProxySettings(TypedDict, total=False):
    """
    Proxy descriptor passed to the browser at launch.

    Only server is required. bypass is a comma-separated list of domains.
    """

    server: str
    username: str
    password: str
    bypass: str


class BrowserSettings(TypedDict, total=False):
    """
    Per-call browser configuration.

    Read once when the session is created. A different engine on a later call
    forces the session to be torn down and relaunched.
    """

    viewport: ViewportSize
    user_agent: str | None
    headless: bool
    engine: EngineName
    proxy: ProxySettings | None


class BoundingBox(TypedDict):
    """Element bounding box in viewport coordinates (rounded)."""

    x: int
    y: int
    width: int
    height: int


class AnnotatedElement(TypedDict):
    """
    One interactive element found by an annotation pass.

    Keys mirror the page-side cache (window.__playwrightAnnotatedElements)
    so the list is passed through unchanged. index is only stable within
    the pass that produced it.
    """

    index: int
    type: str
    tagName: str
    text: str
    selector: str
    boundingBox: BoundingBox
    attributes: dict[str, str]


class CompactElement(TypedDict, total=False):
    """
    Reduced annotation entry for language-model consumption.

    i: index, t: type, x: text (<= 50 chars), h: href, p: placeholder
    """

    i: int
    t: str
    x: str
    h: str
    p: str


class TextBlock(TypedDict):
    """Text content block."""

    type: Literal["text"]
    text: str


class ImageBlock(TypedDict):
    """Base64 image content block."""

    type: Literal["image"]
    data: str
    mimeType: str


class ToolResult(TypedDict):
    """
    Result of a dispatched tool call.

    The dispatcher always returns one of these, it never raises.
    retryable is True when the session was reset (or failed to start) and
    repeating the call is expected to succeed.
    """

    content: list[TextBlock | ImageBlock]
    isError: bool
    retryable: bool


ToolArgs = dict[str, Any]
