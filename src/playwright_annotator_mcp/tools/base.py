"""
Tool plumbing shared by the handlers and the dispatcher
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..types import ToolArgs, ToolResult

if TYPE_CHECKING:
    from playwright.async_api import Browser, Page

    from ..browser.lifecycle import SessionManager
    from ..browser.session import SessionState


@dataclass
class ToolContext:
    """What a handler gets to work with for one call"""

    manager: "SessionManager"
    page: "Page | None" = None
    screenshots: dict[str, str] = field(default_factory=dict)

    @property
    def session(self) -> "SessionState":
        return self.manager.session

    @property
    def browser(self) -> "Browser | None":
        return self.manager.session.browser

    @property
    def auto_annotation(self) -> bool:
        return self.manager.session.auto_annotation

    def require_page(self) -> "Page":
        if self.page is None:
            raise RuntimeError("No page available")
        return self.page


Handler = Callable[[ToolArgs, ToolContext], Awaitable[ToolResult]]


@dataclass(frozen=True)
class ToolSpec:
    """A tool name bound to its handler"""

    name: str
    handler: Handler
    requires_browser: bool = True
