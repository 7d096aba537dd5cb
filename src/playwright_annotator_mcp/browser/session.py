"""
Session store

Holds the single browser/page pair the server drives. The state object is
owned by whoever creates it (the server module in production, each test in
the test suite) and injected into SessionManager and ToolDispatcher.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .config import DEFAULT_ENGINE
from ..types import EngineName

if TYPE_CHECKING:
    from playwright.async_api import Browser, Page, Playwright


@dataclass
class SessionState:
    """Process-wide record of the current browser, page and engine"""

    browser: "Browser | None" = None
    page: "Page | None" = None
    engine: EngineName = DEFAULT_ENGINE
    auto_annotation: bool = True
    playwright: "Playwright | None" = None

    def clear(self) -> None:
        """
        Forget the browser and page without closing them.

        The Playwright driver and the auto-annotation flag survive; they
        belong to the process, not to one browser.
        """
        self.browser = None
        self.page = None
        self.engine = DEFAULT_ENGINE

    def is_connected(self) -> bool:
        """True if a browser exists and reports itself connected"""
        return self.browser is not None and self.browser.is_connected()

    def is_consistent(self) -> bool:
        """
        Check the session invariant.

        Either the session is fully cleared, or the browser is connected
        and the page is open. A connected browser without a page is also
        accepted since the next acquire opens a page in place.
        """
        if self.browser is None:
            return self.page is None
        if self.page is None:
            return True
        return self.browser.is_connected() and not self.page.is_closed()
