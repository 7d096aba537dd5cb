"""
Browser session lifecycle manager

Owns launching, health checking, teardown and relaunch of the single
browser/page pair held in a SessionState. Every browser-dependent tool gets
its page through SessionManager.acquire_page and never keeps a reference to
it across calls.
"""

import asyncio
import weakref
from typing import TYPE_CHECKING, Any, Callable

from playwright.async_api import async_playwright

from ..annotation import pipeline
from ..annotation.script import DEFAULT_PARAMS, AnnotationScriptParams
from ..types import BrowserSettings, EngineName
from ..utils.logging_config import get_logger, log_dict
from .config import (
    DEFAULT_ENGINE,
    DEFAULT_VIEWPORT_HEIGHT,
    DEFAULT_VIEWPORT_WIDTH,
    get_executable_path,
)
from .errors import BrowserInitializationError
from .session import SessionState

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, ConsoleMessage, Page, Playwright

logger = get_logger(__name__)
page_logger = get_logger("playwright_annotator_mcp.page")

MAX_ACQUIRE_ATTEMPTS = 2

# Reports unhandled promise rejections through console.error so the console
# forwarder can pick them up.
UNHANDLED_REJECTION_SCRIPT = """
window.addEventListener("unhandledrejection", (event) => {
  const reason = event.reason;
  const message = typeof reason === "object" && reason !== null
    ? reason.message || JSON.stringify(reason)
    : String(reason);
  const stack = (reason && reason.stack) || "";
  console.error(`[Playwright][Unhandled Rejection In Promise] ${message}\\n${stack}`);
});
"""
REJECTION_PREFIX = "[Playwright]"


class SessionManager:
    """Ensures a connected browser and an open page exist before a tool runs"""

    def __init__(
        self,
        session: SessionState,
        script_params: AnnotationScriptParams = DEFAULT_PARAMS,
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        """
        Initialize the session manager.

        Args:
            session: Session state to manage (shared with the dispatcher)
            script_params: Parameters for the annotation script
            playwright_factory: Returns an object whose start() yields a Playwright driver
        """
        self.session = session
        self.script_params = script_params
        self._playwright_factory = playwright_factory
        self._page_setup: "weakref.WeakKeyDictionary[Page, asyncio.Future[None]]" = (
            weakref.WeakKeyDictionary()
        )

    @property
    def browser(self) -> "Browser | None":
        return self.session.browser

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def acquire_page(self, settings: BrowserSettings | None = None) -> "Page":
        """
        Return a page backed by a connected browser, launching or recovering as needed.

        Any failure tears the session down and the whole sequence is tried
        again, up to MAX_ACQUIRE_ATTEMPTS times in total.

        Args:
            settings: Browser settings for this call

        Returns:
            An open Page

        Raises:
            BrowserInitializationError: If every attempt failed
        """
        settings = settings or {}
        last_error: Exception | None = None

        for attempt in range(1, MAX_ACQUIRE_ATTEMPTS + 1):
            try:
                return await self._ensure_page(settings)
            except Exception as e:
                last_error = e
                logger.error(
                    f"Error ensuring browser (attempt {attempt}/{MAX_ACQUIRE_ATTEMPTS}): "
                    f"{type(e).__name__}: {e}"
                )
                await self._discard_browser()
                # A dead driver would fail every relaunch
                await self._stop_playwright()

        raise BrowserInitializationError(str(last_error)) from last_error

    def reset(self) -> None:
        """
        Forget the current browser and page without closing them.

        Used when the handles are already known to be dead.
        """
        logger.warning("Resetting browser session state")
        self.session.clear()

    async def close(self) -> bool:
        """
        Close the browser if it is still connected and clear the session.

        Never raises. Errors while closing are logged and the session is
        cleared regardless.

        Returns:
            True if there was a browser instance, False if there was nothing to close
        """
        browser = self.session.browser
        if browser is None:
            self.session.clear()
            return False

        try:
            if browser.is_connected():
                await browser.close()
                logger.info("Browser closed")
            else:
                logger.info("Browser already disconnected, cleaning up state")
        except Exception as e:
            logger.error(f"Error during browser close: {e}")
        finally:
            self.session.clear()
        return True

    async def shutdown(self) -> None:
        """Close the browser and stop the Playwright driver"""
        await self.close()
        await self._stop_playwright()

    def set_auto_annotation(self, enabled: bool) -> None:
        """Enable or disable auto-annotation for pages prepared from now on"""
        self.session.auto_annotation = enabled
        logger.info(f"Auto-annotation {'enabled' if enabled else 'disabled'}")

    # ------------------------------------------------------------------
    # Acquisition steps
    # ------------------------------------------------------------------

    async def _ensure_page(self, settings: BrowserSettings) -> "Page":
        session = self.session
        engine: EngineName = settings.get("engine") or DEFAULT_ENGINE

        if session.browser is not None and not session.browser.is_connected():
            logger.warning("Browser exists but is disconnected. Cleaning up...")
            await self._discard_browser()

        if session.browser is None or session.engine != engine:
            if session.browser is not None:
                logger.info(f"Browser type changing from {session.engine} to {engine}, relaunching")
                await self._discard_browser()
            await self._launch(settings, engine)

        if session.page is None or session.page.is_closed():
            logger.warning("Page is closed or invalid. Creating new page...")
            await self._open_replacement_page(settings)

        assert session.page is not None
        return session.page

    async def _launch(self, settings: BrowserSettings, engine: EngineName) -> None:
        playwright = await self._get_playwright()
        browser_type = getattr(playwright, engine)

        launch_options: dict[str, Any] = {"headless": settings.get("headless", False)}
        executable_path = get_executable_path()
        if executable_path and engine == "chromium":
            launch_options["executable_path"] = executable_path
        proxy = settings.get("proxy")
        if proxy:
            launch_options["proxy"] = dict(proxy)

        log_dict(
            logger,
            f"Launching new {engine} browser instance...",
            {
                "headless": launch_options["headless"],
                "executable_path": launch_options.get("executable_path"),
                "proxy_server": proxy["server"] if proxy else None,
                "proxy_password": proxy.get("password") if proxy else None,
            },
        )

        browser = await browser_type.launch(**launch_options)
        self.session.browser = browser
        self.session.engine = engine
        browser.on("disconnected", self._on_disconnected)

        context = await self._new_context(browser, settings)
        page = await context.new_page()
        await self._prepare_page(page)
        self.session.page = page
        logger.info(f"{engine} browser launched, initial page ready")

    async def _new_context(self, browser: "Browser", settings: BrowserSettings) -> "BrowserContext":
        viewport = settings.get("viewport") or {}
        context_options: dict[str, Any] = {
            "viewport": {
                "width": viewport.get("width") or DEFAULT_VIEWPORT_WIDTH,
                "height": viewport.get("height") or DEFAULT_VIEWPORT_HEIGHT,
            },
            "device_scale_factor": 1,
        }
        if settings.get("user_agent"):
            context_options["user_agent"] = settings["user_agent"]

        context = await browser.new_context(**context_options)
        context.on("page", self._on_new_page)
        return context

    async def _open_replacement_page(self, settings: BrowserSettings) -> None:
        browser = self.session.browser
        assert browser is not None
        contexts = browser.contexts
        context = contexts[0] if contexts else await self._new_context(browser, settings)
        page = await context.new_page()
        await self._prepare_page(page)
        self.session.page = page

    async def _get_playwright(self) -> "Playwright":
        if self.session.playwright is None:
            logger.info("Starting Playwright driver...")
            self.session.playwright = await self._playwright_factory().start()
        return self.session.playwright

    async def _stop_playwright(self) -> None:
        """Stop the driver and forget it, ignoring stop errors"""
        playwright = self.session.playwright
        if playwright is None:
            return
        self.session.playwright = None
        try:
            await playwright.stop()
        except Exception as e:
            logger.warning(f"Error stopping Playwright driver: {e}")

    async def _discard_browser(self) -> None:
        """Clear the session and close its browser, ignoring close errors"""
        browser = self.session.browser
        self.session.clear()
        if browser is None:
            return
        try:
            await browser.close()
        except Exception as e:
            logger.warning(f"Error closing browser during cleanup: {e}")

    # ------------------------------------------------------------------
    # Page preparation
    # ------------------------------------------------------------------

    def _prepare_page(self, page: "Page") -> "asyncio.Future[None]":
        """
        Attach console forwarding and the annotation pipeline to a page once.

        The context "page" event also fires for pages this manager opens
        itself, so both paths share one setup future per page.
        """
        setup = self._page_setup.get(page)
        if setup is None:
            setup = asyncio.ensure_future(self._attach(page))
            self._page_setup[page] = setup
        return setup

    async def _attach(self, page: "Page") -> None:
        await register_console_forwarding(page)
        if self.session.auto_annotation:
            await pipeline.arm(page, self.script_params)

    async def _on_new_page(self, page: "Page") -> None:
        """Context listener for pages opened later (popups, target=_blank links)"""
        logger.info("New page opened in context")
        try:
            await self._prepare_page(page)
            page.on("load", self._run_annotation_on_load)
        except Exception as e:
            logger.warning(f"Failed to prepare new page: {e}")

    async def _run_annotation_on_load(self, page: "Page") -> None:
        if not self.session.auto_annotation:
            return
        try:
            await pipeline.run_now(page, self.script_params)
        except Exception as e:
            logger.debug(f"Annotation after load failed: {e}")

    def _on_disconnected(self, browser: "Browser") -> None:
        """Clears the session when its browser goes away, independent of any tool call"""
        if self.session.browser is not browser:
            return
        logger.error("Browser disconnected event triggered")
        self.session.clear()


async def register_console_forwarding(page: "Page") -> None:
    """Forward page console output and uncaught errors to the page logger"""

    def on_console(message: "ConsoleMessage") -> None:
        text = message.text
        if text.startswith(REJECTION_PREFIX):
            page_logger.warning(f"PAGE_ERROR {text[len(REJECTION_PREFIX):]}")
        else:
            page_logger.info(f"PAGE_CONSOLE [{message.type}] {text}")

    def on_page_error(error: Any) -> None:
        stack = getattr(error, "stack", None) or ""
        page_logger.warning(f"PAGE_ERROR {error}\n{stack}".rstrip())

    page.on("console", on_console)
    page.on("pageerror", on_page_error)
    await page.add_init_script(UNHANDLED_REJECTION_SCRIPT)
