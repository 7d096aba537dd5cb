"""
Tool dispatcher

Single entry point from the MCP layer. Acquires a page for browser-dependent
tools, runs the handler and turns every outcome into a ToolResult. A
connection-loss fault resets the session and is reported as retryable.
"""

from collections.abc import Iterable

from ..browser.config import ServerConfig, build_browser_settings
from ..browser.errors import BrowserInitializationError, ErrorKind, classify_error
from ..browser.lifecycle import SessionManager
from ..types import ToolArgs, ToolResult
from ..utils.logging_config import get_logger
from .base import ToolContext, ToolSpec
from .handlers import TOOL_SPECS
from .results import error, success

logger = get_logger(__name__)

CLOSE_TOOL = "playwright_close"
CUSTOM_USER_AGENT_TOOL = "playwright_custom_user_agent"


class ToolDispatcher:
    """Routes tool calls to handlers and maps failures to ToolResults"""

    def __init__(
        self,
        manager: SessionManager,
        defaults: ServerConfig | None = None,
        tools: Iterable[ToolSpec] = TOOL_SPECS,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            manager: Session manager owning the browser session
            defaults: Server defaults for settings the call omits (read from env when None)
            tools: Tool registry
        """
        self.manager = manager
        self.defaults = defaults
        self.screenshots: dict[str, str] = {}
        self._tools: dict[str, ToolSpec] = {}
        for spec in tools:
            self.register(spec)

    @property
    def session(self):
        return self.manager.session

    @property
    def tool_names(self) -> list[str]:
        return [CLOSE_TOOL, *self._tools]

    def register(self, spec: ToolSpec) -> None:
        self._tools[spec.name] = spec

    async def dispatch(self, name: str, args: ToolArgs | None = None) -> ToolResult:
        """
        Run one tool call.

        Never raises. Returns an error ToolResult for unknown tools, browser
        start failures and handler exceptions.

        Args:
            name: MCP tool name
            args: Tool arguments

        Returns:
            ToolResult
        """
        args = args or {}

        if name == CLOSE_TOOL:
            return await self._close()

        spec = self._tools.get(name)
        if spec is None:
            return error(f"Unknown tool: {name}")

        context = ToolContext(manager=self.manager, screenshots=self.screenshots)
        if spec.requires_browser:
            try:
                settings = build_browser_settings(
                    args, self.defaults, include_user_agent=name == CUSTOM_USER_AGENT_TOOL
                )
            except ValueError as e:
                return error(str(e))

            try:
                context.page = await self.manager.acquire_page(settings)
            except BrowserInitializationError as e:
                logger.error(f"Failed to ensure browser for {name}: {e}")
                return error(f"Failed to initialize browser: {e}. Please try again.", retryable=True)

        engine = self.session.engine
        try:
            return await spec.handler(args, context)
        except Exception as e:
            logger.error(f"Error handling tool {name}: {type(e).__name__}: {e}")
            if spec.requires_browser and classify_error(e, engine) is ErrorKind.CONNECTION_LOST:
                self.manager.reset()
                return error(
                    f"Browser connection error: {e}. Browser state has been reset, "
                    "please try again.",
                    retryable=True,
                )
            return error(str(e))

    async def _close(self) -> ToolResult:
        if await self.manager.close():
            return success("Browser closed successfully")
        return success("No browser instance to close")
