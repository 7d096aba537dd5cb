"""
Playwright Annotator MCP Server

Browser automation over MCP with numbered element annotation.

This server:
1. Drives a single Playwright browser session that is launched lazily and
   relaunched automatically when it dies
2. Exposes navigation, interaction, screenshot and evaluation tools
3. Annotates interactive elements with numbered overlays so a client can act
   on them by index
"""

import base64
import sys
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from mcp.types import ImageContent, TextContent

from .browser import SessionManager, SessionState
from .browser.config import load_log_settings, load_server_config
from .tools import ToolDispatcher
from .tools.results import result_text
from .types import ToolArgs, ToolResult
from .utils.logging_config import get_logger, log_tool_result, setup_file_logging

# Configure logging using centralized utility
_log_file, _log_level = load_log_settings()
setup_file_logging(log_file=_log_file, level=_log_level)
logger = get_logger(__name__)

logger.info(f"Python interpreter: {sys.executable}")
logger.info(f"Python version: {sys.version}")

# Global components
server_config = None
session_manager: SessionManager | None = None
dispatcher: ToolDispatcher | None = None


@asynccontextmanager
async def lifespan_context(server):
    """Lifespan context manager for startup and shutdown"""
    global server_config, session_manager, dispatcher

    logger.info("Starting Playwright Annotator MCP...")

    try:
        server_config = load_server_config()
        logger.info(
            f"Defaults: engine={server_config['engine']}, headless={server_config['headless']}, "
            f"viewport={server_config['viewport_width']}x{server_config['viewport_height']}, "
            f"auto_annotate={server_config['auto_annotate']}"
        )

        session = SessionState(auto_annotation=server_config["auto_annotate"])
        session_manager = SessionManager(session)
        dispatcher = ToolDispatcher(session_manager, server_config)

        logger.info("Playwright Annotator MCP started successfully")

        yield

    except Exception as e:
        logger.error(f"Failed to start Playwright Annotator MCP: {e}", exc_info=True)
        raise

    finally:
        logger.info("Shutting down Playwright Annotator MCP...")

        try:
            if session_manager:
                await session_manager.shutdown()
            logger.info("Playwright Annotator MCP shut down successfully")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}", exc_info=True)


# Initialize the MCP server
mcp = FastMCP(
    name="Playwright Annotator MCP",
    instructions="""
    Browser automation through Playwright with numbered element annotation.

    After navigating, interactive elements on the page are annotated with
    colored boxes and index numbers. Use playwright_get_annotated_elements to
    read the list and playwright_click_by_index / playwright_fill_by_index to
    act on an element by its number. Indices are only valid for the most
    recent annotation pass, so re-read the list after the page changes.

    A single browser session is kept between calls. If a tool reports that
    the browser state has been reset, simply repeat the call.
    """,
    lifespan=lifespan_context,
)


# =============================================================================
# DISPATCH
# =============================================================================


def _to_mcp_content(result: ToolResult) -> list[TextContent | ImageContent]:
    content: list[TextContent | ImageContent] = []
    for block in result["content"]:
        if block["type"] == "image":
            content.append(ImageContent(type="image", data=block["data"], mimeType=block["mimeType"]))
        else:
            content.append(TextContent(type="text", text=block["text"]))
    return content


async def _run_tool(name: str, arguments: ToolArgs) -> list[TextContent | ImageContent]:
    """
    Dispatch a tool call and convert the ToolResult for FastMCP.

    Error results are raised as ToolError so the client sees isError=true.
    """
    if dispatcher is None:
        raise ToolError("Server not initialized")

    args = {key: value for key, value in arguments.items() if value is not None}
    result = await dispatcher.dispatch(name, args)
    if result["isError"]:
        raise ToolError(result_text(result))
    return _to_mcp_content(result)


# =============================================================================
# NAVIGATION TOOLS
# =============================================================================


@mcp.tool()
@log_tool_result(logger)
async def playwright_navigate(
    url: str,
    browserType: str | None = None,
    width: int | None = None,
    height: int | None = None,
    timeout: int | None = None,
    waitUntil: str | None = None,
    headless: bool | None = None,
    proxy: dict[str, str] | None = None,
    headers: dict[str, str] | None = None,
    localStorage: dict[str, str] | None = None,
) -> Any:
    """
    Navigate to a URL. Launches the browser on first use.

    Args:
        url: URL to navigate to
        browserType: Browser engine: 'chromium', 'firefox' or 'webkit'. Changing it relaunches the browser.
        width: Viewport width in pixels (default: 1280)
        height: Viewport height in pixels (default: 720)
        timeout: Navigation timeout in milliseconds (default: 30000)
        waitUntil: 'load', 'domcontentloaded', 'networkidle' or 'commit' (default: 'load')
        headless: Run the browser headless (default: false)
        proxy: Proxy settings with 'server' and optional 'username', 'password', 'bypass'
        headers: Extra HTTP headers sent with every request from the page
        localStorage: Key/value pairs written to localStorage before page scripts run

    Returns:
        Navigation result
    """
    return await _run_tool(
        "playwright_navigate",
        {
            "url": url,
            "browserType": browserType,
            "width": width,
            "height": height,
            "timeout": timeout,
            "waitUntil": waitUntil,
            "headless": headless,
            "proxy": proxy,
            "headers": headers,
            "localStorage": localStorage,
        },
    )


@mcp.tool()
@log_tool_result(logger)
async def playwright_go_back() -> Any:
    """Navigate back in browser history"""
    return await _run_tool("playwright_go_back", {})


@mcp.tool()
@log_tool_result(logger)
async def playwright_go_forward() -> Any:
    """Navigate forward in browser history"""
    return await _run_tool("playwright_go_forward", {})


@mcp.tool()
@log_tool_result(logger)
async def playwright_close() -> Any:
    """Close the browser and release all resources"""
    return await _run_tool("playwright_close", {})


# =============================================================================
# PAGE TOOLS
# =============================================================================


@mcp.tool()
@log_tool_result(logger)
async def playwright_screenshot(
    name: str,
    selector: str | None = None,
    fullPage: bool | None = None,
    savePng: bool | None = None,
    downloadsDir: str | None = None,
    storeBase64: bool | None = None,
) -> Any:
    """
    Take a screenshot of the current page or a specific element.

    Args:
        name: Name for the screenshot
        selector: CSS selector of an element to capture instead of the page
        fullPage: Capture the full scrollable page (default: false)
        savePng: Save the screenshot as a PNG file (default: false)
        downloadsDir: Directory for the PNG file (default: ~/Downloads)
        storeBase64: Keep the screenshot in memory and return it as an image (default: true)

    Returns:
        Screenshot result
    """
    return await _run_tool(
        "playwright_screenshot",
        {
            "name": name,
            "selector": selector,
            "fullPage": fullPage,
            "savePng": savePng,
            "downloadsDir": downloadsDir,
            "storeBase64": storeBase64,
        },
    )


@mcp.tool()
@log_tool_result(logger)
async def playwright_evaluate(script: str) -> Any:
    """
    Execute JavaScript in the browser console.

    Args:
        script: JavaScript code to execute

    Returns:
        The script and its JSON-encoded result
    """
    return await _run_tool("playwright_evaluate", {"script": script})


@mcp.tool()
@log_tool_result(logger)
async def playwright_custom_user_agent(userAgent: str) -> Any:
    """
    Launch the browser with a custom User Agent.

    The user agent only applies to a newly launched browser. Call
    playwright_close first if a session is already running.

    Args:
        userAgent: Custom User Agent string
    """
    return await _run_tool("playwright_custom_user_agent", {"userAgent": userAgent})


# =============================================================================
# INTERACTION TOOLS
# =============================================================================


@mcp.tool()
@log_tool_result(logger)
async def playwright_click(
    selector: str | None = None,
    coordinate: list[float] | None = None,
    button: str | None = None,
) -> Any:
    """
    Click an element by CSS selector or at screen coordinates.

    Args:
        selector: CSS selector for the element to click
        coordinate: Screen coordinates [x, y] (alternative to selector)
        button: Mouse button: 'left', 'right' or 'middle' (default: 'left')
    """
    return await _run_tool(
        "playwright_click", {"selector": selector, "coordinate": coordinate, "button": button}
    )


@mcp.tool()
@log_tool_result(logger)
async def playwright_iframe_click(iframeSelector: str, selector: str) -> Any:
    """
    Click an element inside an iframe.

    Args:
        iframeSelector: CSS selector for the iframe
        selector: CSS selector for the element inside the iframe
    """
    return await _run_tool(
        "playwright_iframe_click", {"iframeSelector": iframeSelector, "selector": selector}
    )


@mcp.tool()
@log_tool_result(logger)
async def playwright_iframe_fill(iframeSelector: str, selector: str, value: str) -> Any:
    """
    Fill an element inside an iframe.

    Args:
        iframeSelector: CSS selector for the iframe
        selector: CSS selector for the element inside the iframe
        value: Value to fill
    """
    return await _run_tool(
        "playwright_iframe_fill",
        {"iframeSelector": iframeSelector, "selector": selector, "value": value},
    )


@mcp.tool()
@log_tool_result(logger)
async def playwright_fill(selector: str, value: str) -> Any:
    """
    Fill out an input field.

    Args:
        selector: CSS selector for the input field
        value: Value to fill
    """
    return await _run_tool("playwright_fill", {"selector": selector, "value": value})


@mcp.tool()
@log_tool_result(logger)
async def playwright_select(selector: str, value: str) -> Any:
    """
    Select an option in a <select> element.

    Args:
        selector: CSS selector for the select element
        value: Value to select
    """
    return await _run_tool("playwright_select", {"selector": selector, "value": value})


@mcp.tool()
@log_tool_result(logger)
async def playwright_hover(selector: str) -> Any:
    """
    Hover over an element.

    Args:
        selector: CSS selector for the element to hover
    """
    return await _run_tool("playwright_hover", {"selector": selector})


@mcp.tool()
@log_tool_result(logger)
async def playwright_drag(sourceSelector: str, targetSelector: str) -> Any:
    """
    Drag an element onto another element.

    Args:
        sourceSelector: CSS selector for the element to drag
        targetSelector: CSS selector for the drop target
    """
    return await _run_tool(
        "playwright_drag", {"sourceSelector": sourceSelector, "targetSelector": targetSelector}
    )


@mcp.tool()
@log_tool_result(logger)
async def playwright_press_key(key: str, selector: str | None = None) -> Any:
    """
    Press a keyboard key.

    Args:
        key: Key to press (e.g. 'Enter', 'ArrowDown', 'a')
        selector: Optional CSS selector of an element to focus first
    """
    return await _run_tool("playwright_press_key", {"key": key, "selector": selector})


# =============================================================================
# ANNOTATION TOOLS
# =============================================================================


@mcp.tool()
@log_tool_result(logger)
async def playwright_annotate() -> Any:
    """
    Annotate all interactive elements on the current page with colored boxes
    and index numbers. Returns the elements with coordinates and properties.
    """
    return await _run_tool("playwright_annotate", {})


@mcp.tool()
@log_tool_result(logger)
async def playwright_remove_annotations() -> Any:
    """Remove all annotation overlays from the page"""
    return await _run_tool("playwright_remove_annotations", {})


@mcp.tool()
@log_tool_result(logger)
async def playwright_click_by_index(index: int) -> Any:
    """
    Click an annotated element by its index number.

    Args:
        index: Index number shown on the annotation overlay
    """
    return await _run_tool("playwright_click_by_index", {"index": index})


@mcp.tool()
@log_tool_result(logger)
async def playwright_fill_by_index(index: int, value: str) -> Any:
    """
    Replace the content of an annotated input element and type a value.

    Args:
        index: Index number shown on the annotation overlay
        value: Text to type
    """
    return await _run_tool("playwright_fill_by_index", {"index": index, "value": value})


@mcp.tool()
@log_tool_result(logger)
async def playwright_get_annotated_elements() -> Any:
    """
    Get the compact list of annotated elements on the page.

    Keys: i (index), t (type), x (text), h (href), p (placeholder).
    """
    return await _run_tool("playwright_get_annotated_elements", {})


@mcp.tool()
@log_tool_result(logger)
async def playwright_get_annotated_elements_full() -> Any:
    """Get the annotated elements with selectors, bounding boxes and attributes"""
    return await _run_tool("playwright_get_annotated_elements_full", {})


@mcp.tool()
@log_tool_result(logger)
async def playwright_set_auto_annotation(enabled: bool) -> Any:
    """
    Enable or disable automatic annotation after navigation.

    Args:
        enabled: Whether pages are annotated automatically
    """
    return await _run_tool("playwright_set_auto_annotation", {"enabled": enabled})


# =============================================================================
# RESOURCES
# =============================================================================


@mcp.resource("playwright-annotator://status")
async def get_status() -> str:
    """Get the current browser session status"""
    if session_manager is None:
        return "Playwright Annotator MCP is not initialized"

    session = session_manager.session
    annotation = "on" if session.auto_annotation else "off"
    if session.is_connected():
        return f"Browser running ({session.engine}), auto-annotation {annotation}"
    return f"No browser running, auto-annotation {annotation}"


@mcp.resource("screenshot://{name}", mime_type="image/png")
async def get_screenshot(name: str) -> bytes:
    """Get a screenshot stored in memory by playwright_screenshot"""
    if dispatcher is None or name not in dispatcher.screenshots:
        raise ValueError(f"Screenshot not found: {name}")
    return base64.b64decode(dispatcher.screenshots[name])


# =============================================================================
# MAIN
# =============================================================================


def main() -> None:
    """Run the MCP server"""
    logger.info("Initializing Playwright Annotator MCP Server...")
    mcp.run()


if __name__ == "__main__":
    main()
