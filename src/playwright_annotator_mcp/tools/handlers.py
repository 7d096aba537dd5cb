"""
Tool handlers

One coroutine per tool. Each receives the raw arguments and a ToolContext
holding the page acquired for this call, and returns a ToolResult. Expected
failures (element missing, bad arguments) come back as error results or
plain exceptions; the dispatcher classifies whatever is raised.
"""

import base64
import json
from datetime import datetime, timezone
from pathlib import Path
from string import Template
from typing import Any

from ..annotation import pipeline, resolver
from ..browser.config import DEFAULT_NAVIGATION_TIMEOUT_MS, DEFAULT_WAIT_UNTIL
from ..browser.errors import ElementIndexError
from ..types import ToolArgs, ToolResult
from ..utils.logging_config import get_logger
from .base import ToolContext, ToolSpec
from .results import error, image_block, success, text_block

logger = get_logger(__name__)

WAIT_UNTIL_VALUES = ("load", "domcontentloaded", "networkidle", "commit")
MOUSE_BUTTONS = ("left", "right", "middle")
DEFAULT_DOWNLOADS_DIR = Path.home() / "Downloads"

# Seeds localStorage before any page script runs. Receives the storage map
# as its argument.
LOCAL_STORAGE_SCRIPT = Template("""
((storage) => {
  if (window.location.href !== "about:blank") {
    for (const [key, value] of Object.entries(storage)) {
      localStorage.setItem(key, String(value));
    }
  }
})($storage);
""")


def _require_str(args: ToolArgs, key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"{key} parameter is required")
    return value


def _require_index(args: ToolArgs) -> int:
    index = args.get("index")
    if isinstance(index, bool) or not isinstance(index, int):
        raise ValueError("index parameter is required and must be a number")
    return index


def _screenshot_filename(name: str) -> str:
    # Only the last path component, so the file stays inside downloadsDir
    stem = Path(name).name or "screenshot"
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    timestamp = timestamp.replace("+00:00", "Z").replace(":", "-").replace(".", "-")
    return f"{stem}-{timestamp}.png"


def _to_json(value: Any, indent: int | None = None) -> str:
    try:
        return json.dumps(value, indent=indent)
    except (TypeError, ValueError):
        return str(value)


async def _annotate_current_document(ctx: ToolContext) -> None:
    if ctx.auto_annotation:
        await pipeline.run_now(ctx.require_page(), ctx.manager.script_params)


# ----------------------------------------------------------------------
# Navigation
# ----------------------------------------------------------------------


async def navigate(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    """Navigate to a URL, optionally with extra headers and seeded localStorage"""
    page = ctx.require_page()
    url = _require_str(args, "url")
    wait_until = args.get("waitUntil") or DEFAULT_WAIT_UNTIL
    if wait_until not in WAIT_UNTIL_VALUES:
        raise ValueError(
            f"Invalid waitUntil '{wait_until}'. Must be one of: {', '.join(WAIT_UNTIL_VALUES)}"
        )

    headers = args.get("headers")
    if headers:
        await page.set_extra_http_headers({str(k): str(v) for k, v in headers.items()})

    storage = args.get("localStorage")
    if storage:
        script = LOCAL_STORAGE_SCRIPT.substitute(storage=json.dumps(storage))
        await page.add_init_script(script)

    await page.goto(
        url,
        timeout=args.get("timeout") or DEFAULT_NAVIGATION_TIMEOUT_MS,
        wait_until=wait_until,
    )
    await _annotate_current_document(ctx)
    logger.info(f"Navigated to {url}")
    return success(f"Navigated to {url}")


async def go_back(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    await ctx.require_page().go_back()
    await _annotate_current_document(ctx)
    return success("Navigated back in browser history")


async def go_forward(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    await ctx.require_page().go_forward()
    await _annotate_current_document(ctx)
    return success("Navigated forward in browser history")


# ----------------------------------------------------------------------
# Screenshots
# ----------------------------------------------------------------------


async def screenshot(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    """
    Take a screenshot of the page or of a single element.

    With savePng the PNG is written to downloadsDir as <name>-<timestamp>.png.
    Unless storeBase64 is false the image is kept under its name for the
    screenshot resource and returned as an image block.
    """
    page = ctx.require_page()
    name = args.get("name") or "screenshot"
    selector = args.get("selector")

    if selector:
        element = await page.query_selector(selector)
        if element is None:
            return error(f"Element not found: {selector}")
        data = await element.screenshot(type="png")
    else:
        data = await page.screenshot(type="png", full_page=bool(args.get("fullPage")))

    messages: list[str] = []
    if args.get("savePng") is True:
        downloads_dir = Path(args.get("downloadsDir") or DEFAULT_DOWNLOADS_DIR).expanduser()
        downloads_dir.mkdir(parents=True, exist_ok=True)
        output_path = downloads_dir / _screenshot_filename(name)
        output_path.write_bytes(data)
        logger.info(f"Screenshot written to {output_path}")
        messages.append(f"Screenshot saved to: {output_path}")

    encoded = base64.b64encode(data).decode("ascii")
    result = success(messages or [f"Screenshot '{name}' taken"])
    if args.get("storeBase64") is not False:
        ctx.screenshots[name] = encoded
        result["content"].append(text_block(f"Screenshot stored in memory with name: '{name}'"))
        result["content"].append(image_block(encoded))
    return result


# ----------------------------------------------------------------------
# Interaction
# ----------------------------------------------------------------------


async def click(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    """Click by CSS selector or at viewport coordinates"""
    page = ctx.require_page()
    button = args.get("button") or "left"
    if button not in MOUSE_BUTTONS:
        raise ValueError(f"Invalid button '{button}'. Must be one of: {', '.join(MOUSE_BUTTONS)}")

    coordinate = args.get("coordinate")
    if isinstance(coordinate, (list, tuple)) and len(coordinate) == 2:
        x, y = coordinate
        await page.mouse.click(x, y, button=button)
        return success(f"Clicked at coordinates ({x}, {y}) with {button} button")

    selector = args.get("selector")
    if selector:
        await page.click(selector, button=button)
        return success(f"Clicked element: {selector}")

    return error("Either selector or coordinate is required for click action")


async def _iframe_locator(args: ToolArgs, ctx: ToolContext):
    page = ctx.require_page()
    iframe_selector = _require_str(args, "iframeSelector")
    selector = _require_str(args, "selector")
    if await page.query_selector(iframe_selector) is None:
        return None
    return page.frame_locator(iframe_selector).locator(selector)


async def iframe_click(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    locator = await _iframe_locator(args, ctx)
    if locator is None:
        return error(f"Iframe not found: {args['iframeSelector']}")
    await locator.click()
    return success(f"Clicked element {args['selector']} inside iframe {args['iframeSelector']}")


async def iframe_fill(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    value = str(args.get("value", ""))
    locator = await _iframe_locator(args, ctx)
    if locator is None:
        return error(f"Iframe not found: {args['iframeSelector']}")
    await locator.fill(value)
    return success(
        f"Filled element {args['selector']} inside iframe {args['iframeSelector']} with: {value}"
    )


async def fill(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    page = ctx.require_page()
    selector = _require_str(args, "selector")
    value = str(args.get("value", ""))
    await page.wait_for_selector(selector)
    await page.fill(selector, value)
    return success(f"Filled {selector} with: {value}")


async def select(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    page = ctx.require_page()
    selector = _require_str(args, "selector")
    value = str(args.get("value", ""))
    await page.wait_for_selector(selector)
    await page.select_option(selector, value)
    return success(f"Selected {selector} with: {value}")


async def hover(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    page = ctx.require_page()
    selector = _require_str(args, "selector")
    await page.wait_for_selector(selector)
    await page.hover(selector)
    return success(f"Hovered {selector}")


async def drag(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    """Drag from the center of one element to the center of another"""
    page = ctx.require_page()
    source_selector = _require_str(args, "sourceSelector")
    target_selector = _require_str(args, "targetSelector")

    source = await page.wait_for_selector(source_selector)
    target = await page.wait_for_selector(target_selector)
    source_box = await source.bounding_box() if source else None
    target_box = await target.bounding_box() if target else None
    if not source_box or not target_box:
        return error("Could not get element positions for drag operation")

    await page.mouse.move(
        source_box["x"] + source_box["width"] / 2, source_box["y"] + source_box["height"] / 2
    )
    await page.mouse.down()
    await page.mouse.move(
        target_box["x"] + target_box["width"] / 2, target_box["y"] + target_box["height"] / 2
    )
    await page.mouse.up()
    return success(f"Dragged element from {source_selector} to {target_selector}")


async def press_key(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    page = ctx.require_page()
    key = _require_str(args, "key")
    selector = args.get("selector")
    if selector:
        await page.wait_for_selector(selector)
        await page.focus(selector)
    await page.keyboard.press(key)
    return success(f"Pressed key: {key}")


async def evaluate(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    script = _require_str(args, "script")
    result = await ctx.require_page().evaluate(script)
    return success(["Executed JavaScript:", script, "Result:", _to_json(result, indent=2)])


async def custom_user_agent(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    """
    Report the user agent of the session.

    The user agent is applied when the browser context is created, so a
    session that already existed keeps the agent it was launched with.
    """
    requested = _require_str(args, "userAgent")
    current = await ctx.require_page().evaluate("() => navigator.userAgent")
    if current != requested:
        return error(
            f"User agent is '{current}'. A custom user agent only applies to a newly "
            "launched browser: call playwright_close first, then retry."
        )
    return success(f"User agent set to: {current}")


# ----------------------------------------------------------------------
# Annotation
# ----------------------------------------------------------------------


async def annotate(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    """Run an immediate annotation pass and return a summary plus the full list"""
    elements = await pipeline.scan(ctx.require_page(), ctx.manager.script_params)
    summary = "\n".join(
        f"[{el['index']}] {el['type'].upper()} "
        f"({el['boundingBox']['x']},{el['boundingBox']['y']}) - {el['text'] or el['selector']}"
        for el in elements
    )
    return success(
        [
            f"Found {len(elements)} interactive elements:\n\n{summary}",
            json.dumps({"annotated_elements": elements}),
        ]
    )


async def remove_annotations(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    await pipeline.remove(ctx.require_page())
    return success("Annotations removed from page")


async def click_by_index(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    index = _require_index(args)
    try:
        element, x, y = await resolver.click_by_index(ctx.require_page(), index)
    except ElementIndexError as e:
        return error(str(e))
    return success(f"Clicked element [{index}] ({element['type']}) at ({x}, {y})")


async def fill_by_index(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    index = _require_index(args)
    value = args.get("value")
    if not isinstance(value, str):
        raise ValueError("value parameter is required and must be a string")
    try:
        element = await resolver.fill_by_index(ctx.require_page(), index, value)
    except ElementIndexError as e:
        return error(str(e))
    return success(f"Filled element [{index}] ({element['type']}) with: {value}")


async def get_annotated_elements(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    """Compact view of the annotation cache, without triggering a scan"""
    elements = await pipeline.cached_elements(ctx.require_page())
    return success(json.dumps({"annotated_elements": resolver.compact_elements(elements)}))


async def get_annotated_elements_full(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    elements = await pipeline.cached_elements(ctx.require_page())
    return success(json.dumps({"annotated_elements": elements}))


async def set_auto_annotation(args: ToolArgs, ctx: ToolContext) -> ToolResult:
    """Toggle auto-annotation. Does not touch the browser."""
    enabled = args.get("enabled")
    if not isinstance(enabled, bool):
        raise ValueError("enabled parameter is required and must be a boolean")
    ctx.manager.set_auto_annotation(enabled)
    return success(f"Auto-annotation {'enabled' if enabled else 'disabled'}")


TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec("playwright_navigate", navigate),
    ToolSpec("playwright_screenshot", screenshot),
    ToolSpec("playwright_click", click),
    ToolSpec("playwright_iframe_click", iframe_click),
    ToolSpec("playwright_iframe_fill", iframe_fill),
    ToolSpec("playwright_fill", fill),
    ToolSpec("playwright_select", select),
    ToolSpec("playwright_hover", hover),
    ToolSpec("playwright_evaluate", evaluate),
    ToolSpec("playwright_custom_user_agent", custom_user_agent),
    ToolSpec("playwright_go_back", go_back),
    ToolSpec("playwright_go_forward", go_forward),
    ToolSpec("playwright_drag", drag),
    ToolSpec("playwright_press_key", press_key),
    ToolSpec("playwright_annotate", annotate),
    ToolSpec("playwright_remove_annotations", remove_annotations),
    ToolSpec("playwright_click_by_index", click_by_index),
    ToolSpec("playwright_fill_by_index", fill_by_index),
    ToolSpec("playwright_get_annotated_elements", get_annotated_elements),
    ToolSpec("playwright_get_annotated_elements_full", get_annotated_elements_full),
    ToolSpec("playwright_set_auto_annotation", set_auto_annotation, requires_browser=False),
)
