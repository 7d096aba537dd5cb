"""
Tests for individual tool handlers against a fake page
"""

import base64
import json
from unittest.mock import AsyncMock, Mock

import pytest

from playwright_annotator_mcp.annotation.script import READ_CACHE_JS, build_init_script
from playwright_annotator_mcp.browser.lifecycle import SessionManager
from playwright_annotator_mcp.browser.session import SessionState
from playwright_annotator_mcp.tools import handlers
from playwright_annotator_mcp.tools.base import ToolContext
from playwright_annotator_mcp.tools.results import result_text
from tests.fixtures.fakes import FakePlaywright, make_page


@pytest.fixture
def ctx():
    manager = SessionManager(SessionState(), playwright_factory=FakePlaywright())
    return ToolContext(manager=manager, page=make_page())


def _element(index, element_type="button", x=10, y=20):
    return {
        "index": index,
        "type": element_type,
        "tagName": "button",
        "text": f"Item {index}",
        "selector": f"#item{index}",
        "boundingBox": {"x": x, "y": y, "width": 40, "height": 20},
        "attributes": {},
    }


class TestNavigate:
    @pytest.mark.asyncio
    async def test_defaults_and_annotation(self, ctx):
        result = await handlers.navigate({"url": "https://example.com"}, ctx)

        assert result_text(result) == "Navigated to https://example.com"
        ctx.page.goto.assert_awaited_once_with("https://example.com", timeout=30000, wait_until="load")
        ctx.page.evaluate.assert_awaited_once_with(build_init_script())

    @pytest.mark.asyncio
    async def test_no_annotation_when_disabled(self, ctx):
        ctx.manager.set_auto_annotation(False)

        await handlers.navigate({"url": "https://example.com", "waitUntil": "networkidle"}, ctx)

        ctx.page.evaluate.assert_not_awaited()
        assert ctx.page.goto.call_args.kwargs["wait_until"] == "networkidle"

    @pytest.mark.asyncio
    async def test_headers_and_local_storage(self, ctx):
        await handlers.navigate(
            {
                "url": "https://app.example.com",
                "headers": {"X-Test": "1"},
                "localStorage": {"token": "abc", "theme": "dark"},
                "timeout": 5000,
            },
            ctx,
        )

        ctx.page.set_extra_http_headers.assert_awaited_once_with({"X-Test": "1"})
        script = ctx.page.add_init_script.call_args.args[0]
        assert json.dumps({"token": "abc", "theme": "dark"}) in script
        assert 'window.location.href !== "about:blank"' in script
        assert ctx.page.goto.call_args.kwargs["timeout"] == 5000

    @pytest.mark.asyncio
    async def test_invalid_wait_until(self, ctx):
        with pytest.raises(ValueError, match="Invalid waitUntil"):
            await handlers.navigate({"url": "https://example.com", "waitUntil": "idle"}, ctx)
        ctx.page.goto.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_history(self, ctx):
        assert result_text(await handlers.go_back({}, ctx)) == "Navigated back in browser history"
        assert result_text(await handlers.go_forward({}, ctx)) == "Navigated forward in browser history"
        assert ctx.page.evaluate.await_count == 2


class TestScreenshot:
    @pytest.mark.asyncio
    async def test_returns_image_and_stores(self, ctx):
        result = await handlers.screenshot({"name": "home"}, ctx)

        image = result["content"][-1]
        assert image["type"] == "image"
        assert base64.b64decode(image["data"]) == b"\x89PNG fake"
        assert ctx.screenshots["home"] == image["data"]
        ctx.page.screenshot.assert_awaited_once_with(type="png", full_page=False)

    @pytest.mark.asyncio
    async def test_save_png(self, ctx, tmp_path):
        result = await handlers.screenshot(
            {"name": "login", "savePng": True, "downloadsDir": str(tmp_path), "storeBase64": False},
            ctx,
        )

        files = list(tmp_path.glob("login-*.png"))
        assert len(files) == 1
        assert files[0].read_bytes() == b"\x89PNG fake"
        assert all(block["type"] == "text" for block in result["content"])
        assert "Screenshot saved to:" in result_text(result)
        assert ctx.screenshots == {}

    @pytest.mark.asyncio
    async def test_save_png_stays_in_downloads_dir(self, ctx, tmp_path):
        downloads = tmp_path / "downloads"

        await handlers.screenshot(
            {"name": "../../escape", "savePng": True, "downloadsDir": str(downloads)}, ctx
        )

        assert len(list(downloads.glob("escape-*.png"))) == 1
        assert list(tmp_path.parent.glob("escape-*.png")) == []

    @pytest.mark.asyncio
    async def test_missing_element(self, ctx):
        ctx.page.query_selector = AsyncMock(return_value=None)

        result = await handlers.screenshot({"name": "x", "selector": "#nope"}, ctx)

        assert result["isError"] is True
        assert result_text(result) == "Element not found: #nope"

    @pytest.mark.asyncio
    async def test_element_screenshot(self, ctx):
        element = Mock(screenshot=AsyncMock(return_value=b"el"))
        ctx.page.query_selector = AsyncMock(return_value=element)

        await handlers.screenshot({"name": "card", "selector": ".card"}, ctx)

        element.screenshot.assert_awaited_once_with(type="png")
        ctx.page.screenshot.assert_not_awaited()


class TestInteraction:
    @pytest.mark.asyncio
    async def test_click_coordinate(self, ctx):
        result = await handlers.click({"coordinate": [12, 34], "button": "right"}, ctx)

        ctx.page.mouse.click.assert_awaited_once_with(12, 34, button="right")
        assert result_text(result) == "Clicked at coordinates (12, 34) with right button"

    @pytest.mark.asyncio
    async def test_click_needs_target(self, ctx):
        result = await handlers.click({}, ctx)
        assert result["isError"] is True

    @pytest.mark.asyncio
    async def test_fill_select_hover(self, ctx):
        await handlers.fill({"selector": "#q", "value": "shoes"}, ctx)
        await handlers.select({"selector": "#size", "value": "42"}, ctx)
        await handlers.hover({"selector": "#menu"}, ctx)

        ctx.page.fill.assert_awaited_once_with("#q", "shoes")
        ctx.page.select_option.assert_awaited_once_with("#size", "42")
        ctx.page.hover.assert_awaited_once_with("#menu")
        assert ctx.page.wait_for_selector.await_count == 3

    @pytest.mark.asyncio
    async def test_iframe_fill(self, ctx):
        locator = Mock(fill=AsyncMock())
        ctx.page.query_selector = AsyncMock(return_value=Mock())
        ctx.page.frame_locator = Mock(return_value=Mock(locator=Mock(return_value=locator)))

        result = await handlers.iframe_fill(
            {"iframeSelector": "#frame", "selector": "input", "value": "hi"}, ctx
        )

        ctx.page.frame_locator.assert_called_once_with("#frame")
        locator.fill.assert_awaited_once_with("hi")
        assert "inside iframe #frame" in result_text(result)

    @pytest.mark.asyncio
    async def test_iframe_missing(self, ctx):
        ctx.page.query_selector = AsyncMock(return_value=None)

        result = await handlers.iframe_click({"iframeSelector": "#frame", "selector": "a"}, ctx)

        assert result["isError"] is True
        assert result_text(result) == "Iframe not found: #frame"

    @pytest.mark.asyncio
    async def test_drag(self, ctx):
        source = Mock(bounding_box=AsyncMock(return_value={"x": 0, "y": 0, "width": 10, "height": 10}))
        target = Mock(bounding_box=AsyncMock(return_value={"x": 100, "y": 50, "width": 20, "height": 20}))
        ctx.page.wait_for_selector = AsyncMock(side_effect=[source, target])

        await handlers.drag({"sourceSelector": "#a", "targetSelector": "#b"}, ctx)

        moves = [call.args for call in ctx.page.mouse.move.await_args_list]
        assert moves == [(5, 5), (110, 60)]
        ctx.page.mouse.down.assert_awaited_once()
        ctx.page.mouse.up.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_drag_unmeasurable(self, ctx):
        hidden = Mock(bounding_box=AsyncMock(return_value=None))
        ctx.page.wait_for_selector = AsyncMock(return_value=hidden)

        result = await handlers.drag({"sourceSelector": "#a", "targetSelector": "#b"}, ctx)

        assert result["isError"] is True
        assert result_text(result) == "Could not get element positions for drag operation"
        ctx.page.mouse.down.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_press_key_with_focus(self, ctx):
        await handlers.press_key({"key": "Enter", "selector": "#q"}, ctx)

        ctx.page.focus.assert_awaited_once_with("#q")
        ctx.page.keyboard.press.assert_awaited_once_with("Enter")

    @pytest.mark.asyncio
    async def test_evaluate(self, ctx):
        ctx.page.evaluate = AsyncMock(return_value={"title": "Example"})

        result = await handlers.evaluate({"script": "({title: document.title})"}, ctx)

        texts = [block["text"] for block in result["content"]]
        assert texts[0] == "Executed JavaScript:"
        assert json.loads(texts[3]) == {"title": "Example"}

    @pytest.mark.asyncio
    async def test_custom_user_agent(self, ctx):
        ctx.page.evaluate = AsyncMock(return_value="AnnotatorBot/1.0")
        ok = await handlers.custom_user_agent({"userAgent": "AnnotatorBot/1.0"}, ctx)
        assert result_text(ok) == "User agent set to: AnnotatorBot/1.0"

        ctx.page.evaluate = AsyncMock(return_value="Mozilla/5.0")
        mismatch = await handlers.custom_user_agent({"userAgent": "AnnotatorBot/1.0"}, ctx)
        assert mismatch["isError"] is True
        assert "playwright_close" in result_text(mismatch)


class TestAnnotationTools:
    @pytest.mark.asyncio
    async def test_annotate_summary(self, ctx):
        elements = [_element(0), _element(1, "link", x=5, y=6)]
        ctx.page.evaluate = AsyncMock(side_effect=[True, elements])

        result = await handlers.annotate({}, ctx)

        summary = result["content"][0]["text"]
        assert summary.startswith("Found 2 interactive elements:")
        assert "[1] LINK (5,6) - Item 1" in summary
        assert json.loads(result["content"][1]["text"]) == {"annotated_elements": elements}

    @pytest.mark.asyncio
    async def test_get_annotated_elements_reads_cache_only(self, ctx):
        ctx.page.evaluate = AsyncMock(return_value=[_element(0)])

        result = await handlers.get_annotated_elements({}, ctx)

        ctx.page.evaluate.assert_awaited_once_with(READ_CACHE_JS)
        assert json.loads(result_text(result)) == {
            "annotated_elements": [{"i": 0, "t": "button", "x": "Item 0"}]
        }

    @pytest.mark.asyncio
    async def test_get_annotated_elements_full(self, ctx):
        ctx.page.evaluate = AsyncMock(return_value=[_element(0)])
        result = await handlers.get_annotated_elements_full({}, ctx)
        assert json.loads(result_text(result))["annotated_elements"][0]["selector"] == "#item0"

    @pytest.mark.asyncio
    async def test_click_by_index_not_found(self, ctx):
        ctx.page.evaluate = AsyncMock(return_value=[_element(i) for i in range(5)])

        result = await handlers.click_by_index({"index": 7}, ctx)

        assert result["isError"] is True
        assert result["retryable"] is False
        assert "Available indices: 0-4" in result_text(result)
        ctx.page.mouse.click.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_click_by_index(self, ctx):
        ctx.page.evaluate = AsyncMock(return_value=[_element(0)])

        result = await handlers.click_by_index({"index": 0}, ctx)

        ctx.page.mouse.click.assert_awaited_once_with(30, 30)
        assert result_text(result) == "Clicked element [0] (button) at (30, 30)"

    @pytest.mark.asyncio
    async def test_index_must_be_int(self, ctx):
        with pytest.raises(ValueError):
            await handlers.click_by_index({"index": True}, ctx)

    @pytest.mark.asyncio
    async def test_fill_by_index(self, ctx):
        ctx.page.evaluate = AsyncMock(return_value=[_element(0, "textarea")])

        result = await handlers.fill_by_index({"index": 0, "value": "notes"}, ctx)

        ctx.page.keyboard.type.assert_awaited_once_with("notes")
        assert result_text(result) == "Filled element [0] (textarea) with: notes"

    @pytest.mark.asyncio
    async def test_set_auto_annotation(self, ctx):
        result = await handlers.set_auto_annotation({"enabled": False}, ctx)

        assert result_text(result) == "Auto-annotation disabled"
        assert ctx.session.auto_annotation is False

        with pytest.raises(ValueError):
            await handlers.set_auto_annotation({"enabled": "yes"}, ctx)
