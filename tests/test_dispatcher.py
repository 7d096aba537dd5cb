"""
Tests for ToolDispatcher routing, acquisition and fault mapping
"""

from unittest.mock import AsyncMock

import pytest

from playwright_annotator_mcp.browser.config import load_server_config
from playwright_annotator_mcp.browser.lifecycle import SessionManager
from playwright_annotator_mcp.tools.base import ToolSpec
from playwright_annotator_mcp.tools.dispatcher import ToolDispatcher
from playwright_annotator_mcp.tools.handlers import TOOL_SPECS
from playwright_annotator_mcp.tools.results import result_text
from tests.fixtures.fakes import FakePlaywright


@pytest.fixture
def dispatcher(manager, monkeypatch):
    monkeypatch.delenv("PW_ANNOTATOR_BROWSER", raising=False)
    monkeypatch.delenv("PW_ANNOTATOR_HEADLESS", raising=False)
    return ToolDispatcher(manager, load_server_config())


class TestRouting:
    @pytest.mark.asyncio
    async def test_unknown_tool(self, dispatcher):
        result = await dispatcher.dispatch("playwright_teleport", {})

        assert result["isError"] is True
        assert result["retryable"] is False
        assert result_text(result) == "Unknown tool: playwright_teleport"

    def test_every_tool_registered(self, dispatcher):
        names = dispatcher.tool_names
        assert "playwright_close" in names
        for spec in TOOL_SPECS:
            assert spec.name in names
        assert len(names) == len(set(names))

    @pytest.mark.asyncio
    async def test_successful_call(self, dispatcher, session, page):
        result = await dispatcher.dispatch("playwright_click", {"selector": "#go"})

        assert result["isError"] is False
        assert result_text(result) == "Clicked element: #go"
        page.click.assert_awaited_once_with("#go", button="left")
        assert session.page is page

    @pytest.mark.asyncio
    async def test_session_free_tool_does_not_launch(self, dispatcher, session, fake_playwright):
        result = await dispatcher.dispatch("playwright_set_auto_annotation", {"enabled": False})

        assert result_text(result) == "Auto-annotation disabled"
        assert session.auto_annotation is False
        assert session.browser is None
        assert fake_playwright.start_calls == 0

    @pytest.mark.asyncio
    async def test_invalid_browser_type_is_plain_error(self, dispatcher, fake_playwright):
        result = await dispatcher.dispatch("playwright_navigate", {"url": "https://a.b", "browserType": "lynx"})

        assert result["isError"] is True
        assert result["retryable"] is False
        assert "Unsupported browser type 'lynx'" in result_text(result)
        assert fake_playwright.start_calls == 0

    @pytest.mark.asyncio
    async def test_user_agent_only_for_custom_user_agent_tool(self, dispatcher, browser):
        await dispatcher.dispatch("playwright_hover", {"selector": "#a", "userAgent": "Bot/1"})
        assert "user_agent" not in browser.new_context.call_args.kwargs

    @pytest.mark.asyncio
    async def test_custom_registry(self, manager):
        async def ping(args, ctx):
            return {"content": [{"type": "text", "text": "pong"}], "isError": False, "retryable": False}

        dispatcher = ToolDispatcher(manager, load_server_config(), tools=[ToolSpec("ping", ping, False)])

        assert result_text(await dispatcher.dispatch("ping")) == "pong"


class TestFaults:
    @pytest.mark.asyncio
    async def test_connection_loss_resets_and_is_retryable(self, dispatcher, session, page, browser):
        await dispatcher.dispatch("playwright_hover", {"selector": "#menu"})
        assert session.is_consistent()
        page.click = AsyncMock(side_effect=Exception("page.click: Target closed"))

        result = await dispatcher.dispatch("playwright_click", {"selector": "#go"})

        assert result["isError"] is True
        assert result["retryable"] is True
        assert result_text(result) == (
            "Browser connection error: page.click: Target closed. "
            "Browser state has been reset, please try again."
        )
        assert session.browser is None
        assert session.page is None
        assert session.is_consistent()
        browser.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_generic_error_leaves_session(self, dispatcher, session, page, browser):
        page.click = AsyncMock(side_effect=TimeoutError("selector not found: #missing"))

        result = await dispatcher.dispatch("playwright_click", {"selector": "#missing"})

        assert result["isError"] is True
        assert result["retryable"] is False
        assert result_text(result) == "selector not found: #missing"
        assert session.browser is browser
        assert session.page is page
        assert session.is_consistent()

    @pytest.mark.asyncio
    async def test_retry_after_reset_relaunches(self, session):
        fake = FakePlaywright()
        manager = SessionManager(session, playwright_factory=fake)
        dispatcher = ToolDispatcher(manager, load_server_config())

        await dispatcher.dispatch("playwright_go_back", {})
        assert session.is_consistent()
        first_page_browser = session.browser
        session.page.go_back = AsyncMock(side_effect=Exception("Browser has been disconnected"))

        failed = await dispatcher.dispatch("playwright_go_back", {})
        assert session.is_consistent()
        retried = await dispatcher.dispatch("playwright_go_back", {})

        assert failed["retryable"] is True
        assert retried["isError"] is False
        assert session.browser is not first_page_browser
        assert session.is_consistent()
        assert fake.driver.chromium.launch.await_count == 2

    @pytest.mark.asyncio
    async def test_dead_driver_replaced_on_retry(self, session):
        dead = FakePlaywright()
        fresh = FakePlaywright()
        drivers = iter([dead, fresh])
        manager = SessionManager(session, playwright_factory=lambda: next(drivers))
        dispatcher = ToolDispatcher(manager, load_server_config())

        await dispatcher.dispatch("playwright_go_back", {})
        driver_gone = Exception("Connection closed while reading from the driver")
        dead.driver.chromium.launch = AsyncMock(side_effect=driver_gone)
        session.page.go_back = AsyncMock(side_effect=driver_gone)

        failed = await dispatcher.dispatch("playwright_go_back", {})
        assert session.is_consistent()
        retried = await dispatcher.dispatch("playwright_go_back", {})

        assert failed["retryable"] is True
        assert retried["isError"] is False
        dead.driver.stop.assert_awaited_once()
        assert fresh.start_calls == 1
        assert session.playwright is fresh.driver
        assert session.is_consistent()

    @pytest.mark.asyncio
    async def test_initialization_failure(self, session):
        fake = FakePlaywright()
        fake.driver.chromium.launch = AsyncMock(side_effect=RuntimeError("Executable doesn't exist"))
        dispatcher = ToolDispatcher(SessionManager(session, playwright_factory=fake), load_server_config())

        result = await dispatcher.dispatch("playwright_navigate", {"url": "https://example.com"})

        assert result["isError"] is True
        assert result["retryable"] is True
        assert result_text(result) == (
            "Failed to initialize browser: Executable doesn't exist. Please try again."
        )
        assert fake.driver.chromium.launch.await_count == 2
        assert session.browser is None
        assert session.is_consistent()

    @pytest.mark.asyncio
    async def test_handler_value_error(self, dispatcher, session):
        result = await dispatcher.dispatch("playwright_click_by_index", {"index": "three"})

        assert result["isError"] is True
        assert result["retryable"] is False
        assert result_text(result) == "index parameter is required and must be a number"
        assert session.is_consistent()


class TestClose:
    @pytest.mark.asyncio
    async def test_close_without_browser(self, dispatcher, session):
        result = await dispatcher.dispatch("playwright_close", {})
        assert result["isError"] is False
        assert result_text(result) == "No browser instance to close"
        assert session.is_consistent()

    @pytest.mark.asyncio
    async def test_close_with_browser(self, dispatcher, session, browser):
        await dispatcher.dispatch("playwright_hover", {"selector": "#a"})
        assert session.is_consistent()

        result = await dispatcher.dispatch("playwright_close", {})

        assert result_text(result) == "Browser closed successfully"
        browser.close.assert_awaited_once()
        assert session.browser is None
        assert session.is_consistent()

    @pytest.mark.asyncio
    async def test_close_disconnected_browser(self, dispatcher, session, browser):
        await dispatcher.dispatch("playwright_hover", {"selector": "#a"})
        assert session.is_consistent()
        browser.is_connected.return_value = False

        result = await dispatcher.dispatch("playwright_close", {})

        assert result_text(result) == "Browser closed successfully"
        browser.close.assert_not_awaited()
        assert session.browser is None
        assert session.is_consistent()

    @pytest.mark.asyncio
    async def test_close_does_not_launch(self, dispatcher, fake_playwright):
        await dispatcher.dispatch("playwright_close", {})
        assert fake_playwright.start_calls == 0
