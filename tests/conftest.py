"""
Pytest Configuration and Fixtures

This module provides shared fixtures for all tests.
"""

from unittest.mock import Mock

import pytest

from playwright_annotator_mcp.browser.lifecycle import SessionManager
from playwright_annotator_mcp.browser.session import SessionState

# Import browser fixtures to make them available to all tests
from tests.fixtures.browser_fixture import real_session  # noqa: F401
from tests.fixtures.fakes import FakePlaywright, make_browser, make_page


@pytest.fixture
def session() -> SessionState:
    """Provide a fresh session state."""
    return SessionState()


@pytest.fixture
def page() -> Mock:
    """Provide a fake page."""
    return make_page()


@pytest.fixture
def browser(page) -> Mock:
    """Provide a fake browser whose first page is the page fixture."""
    return make_browser([page])


@pytest.fixture
def fake_playwright(browser) -> FakePlaywright:
    """Provide a fake Playwright driver that launches the browser fixture."""
    return FakePlaywright([browser])


@pytest.fixture
def manager(session, fake_playwright) -> SessionManager:
    """Provide a session manager backed by the fake driver."""
    return SessionManager(session, playwright_factory=fake_playwright)
