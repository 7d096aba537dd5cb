"""
Configuration management for Playwright Annotator MCP

Loads server defaults from environment variables (optionally from a .env
file) and turns loosely-typed tool arguments into BrowserSettings.
"""

import logging
import os
from pathlib import Path
from typing import Any, TypedDict, cast

from dotenv import load_dotenv

from ..types import BrowserSettings, EngineName, ProxySettings

logger = logging.getLogger(__name__)

# Load environment variables from .env file
# Try multiple paths for .env file
env_loaded = False
for env_path in [
    Path.cwd() / ".env",
    Path(__file__).parent.parent.parent.parent / ".env",
    Path.home() / ".env",
]:
    if env_path.exists():
        logger.info(f"Loading environment from: {env_path}")
        load_dotenv(env_path)
        env_loaded = True
        break

if not env_loaded:
    logger.warning("No .env file found, using system environment variables only")


SUPPORTED_ENGINES: tuple[EngineName, ...] = ("chromium", "firefox", "webkit")

DEFAULT_ENGINE: EngineName = "chromium"
DEFAULT_VIEWPORT_WIDTH = 1280
DEFAULT_VIEWPORT_HEIGHT = 720
DEFAULT_NAVIGATION_TIMEOUT_MS = 30000
DEFAULT_WAIT_UNTIL = "load"

EXECUTABLE_PATH_ENV = "CHROME_EXECUTABLE_PATH"
ENV_PREFIX = "PW_ANNOTATOR_"


class ServerConfig(TypedDict):
    """Process-wide defaults read from the environment"""

    headless: bool
    engine: EngineName
    viewport_width: int
    viewport_height: int
    auto_annotate: bool
    log_file: str
    log_level: str


def _get_bool_env(key: str, default: bool) -> bool:
    """Get boolean environment variable"""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def _get_int_env(key: str, default: int) -> int:
    """Get integer environment variable"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def validate_engine(engine: str | None) -> EngineName:
    """
    Normalize an engine name.

    Args:
        engine: Engine name from a tool call or the environment (None means default)

    Returns:
        The engine name

    Raises:
        ValueError: If the engine is not supported
    """
    if engine is None or engine == "":
        return DEFAULT_ENGINE
    normalized = engine.strip().lower()
    if normalized not in SUPPORTED_ENGINES:
        raise ValueError(
            f"Unsupported browser type '{engine}'. Must be one of: {', '.join(SUPPORTED_ENGINES)}"
        )
    return cast(EngineName, normalized)


def load_server_config() -> ServerConfig:
    """
    Load server defaults from PW_ANNOTATOR_* environment variables.

    Returns:
        ServerConfig with all settings

    Raises:
        ValueError: If PW_ANNOTATOR_BROWSER names an unsupported engine
    """
    return {
        "headless": _get_bool_env(f"{ENV_PREFIX}HEADLESS", False),
        "engine": validate_engine(os.getenv(f"{ENV_PREFIX}BROWSER")),
        "viewport_width": _get_int_env(f"{ENV_PREFIX}VIEWPORT_WIDTH", DEFAULT_VIEWPORT_WIDTH),
        "viewport_height": _get_int_env(f"{ENV_PREFIX}VIEWPORT_HEIGHT", DEFAULT_VIEWPORT_HEIGHT),
        "auto_annotate": _get_bool_env(f"{ENV_PREFIX}AUTO_ANNOTATE", True),
        "log_file": os.getenv(f"{ENV_PREFIX}LOG_FILE", "logs/playwright-annotator-mcp.log"),
        "log_level": os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO").upper(),
    }


def get_executable_path() -> str | None:
    """Browser executable override, read fresh at every launch"""
    return os.getenv(EXECUTABLE_PATH_ENV) or None


def _parse_proxy(raw: Any) -> ProxySettings | None:
    """Validate a proxy descriptor from tool arguments"""
    if raw is None:
        return None
    if not isinstance(raw, dict) or not raw.get("server"):
        raise ValueError("proxy must be an object with a 'server' field")

    proxy: ProxySettings = {"server": str(raw["server"])}
    for optional in ("username", "password", "bypass"):
        if raw.get(optional):
            proxy[optional] = str(raw[optional])  # type: ignore[literal-required]
    return proxy


def build_browser_settings(
    args: dict[str, Any],
    defaults: ServerConfig | None = None,
    include_user_agent: bool = False,
) -> BrowserSettings:
    """
    Build BrowserSettings from tool arguments.

    Call arguments win over environment defaults. The user agent is only
    taken from the arguments when include_user_agent is set, which the
    dispatcher does for the custom user agent tool alone.

    Args:
        args: Raw tool arguments (width, height, browserType, headless, proxy, userAgent)
        defaults: Server defaults (loaded from the environment when omitted)
        include_user_agent: Whether to honor args["userAgent"]

    Returns:
        BrowserSettings for SessionManager.acquire_page

    Raises:
        ValueError: If browserType or proxy is invalid
    """
    if defaults is None:
        defaults = load_server_config()

    width = args.get("width") or defaults["viewport_width"]
    height = args.get("height") or defaults["viewport_height"]
    headless = args.get("headless")

    settings: BrowserSettings = {
        "viewport": {"width": int(width), "height": int(height)},
        "headless": defaults["headless"] if headless is None else bool(headless),
        "engine": validate_engine(args.get("browserType") or defaults["engine"]),
        "proxy": _parse_proxy(args.get("proxy")),
        "user_agent": args.get("userAgent") if include_user_agent else None,
    }
    return settings


def load_log_settings() -> tuple[str, int]:
    """
    Log file path and numeric level from the environment.

    Kept apart from load_server_config so logging can be set up before
    anything else is validated. Unknown level names fall back to INFO.
    """
    log_file = os.getenv(f"{ENV_PREFIX}LOG_FILE", "logs/playwright-annotator-mcp.log")
    level = getattr(logging, os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO").upper(), None)
    return log_file, level if isinstance(level, int) else logging.INFO
