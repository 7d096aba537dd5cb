"""Tool handlers and the dispatcher that runs them."""

from .base import ToolContext, ToolSpec
from .dispatcher import ToolDispatcher

__all__ = ["ToolContext", "ToolSpec", "ToolDispatcher"]
