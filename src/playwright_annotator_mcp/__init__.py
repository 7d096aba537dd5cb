"""Playwright Annotator MCP: browser automation with numbered element annotation."""
