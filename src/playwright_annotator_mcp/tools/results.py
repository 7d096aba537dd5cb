"""Constructors for ToolResult values"""

from ..types import ImageBlock, TextBlock, ToolResult


def text_block(text: str) -> TextBlock:
    return {"type": "text", "text": text}


def image_block(data: str, mime_type: str = "image/png") -> ImageBlock:
    return {"type": "image", "data": data, "mimeType": mime_type}


def success(text: str | list[str]) -> ToolResult:
    """Successful result with one text block per message"""
    messages = [text] if isinstance(text, str) else text
    return {
        "content": [text_block(message) for message in messages],
        "isError": False,
        "retryable": False,
    }


def error(message: str, retryable: bool = False) -> ToolResult:
    """Error result carrying a single message"""
    return {"content": [text_block(message)], "isError": True, "retryable": retryable}


def result_text(result: ToolResult) -> str:
    """Join the text blocks of a result"""
    return "\n".join(block["text"] for block in result["content"] if block["type"] == "text")
