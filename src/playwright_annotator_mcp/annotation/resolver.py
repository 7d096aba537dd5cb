"""
Element index resolver

Maps annotation indices to viewport coordinates for index-based click and
fill. Coordinates come from the last annotation pass, so any layout shift
between annotation and action makes them stale.
"""

import math
from typing import TYPE_CHECKING

from ..browser.errors import ElementIndexError
from ..types import AnnotatedElement, CompactElement
from . import pipeline

if TYPE_CHECKING:
    from playwright.async_api import Page

FILLABLE_TYPES = frozenset({"input", "textarea", "clickable"})
COMPACT_TEXT_LIMIT = 50


async def get_elements(page: "Page") -> list[AnnotatedElement]:
    """
    Get the current annotation list.

    Reads the page cache and only scans when the cache is empty.
    """
    elements = await pipeline.cached_elements(page)
    if not elements:
        elements = await pipeline.scan(page)
    return elements


async def resolve(page: "Page", index: int) -> AnnotatedElement:
    """
    Look up an annotated element by index.

    Raises:
        ElementIndexError: If the index is not in the current annotation list
    """
    elements = await get_elements(page)
    for element in elements:
        if element["index"] == index:
            return element
    raise ElementIndexError(index, len(elements))


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def element_center(element: AnnotatedElement) -> tuple[int, int]:
    """Center of the element's bounding box, rounded half-up like Math.round"""
    box = element["boundingBox"]
    return (
        _round_half_up(box["x"] + box["width"] / 2),
        _round_half_up(box["y"] + box["height"] / 2),
    )


async def click_by_index(page: "Page", index: int) -> tuple[AnnotatedElement, int, int]:
    """
    Click the center of an annotated element.

    Overlays are removed first so they cannot take the click.

    Returns:
        (element, x, y) where x/y are the clicked viewport coordinates
    """
    element = await resolve(page, index)
    x, y = element_center(element)
    await pipeline.remove(page)
    await page.mouse.click(x, y)
    return element, x, y


async def fill_by_index(page: "Page", index: int, value: str) -> AnnotatedElement:
    """
    Focus an annotated element by clicking it, replace its content and type value.

    Raises:
        ElementIndexError: If the index is not in the current annotation list
        ValueError: If the element is not a text-entry element
    """
    element = await resolve(page, index)
    if element["type"] not in FILLABLE_TYPES:
        raise ValueError(
            f"Element [{index}] is a {element['type']} ({element['tagName']}), "
            "not a fillable input"
        )

    x, y = element_center(element)
    await pipeline.remove(page)
    await page.mouse.click(x, y)
    await page.keyboard.press("ControlOrMeta+A")
    await page.keyboard.press("Delete")
    await page.keyboard.type(value)
    return element


def compact_elements(elements: list[AnnotatedElement]) -> list[CompactElement]:
    """
    Reduce annotated elements to the fields a language model needs.

    Empty text is omitted; href and placeholder are only included when present.
    """
    compact: list[CompactElement] = []
    for element in elements:
        entry: CompactElement = {"i": element["index"], "t": element["type"]}
        text = (element.get("text") or "").strip()
        if text:
            entry["x"] = text[:COMPACT_TEXT_LIMIT]
        attributes = element.get("attributes") or {}
        if attributes.get("href"):
            entry["h"] = attributes["href"]
        if attributes.get("placeholder"):
            entry["p"] = attributes["placeholder"]
        compact.append(entry)
    return compact
