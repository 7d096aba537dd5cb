"""
Auto-annotation pipeline

Attaches the annotation script to pages and calls into the page-side
functions it exposes.
"""

from typing import TYPE_CHECKING, cast

from ..types import AnnotatedElement
from ..utils.logging_config import get_logger
from .script import (
    DEFAULT_PARAMS,
    IS_ARMED_JS,
    PASSES_JS,
    READ_CACHE_JS,
    REMOVE_JS,
    SCAN_JS,
    AnnotationScriptParams,
    build_init_script,
)

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = get_logger(__name__)


async def arm(page: "Page", params: AnnotationScriptParams = DEFAULT_PARAMS) -> None:
    """
    Install the annotation script so it runs on every document the page loads.

    The script runs before any page script and waits for document.body on
    its own.
    """
    await page.add_init_script(build_init_script(params))
    logger.debug(f"Annotation pipeline armed on page {page.url}")


async def run_now(page: "Page", params: AnnotationScriptParams = DEFAULT_PARAMS) -> None:
    """
    Run the annotation script on the current document.

    Used after navigations and on popup load. On a document that already
    carries the pipeline this only triggers a re-scan.
    """
    await page.evaluate(build_init_script(params))


async def scan(
    page: "Page", params: AnnotationScriptParams = DEFAULT_PARAMS
) -> list[AnnotatedElement]:
    """
    Run one annotation pass immediately and return its elements.

    Injects the pipeline first if the current document does not have it
    (for instance when auto-annotation is disabled).
    """
    if not await page.evaluate(IS_ARMED_JS):
        await run_now(page, params)
    elements = await page.evaluate(SCAN_JS)
    return cast(list[AnnotatedElement], elements or [])


async def remove(page: "Page") -> None:
    """Remove all overlay nodes from the current document"""
    await page.evaluate(REMOVE_JS)


async def cached_elements(page: "Page") -> list[AnnotatedElement]:
    """Read the annotation cache of the current document without scanning"""
    elements = await page.evaluate(READ_CACHE_JS)
    return cast(list[AnnotatedElement], elements or [])


async def pass_count(page: "Page") -> int:
    """Number of annotation passes run on the current document"""
    return int(await page.evaluate(PASSES_JS))
