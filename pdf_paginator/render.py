"""
Render Handoff.

Loads a document into Chromium via Playwright, runs the pagination
engine against the live page, and prints the result to PDF with page
breaks already baked into the geometry.
"""

import asyncio
import uuid
from dataclasses import dataclass
from typing import Optional

from .browser_surface import BrowserLayoutSurface
from .config import PaginationOptions, PaginationSettings, get_settings
from .document import build_render_document, sanitize_html, validate_html_input
from .engine import PaginationEngine
from .errors import PaginationError, RasterizerError
from .logger import get_logger
from .models import PageGeometry, PaginationResult
from .trace import PaginationTracer, create_tracer

# Neutralizes the rasterizer's own break heuristics (break mode "none")
BREAK_MODE_NONE_CSS = """
*, *::before, *::after {
    break-before: auto !important;
    break-after: auto !important;
    break-inside: auto !important;
    page-break-before: auto !important;
    page-break-after: auto !important;
    page-break-inside: auto !important;
}
@page {
    margin: 0;
}
"""


@dataclass
class RenderOutcome:
    """PDF bytes and the pagination result that produced them."""
    pdf_bytes: bytes
    result: PaginationResult


def pdf_parameters(geometry: PageGeometry, page_count: int) -> dict:
    """
    Keyword arguments for page.pdf().

    The page is exactly render width x H pixels with zero margins: the
    margins already exist in the content as spacers.
    """
    return {
        "width": f"{geometry.render_width_px}px",
        "height": f"{int(round(geometry.page_height_px))}px",
        "print_background": True,
        "prefer_css_page_size": False,
        "margin": {"top": "0", "right": "0", "bottom": "0", "left": "0"},
        # The final-page buffer must not spill onto an extra sheet
        "page_ranges": f"1-{page_count}",
    }


async def wait_for_content(page, settle_ms: int) -> None:
    """Wait until network, fonts and styles have settled before measuring."""
    await page.wait_for_load_state("networkidle")
    await page.evaluate("() => document.fonts ? document.fonts.ready.then(() => true) : true")
    if settle_ms > 0:
        await page.wait_for_timeout(settle_ms)


async def hand_off(page, geometry: PageGeometry, page_count: int) -> bytes:
    """Print the paginated page to PDF with rasterizer-side breaking disabled."""
    await page.add_style_tag(content=BREAK_MODE_NONE_CSS)
    # Print the exact layout the engine measured
    await page.emulate_media(media="screen")
    return await page.pdf(**pdf_parameters(geometry, page_count))


async def render_paginated_pdf(
    html: str,
    options: Optional[PaginationOptions] = None,
    settings: Optional[PaginationSettings] = None,
    tracer: Optional[PaginationTracer] = None,
) -> RenderOutcome:
    """
    Paginate ``html`` and render it to PDF.

    Args:
        html: Document markup with a content root
        options: Pagination options (defaults from settings)
        settings: Service settings (cached settings by default)
        tracer: Trace event collector (created per run by default)

    Returns:
        RenderOutcome with the PDF bytes and the pagination result

    Raises:
        InputError: For empty, oversized or rootless markup
        RasterizerError: If Playwright is unavailable or rendering fails
    """
    settings = settings or get_settings()
    options = options or settings.default_options()
    run_id = tracer.run_id if tracer else uuid.uuid4().hex
    tracer = tracer or create_tracer(run_id)
    logger = get_logger(__name__, run_id=run_id, stage="render")

    validate_html_input(html, settings.max_html_chars)
    document = build_render_document(
        sanitize_html(html),
        options.render_width_px,
        options.content_root_selector,
    )
    geometry = options.geometry()

    try:
        # Import here to avoid loading Playwright on startup
        from playwright.async_api import async_playwright
    except ImportError as e:
        raise RasterizerError("Playwright is not installed", cause=e)

    try:
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=settings.playwright_headless)
            try:
                page = await browser.new_page(
                    viewport={"width": options.render_width_px, "height": int(round(geometry.page_height_px))}
                )
                page.set_default_timeout(settings.playwright_timeout)

                await page.set_content(document, wait_until="networkidle")
                await wait_for_content(page, settings.content_settle_ms)

                surface = BrowserLayoutSurface(page, root_selector=options.content_root_selector)
                engine = PaginationEngine(options, tracer=tracer, run_id=run_id)
                result = await engine.run(surface)

                logger.info(f"Handing {result.page_count} page(s) to the rasterizer")
                pdf_bytes = await hand_off(page, geometry, result.page_count)
            finally:
                await browser.close()
    except PaginationError:
        raise
    except asyncio.TimeoutError as e:
        logger.error("PDF rendering timed out")
        raise RasterizerError(f"Rendering timed out after {settings.playwright_timeout}ms", cause=e)
    except Exception as e:
        logger.error(f"PDF rendering failed: {str(e)}")
        raise RasterizerError(f"Rendering failed: {str(e)}", cause=e)

    if not pdf_bytes:
        raise RasterizerError("Rasterizer returned an empty PDF")

    return RenderOutcome(pdf_bytes=pdf_bytes, result=result)
