"""
PDF Paginator Service - FastAPI application for paginated PDF generation.

Provides an endpoint that paginates HTML into fixed-height pages without
splitting atomic blocks, then renders it to PDF using Playwright/Chromium.
"""

import asyncio
import uuid
from datetime import datetime
from io import BytesIO
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, ValidationError

from .config import PaginationOptions, get_settings, validate_config_on_startup
from .document import build_pdf_filename
from .errors import InputError, RasterizerError
from .logger import get_logger, set_global_debug_mode, setup_logging
from .models import RelocationGranularity
from .render import render_paginated_pdf
from .trace import create_tracer

settings = get_settings()
setup_logging(settings.log_level, settings.log_format)
set_global_debug_mode(settings.debug_mode)
logger = get_logger(__name__)

app = FastAPI(
    title="PDF Paginator",
    version="0.1.0",
    description="Fixed-page pagination and PDF generation using Playwright/Chromium"
)

# Semaphore for rate limiting
_pdf_semaphore = asyncio.Semaphore(settings.max_concurrent_pdfs)

# Playwright readiness state
_playwright_ready = False
_playwright_error: Optional[str] = None


# ============================================================================
# Startup Event - Validate configuration and Playwright
# ============================================================================

@app.on_event("startup")
async def validate_playwright_on_startup():
    """
    Validate configuration and the Playwright/Chromium installation.

    The service won't report as healthy if Playwright can't actually
    generate PDFs.
    """
    global _playwright_ready, _playwright_error

    validate_config_on_startup()
    logger.info("PDF Paginator starting - validating Playwright installation...")

    try:
        from playwright.async_api import async_playwright

        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=settings.playwright_headless)
            try:
                page = await browser.new_page()
                await page.set_content("<html><body><h1>Test</h1></body></html>")
                test_pdf = await page.pdf(format='A4')
            finally:
                await browser.close()

            if len(test_pdf) > 0:
                _playwright_ready = True
                logger.info(f"Playwright validation successful - generated {len(test_pdf)} byte test PDF")
            else:
                _playwright_error = "Test PDF generation returned empty result"
                logger.error(f"Playwright validation failed: {_playwright_error}")

    except Exception as e:
        _playwright_error = str(e)
        logger.error(f"Playwright validation failed: {_playwright_error}")
        logger.error("PDF generation will not work until this is resolved.")


# ============================================================================
# Request/Response Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    timestamp: datetime
    active_renders: int
    max_concurrent: int
    playwright_ready: bool = True
    playwright_error: Optional[str] = None


class RenderPDFRequest(BaseModel):
    """HTML to paginated PDF request."""
    html: str = Field(..., description="HTML document with a content root")
    pageSize: Optional[str] = Field(None, description="Page size: 'a4' or 'letter'")
    renderWidthPx: Optional[int] = Field(None, description="Layout width in CSS pixels")
    pageHeightPx: Optional[float] = Field(None, description="Explicit page height in CSS pixels")
    bottomSafeMarginPx: Optional[float] = Field(None, description="Reserved zone at the foot of each page")
    topGapPx: Optional[float] = Field(None, description="Leading margin of each page after the first")
    relocationGranularity: Optional[RelocationGranularity] = Field(None, description="Atomic block granularity")
    relocationDepth: Optional[int] = Field(None, description="Depth for 'depth' granularity")
    contentRootSelector: Optional[str] = Field(None, description="CSS selector of the content root")
    maxDirectPasses: Optional[int] = Field(None, description="Direct-break pass budget")
    maxBoundarySweepPasses: Optional[int] = Field(None, description="Boundary sweep pass budget")
    filename: Optional[str] = Field(None, description="Download filename")

    def to_options(self, defaults: PaginationOptions) -> PaginationOptions:
        """Merge request overrides into the service defaults."""
        overrides = self.model_dump(exclude_none=True, exclude={"html", "filename"})
        data = defaults.model_dump(by_alias=True)
        data.update(overrides)
        return PaginationOptions.model_validate(data)


# ============================================================================
# Health Check Endpoint
# ============================================================================

@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Health check endpoint for container orchestration.

    Returns HTTP 503 if Playwright validation failed on startup.
    """
    if not _playwright_ready:
        raise HTTPException(
            status_code=503,
            detail={
                "status": "unhealthy",
                "timestamp": datetime.utcnow().isoformat(),
                "active_renders": settings.max_concurrent_pdfs - _pdf_semaphore._value,
                "max_concurrent": settings.max_concurrent_pdfs,
                "playwright_ready": False,
                "playwright_error": _playwright_error,
                "message": "PDF service is unhealthy - Playwright/Chromium not available"
            }
        )

    return HealthResponse(
        status="healthy",
        timestamp=datetime.utcnow(),
        active_renders=settings.max_concurrent_pdfs - _pdf_semaphore._value,
        max_concurrent=settings.max_concurrent_pdfs,
        playwright_ready=True,
        playwright_error=None
    )


# ============================================================================
# PDF Generation Endpoint
# ============================================================================

@app.post("/render-pdf")
async def render_pdf(request: RenderPDFRequest):
    """
    Paginate HTML and render it to PDF.

    Args:
        request: HTML content and optional pagination overrides

    Returns:
        StreamingResponse with PDF binary data and pagination headers

    Raises:
        HTTPException: 400 for invalid input, 500 for rendering failures, 503 for overload
    """
    if not request.html or not request.html.strip():
        raise HTTPException(status_code=400, detail="HTML content is required")

    try:
        options = request.to_options(settings.default_options())
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid pagination options: {e.errors()[0]['msg']}")

    if _pdf_semaphore._value <= 0:
        logger.warning("PDF service overloaded, rejecting request")
        raise HTTPException(
            status_code=503,
            detail="Service overloaded. Too many concurrent PDF operations."
        )

    async with _pdf_semaphore:
        run_id = uuid.uuid4().hex
        logger.info(f"Starting paginated PDF render (run={run_id[:8]}, pageSize={options.page_size})")
        try:
            outcome = await render_paginated_pdf(
                request.html,
                options=options,
                settings=settings,
                tracer=create_tracer(run_id),
            )
        except InputError as e:
            logger.warning(f"Rejected document ({e.precondition}): {e.message}")
            raise HTTPException(status_code=400, detail=e.message)
        except RasterizerError as e:
            logger.error(f"PDF rendering failed: {e.message}")
            raise HTTPException(status_code=500, detail=e.message)

    result = outcome.result
    filename = build_pdf_filename(request.filename)
    logger.info(
        f"Paginated PDF completed: {filename} ({result.page_count} pages, {result.state.value}, "
        f"{len(result.warnings)} warnings)"
    )

    return StreamingResponse(
        BytesIO(outcome.pdf_bytes),
        media_type='application/pdf',
        headers={
            'Content-Disposition': f'attachment; filename="{filename}"',
            'X-Page-Count': str(result.page_count),
            'X-Pagination-State': result.state.value,
            'X-Pagination-Warnings': str(len(result.warnings)),
        }
    )
