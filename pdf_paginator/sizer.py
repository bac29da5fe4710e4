"""
Final-Page Sizer.

Extends the container to a whole number of pages so the rasterizer never
produces a short or truncated last page.
"""

from dataclasses import dataclass

from .models import PageGeometry
from .surface import LayoutSurface


@dataclass(frozen=True)
class FinalPageSize:
    page_count: int
    target_height_px: float
    final_height_px: float


async def size_final_page(surface: LayoutSurface, geometry: PageGeometry, background: str) -> FinalPageSize:
    """
    Force the container to page_count * H + buffer and paint the background.

    The small buffer absorbs subpixel rounding in the rasterizer, which
    would otherwise leave a hairline gap at the foot of the last page.
    """
    # A min-height left by an earlier run is not content
    await surface.apply_final_height(0.0, background)
    content_height = await surface.content_height()
    page_count = geometry.page_count(content_height)
    target = page_count * geometry.page_height_px + geometry.final_height_buffer_px
    final_height = await surface.apply_final_height(target, background)
    return FinalPageSize(page_count=page_count, target_height_px=target, final_height_px=final_height)
