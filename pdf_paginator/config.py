"""
PDF Paginator Configuration Module

Centralized configuration management with Pydantic validation.
Service-wide defaults come from environment variables (and an optional
.env file); per-request overrides are expressed as PaginationOptions.
"""

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import CandidateQuery, PageGeometry, RelocationGranularity

load_dotenv()


# Physical page sizes in millimetres (width, height), portrait
PAGE_FORMATS = {
    "a4": (210.0, 297.0),
    "letter": (215.9, 279.4),
}


def derive_page_height_px(page_size: str, render_width_px: int) -> int:
    """
    Derive the page height in CSS pixels for a physical page format.

    Args:
        page_size: Key of PAGE_FORMATS ("a4" or "letter")
        render_width_px: Width the document is laid out at

    Returns:
        Page height preserving the physical aspect ratio

    Example:
        >>> derive_page_height_px("a4", 794)
        1123
    """
    width_mm, height_mm = PAGE_FORMATS[page_size.lower()]
    return int(round(render_width_px * height_mm / width_mm))


def _validate_page_size(v: str) -> str:
    v_lower = v.lower()
    if v_lower not in PAGE_FORMATS:
        raise ValueError(f"page_size must be one of: {', '.join(sorted(PAGE_FORMATS))}")
    return v_lower


class PaginationSettings(BaseSettings):
    """
    Pagination service configuration with validation.

    All settings can be overridden via environment variables.
    Validation happens at startup to fail fast on misconfiguration.
    """

    # === Page geometry ===
    page_size: str = Field(default="a4", description="Physical page format: a4 or letter")
    render_width_px: int = Field(
        default=794,
        ge=200,
        le=4000,
        description="Layout width of the container in CSS pixels (794 = A4 at 96 dpi)"
    )
    page_height_px: Optional[float] = Field(
        default=None,
        gt=0,
        description="Explicit page height; derived from page_size/render_width_px when unset"
    )
    bottom_safe_margin_px: float = Field(default=80, ge=0, description="Reserved zone at the foot of every page")
    top_gap_px: float = Field(default=60, ge=0, description="Leading margin of every page after the first")

    # === Candidate selection ===
    relocation_granularity: RelocationGranularity = Field(default=RelocationGranularity.GRANDCHILDREN)
    relocation_depth: int = Field(default=2, ge=1, le=10, description="Depth used by 'depth' granularity")
    breakable_marker: str = Field(default="no-split", min_length=1)
    content_root_selector: str = Field(default="[data-content-root]", min_length=1)

    # === Convergence ===
    max_direct_passes: int = Field(default=6, ge=1, le=50)
    max_boundary_sweep_passes: int = Field(default=2, ge=0, le=20)
    freshness_epsilon_px: float = Field(default=2.0, ge=0, le=50)
    final_height_buffer_px: float = Field(default=1.0, ge=0, le=20)
    fallback_background: str = Field(default="#ffffff", min_length=1)

    # === Rendering ===
    content_settle_ms: int = Field(default=500, ge=0, le=10000, description="Wait for styles/fonts before measuring")
    max_html_chars: int = Field(default=500_000, ge=1000)
    max_concurrent_pdfs: int = Field(default=5, ge=1, le=50)
    playwright_timeout: int = Field(default=30000, ge=1000, description="Playwright timeout in milliseconds")
    playwright_headless: bool = Field(default=True)

    # === Logging ===
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="simple", description="simple or json")
    debug_mode: bool = Field(default=False)
    trace_to_stdout: bool = Field(default=False, description="Echo trace events as JSON lines")

    model_config = SettingsConfigDict(
        env_prefix="",  # No prefix, use exact env var names
        case_sensitive=False,  # TOP_GAP_PX = top_gap_px
        extra="ignore",
    )

    @field_validator("page_size")
    @classmethod
    def validate_page_size(cls, v: str) -> str:
        """Validate page size is a known format."""
        return _validate_page_size(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(allowed))}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in {"simple", "json"}:
            raise ValueError("log_format must be 'simple' or 'json'")
        return v.lower()

    def default_options(self) -> "PaginationOptions":
        """Build the per-invocation options this service uses by default."""
        return PaginationOptions(
            page_size=self.page_size,
            render_width_px=self.render_width_px,
            page_height_px=self.page_height_px,
            bottom_safe_margin_px=self.bottom_safe_margin_px,
            top_gap_px=self.top_gap_px,
            relocation_granularity=self.relocation_granularity,
            relocation_depth=self.relocation_depth,
            breakable_marker=self.breakable_marker,
            content_root_selector=self.content_root_selector,
            max_direct_passes=self.max_direct_passes,
            max_boundary_sweep_passes=self.max_boundary_sweep_passes,
            freshness_epsilon_px=self.freshness_epsilon_px,
            final_height_buffer_px=self.final_height_buffer_px,
            fallback_background=self.fallback_background,
        )


class PaginationOptions(BaseModel):
    """
    Immutable options for a single pagination run.

    Accepts both snake_case and camelCase keys (pageHeightPx, topGapPx, ...).
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    page_size: str = "a4"
    render_width_px: int = Field(default=794, ge=200, le=4000)
    page_height_px: Optional[float] = Field(default=None, gt=0)
    bottom_safe_margin_px: float = Field(default=80, ge=0)
    top_gap_px: float = Field(default=60, ge=0)
    relocation_granularity: RelocationGranularity = RelocationGranularity.GRANDCHILDREN
    relocation_depth: int = Field(default=2, ge=1, le=10)
    breakable_marker: str = Field(default="no-split", min_length=1)
    content_root_selector: str = Field(default="[data-content-root]", min_length=1)
    max_direct_passes: int = Field(default=6, ge=1, le=50)
    max_boundary_sweep_passes: int = Field(default=2, ge=0, le=20)
    freshness_epsilon_px: float = Field(default=2.0, ge=0, le=50)
    final_height_buffer_px: float = Field(default=1.0, ge=0, le=20)
    fallback_background: str = Field(default="#ffffff", min_length=1)

    @field_validator("page_size")
    @classmethod
    def validate_page_size(cls, v: str) -> str:
        return _validate_page_size(v)

    @model_validator(mode="after")
    def validate_reserved_margins(self) -> "PaginationOptions":
        """Top gap and safe margin must leave room for content on every page."""
        if self.top_gap_px + self.bottom_safe_margin_px >= self.resolved_page_height_px:
            raise ValueError(
                f"top_gap_px + bottom_safe_margin_px ({self.top_gap_px + self.bottom_safe_margin_px}) "
                f"must be smaller than the page height ({self.resolved_page_height_px})"
            )
        return self

    @property
    def resolved_page_height_px(self) -> float:
        if self.page_height_px is not None:
            return float(self.page_height_px)
        return float(derive_page_height_px(self.page_size, self.render_width_px))

    def geometry(self) -> PageGeometry:
        """Resolve the immutable page geometry for an engine run."""
        return PageGeometry(
            page_height_px=self.resolved_page_height_px,
            render_width_px=self.render_width_px,
            bottom_safe_margin_px=float(self.bottom_safe_margin_px),
            top_gap_px=float(self.top_gap_px),
            freshness_epsilon_px=float(self.freshness_epsilon_px),
            final_height_buffer_px=float(self.final_height_buffer_px),
        )

    def candidate_query(self) -> CandidateQuery:
        return CandidateQuery(
            root_selector=self.content_root_selector,
            granularity=self.relocation_granularity,
            depth=self.relocation_depth,
            marker=self.breakable_marker,
        )


@lru_cache()
def get_settings() -> PaginationSettings:
    """
    Get cached settings instance.

    Settings are loaded once and cached for performance.
    Use this function to access configuration throughout the app.
    """
    return PaginationSettings()


def validate_config_on_startup() -> PaginationSettings:
    """
    Validate configuration at application startup.

    Raises ValueError with details if config is invalid.
    Logs the resolved page geometry.
    """
    import logging
    logger = logging.getLogger(__name__)

    try:
        settings = get_settings()
        options = settings.default_options()
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")

    geometry = options.geometry()
    logger.info("Pagination configuration validated:")
    logger.info(f"  page_size={settings.page_size} render_width_px={settings.render_width_px}")
    logger.info(f"  page_height_px={geometry.page_height_px} usable_height_px={geometry.usable_height_px}")
    logger.info(f"  bottom_safe_margin_px={settings.bottom_safe_margin_px} top_gap_px={settings.top_gap_px}")
    logger.info(f"  relocation_granularity={settings.relocation_granularity.value}")
    logger.info(
        f"  max_direct_passes={settings.max_direct_passes} "
        f"max_boundary_sweep_passes={settings.max_boundary_sweep_passes}"
    )
    logger.info(f"  max_concurrent_pdfs={settings.max_concurrent_pdfs}")

    return settings
