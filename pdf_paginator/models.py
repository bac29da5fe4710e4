"""
Core data types for the pagination engine.

Blocks are never stored between passes: every pass re-selects candidates
and receives fresh BlockMetrics snapshots, so nothing here caches layout.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# Absorbs float noise from subpixel layout when mapping offsets to pages
FLOAT_TOLERANCE = 1e-6


class RelocationGranularity(str, Enum):
    """Which blocks of the content root are treated as atomic units."""
    GRANDCHILDREN = "grandchildren"
    CHILDREN = "children"
    MARKED = "marked"
    DEPTH = "depth"


class SpacerKind(str, Enum):
    """Synthetic blocks inserted by the Break Applicator."""
    FILLER = "filler"
    TOP_GAP = "top-gap"


class PassState(str, Enum):
    """States of the convergence loop."""
    SCANNING = "scanning"
    APPLYING = "applying"
    RESCANNING = "rescanning"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"

    @property
    def is_terminal(self) -> bool:
        return self in (PassState.CONVERGED, PassState.EXHAUSTED)


class BlockDecision(str, Enum):
    """Boundary Analyzer verdict for a single candidate."""
    FITS = "fits"
    VIOLATES = "violates"
    FRESH = "fresh"
    OVERSIZED = "oversized"


@dataclass(frozen=True)
class BlockMetrics:
    """
    Measured position of one candidate block.

    Offsets are relative to the fixed container origin, in CSS pixels,
    and are only valid until the next mutation of the document.

    Attributes:
        index: Pass-local document-order index assigned by candidate selection
        path: Child-index path from the content root (e.g. "0/2"), for tracing
        top: Top offset from the container origin
        height: Rendered height
        label: Short human-readable description (tag, id, class)
    """
    index: int
    path: str
    top: float
    height: float
    label: str = ""

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "path": self.path,
            "top": round(self.top, 2),
            "height": round(self.height, 2),
            "bottom": round(self.bottom, 2),
            "label": self.label,
        }


@dataclass(frozen=True)
class CandidateQuery:
    """
    Where to look for break candidates and at what granularity.

    Attributes:
        root_selector: CSS selector of the content root inside the container
        granularity: Relocation granularity
        depth: Nesting depth used when granularity is DEPTH
        marker: Marker name for MARKED granularity (class or data-* attribute)
    """
    root_selector: str = "[data-content-root]"
    granularity: RelocationGranularity = RelocationGranularity.GRANDCHILDREN
    depth: int = 2
    marker: str = "no-split"

    @property
    def effective_depth(self) -> Optional[int]:
        """Nesting depth below the root, or None for marker-based selection."""
        if self.granularity == RelocationGranularity.CHILDREN:
            return 1
        if self.granularity == RelocationGranularity.GRANDCHILDREN:
            return 2
        if self.granularity == RelocationGranularity.DEPTH:
            return self.depth
        return None


@dataclass(frozen=True)
class PageGeometry:
    """
    Immutable page geometry resolved once per engine invocation.

    Pages are conceptual intervals [i * H, (i + 1) * H) over the
    container's vertical extent; they are derived, never stored.
    """
    page_height_px: float
    render_width_px: int
    bottom_safe_margin_px: float
    top_gap_px: float
    freshness_epsilon_px: float = 2.0
    final_height_buffer_px: float = 1.0

    @property
    def usable_height_px(self) -> float:
        """Tallest block that can be relocated as a whole."""
        return self.page_height_px - self.top_gap_px - self.bottom_safe_margin_px

    def page_index(self, y: float) -> int:
        return int(math.floor((y + FLOAT_TOLERANCE) / self.page_height_px))

    def page_top(self, page_index: int) -> float:
        return page_index * self.page_height_px

    def page_bottom(self, page_index: int) -> float:
        return (page_index + 1) * self.page_height_px

    def safe_boundary(self, page_index: int) -> float:
        return self.page_bottom(page_index) - self.bottom_safe_margin_px

    def page_count(self, content_height: float) -> int:
        """Number of pages needed to hold content_height (at least one)."""
        if content_height <= FLOAT_TOLERANCE:
            return 1
        return max(1, int(math.ceil(content_height / self.page_height_px - FLOAT_TOLERANCE)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page_height_px": self.page_height_px,
            "render_width_px": self.render_width_px,
            "bottom_safe_margin_px": self.bottom_safe_margin_px,
            "top_gap_px": self.top_gap_px,
            "usable_height_px": self.usable_height_px,
        }


@dataclass
class PaginationResult:
    """Outcome of one engine invocation."""
    state: PassState
    page_count: int
    page_height_px: float
    initial_content_height: float
    final_content_height: float
    background: str
    direct_passes: int = 0
    sweep_passes: int = 0
    breaks_applied: int = 0
    unresolved_violations: int = 0
    oversized_blocks: List[str] = field(default_factory=list)
    warnings: List[Dict[str, Any]] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.state == PassState.CONVERGED

    def to_dict(self, include_events: bool = False) -> Dict[str, Any]:
        data = {
            "state": self.state.value,
            "page_count": self.page_count,
            "page_height_px": self.page_height_px,
            "initial_content_height": round(self.initial_content_height, 2),
            "final_content_height": round(self.final_content_height, 2),
            "background": self.background,
            "direct_passes": self.direct_passes,
            "sweep_passes": self.sweep_passes,
            "breaks_applied": self.breaks_applied,
            "unresolved_violations": self.unresolved_violations,
            "oversized_blocks": list(self.oversized_blocks),
            "warnings": list(self.warnings),
        }
        if include_events:
            data["events"] = list(self.events)
        return data
