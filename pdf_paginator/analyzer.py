"""
Boundary Analyzer.

Pure functions over measured BlockMetrics: which candidates cross the
unsafe zone at the foot of their page and must move to the next page,
which are oversized, and which were just relocated to a page head.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .models import FLOAT_TOLERANCE, BlockDecision, BlockMetrics, PageGeometry


def is_fresh(block: BlockMetrics, geometry: PageGeometry) -> bool:
    """
    True if the block sits at the head of a page, right below the top gap.

    The flag is derived from position, never stored: a block whose top
    lies within epsilon of the top gap of the page it starts on was
    relocated by an earlier pass and must not be moved again. A block
    that starts just above a page boundary belongs to the earlier page
    and is never fresh.
    """
    page_index = geometry.page_index(block.top)
    offset = block.top - geometry.page_top(page_index)
    if abs(offset - geometry.top_gap_px) > geometry.freshness_epsilon_px:
        return False
    return block.bottom <= geometry.page_bottom(page_index) + FLOAT_TOLERANCE


def is_oversized(block: BlockMetrics, geometry: PageGeometry) -> bool:
    """True if no page can hold the block between the top gap and the safe margin."""
    return block.height > geometry.usable_height_px + FLOAT_TOLERANCE


def crosses_safe_boundary(block: BlockMetrics, geometry: PageGeometry) -> bool:
    page_index = geometry.page_index(block.top)
    return block.bottom > geometry.safe_boundary(page_index) + FLOAT_TOLERANCE


def classify(block: BlockMetrics, geometry: PageGeometry) -> BlockDecision:
    """
    Decide what to do with one candidate.

    Oversized wins over fresh so that an oversized block at a page head is
    still reported.
    """
    if not crosses_safe_boundary(block, geometry):
        return BlockDecision.FITS
    if is_oversized(block, geometry):
        return BlockDecision.OVERSIZED
    if is_fresh(block, geometry):
        return BlockDecision.FRESH
    return BlockDecision.VIOLATES


@dataclass(frozen=True)
class Violation:
    """A candidate that must be relocated to the next page."""
    block: BlockMetrics
    page_index: int
    safe_boundary: float

    @property
    def overflow_px(self) -> float:
        return self.block.bottom - self.safe_boundary


@dataclass
class BoundaryAnalysis:
    """Result of one analyzer run, everything in document order."""
    decisions: List[Tuple[BlockMetrics, BlockDecision]] = field(default_factory=list)
    violations: List[Violation] = field(default_factory=list)
    oversized: List[BlockMetrics] = field(default_factory=list)

    @property
    def candidate_count(self) -> int:
        return len(self.decisions)


def analyze(candidates: List[BlockMetrics], geometry: PageGeometry) -> BoundaryAnalysis:
    """
    Find the candidates that violate their page's safe boundary.

    Args:
        candidates: Freshly measured candidates in document order
        geometry: Page geometry of the run

    Returns:
        BoundaryAnalysis with per-block decisions, violations and oversized blocks
    """
    analysis = BoundaryAnalysis()
    for block in candidates:
        decision = classify(block, geometry)
        analysis.decisions.append((block, decision))
        if decision == BlockDecision.VIOLATES:
            page_index = geometry.page_index(block.top)
            analysis.violations.append(
                Violation(block=block, page_index=page_index, safe_boundary=geometry.safe_boundary(page_index))
            )
        elif decision == BlockDecision.OVERSIZED:
            analysis.oversized.append(block)
    return analysis


def crosses_boundary(block: BlockMetrics, boundary: float) -> bool:
    """True if the block's interval [top, bottom) strictly straddles ``boundary``."""
    return block.top < boundary - FLOAT_TOLERANCE and block.bottom > boundary + FLOAT_TOLERANCE


def find_boundary_crossings(
    candidates: List[BlockMetrics],
    geometry: PageGeometry,
    content_height: float,
) -> List[Tuple[float, BlockMetrics]]:
    """
    Page boundaries still crossed by a relocatable candidate.

    Boundaries are k * H for 0 < k < page_count, page_count derived from the
    current content height. For each crossed boundary the first (document
    order) candidate that can be wholly relocated is returned.

    Returns:
        List of (boundary, block) pairs ordered by boundary
    """
    crossings = []
    page_count = geometry.page_count(content_height)
    for k in range(1, page_count):
        boundary = geometry.page_top(k)
        chosen: Optional[BlockMetrics] = None
        for block in candidates:
            if is_oversized(block, geometry):
                continue
            if crosses_boundary(block, boundary):
                chosen = block
                break
        if chosen is not None:
            crossings.append((boundary, chosen))
    return crossings
