"""
Break Applicator.

Moves a block to the head of the next page by inserting two spacers in
front of it: a bottom filler that pads out the rest of the current page
and a top gap that reserves the leading margin of the next one.
"""

from dataclasses import dataclass
from typing import Optional

from .analyzer import classify, crosses_boundary
from .logger import PaginationLogger, get_logger
from .models import BlockDecision, BlockMetrics, PageGeometry
from .surface import LayoutSurface
from .trace import PaginationTracer

# Skip reasons reported in traces
ALREADY_BROKEN = "already_broken"
NO_LONGER_VIOLATES = "no_longer_violates"
NO_LONGER_CROSSES = "no_longer_crosses"
NOTHING_TO_FILL = "nothing_to_fill"


@dataclass(frozen=True)
class BreakOutcome:
    """What apply_break did for one block."""
    block: BlockMetrics
    applied: bool
    filler_px: float = 0.0
    gap_px: float = 0.0
    reason: Optional[str] = None


class BreakApplicator:
    """
    Applies page breaks to a LayoutSurface.

    The background colour is resolved once by the engine and passed in;
    every spacer is painted with it.
    """

    def __init__(
        self,
        surface: LayoutSurface,
        geometry: PageGeometry,
        background: str,
        tracer: Optional[PaginationTracer] = None,
        logger: Optional[PaginationLogger] = None,
    ):
        self.surface = surface
        self.geometry = geometry
        self.background = background
        self.tracer = tracer
        self.logger = logger or get_logger(__name__, stage="applicator")

    def _skip(
        self,
        block: BlockMetrics,
        reason: str,
        pass_number: int,
        phase: str,
        trace: bool = True,
    ) -> BreakOutcome:
        if trace:
            self.logger.for_pass(pass_number, phase).debug(f"skip {block.path} {block.label} - {reason}")
        if trace and self.tracer:
            self.tracer.break_skipped(pass_number, phase, block.to_dict(), reason)
        return BreakOutcome(block=block, applied=False, reason=reason)

    async def apply_break(
        self,
        index: int,
        pass_number: int = 0,
        phase: str = "direct",
        boundary: Optional[float] = None,
        trace_skips: bool = True,
    ) -> BreakOutcome:
        """
        Relocate the selected block ``index`` to the head of the next page.

        The block is measured again first: earlier breaks in the same pass
        shift it, so offsets read by the analyzer are already stale.

        Args:
            index: Pass-local block index from the current candidate selection
            pass_number: Pass number, for traces
            phase: "direct" re-checks the safe-boundary violation;
                   "sweep" re-checks that ``boundary`` is still crossed
            boundary: Page boundary being resolved (sweep phase)
            trace_skips: Record skips in the trace; off for blocks that were
                         not flagged by the analyzer

        Returns:
            BreakOutcome describing the insertion or why it was skipped
        """
        block = await self.surface.measure(index)

        if boundary is not None:
            if not crosses_boundary(block, boundary):
                return self._skip(block, NO_LONGER_CROSSES, pass_number, phase, trace_skips)
        elif classify(block, self.geometry) != BlockDecision.VIOLATES:
            return self._skip(block, NO_LONGER_VIOLATES, pass_number, phase, trace_skips)

        # Guard against duplicate insertion on repeated passes
        if await self.surface.preceding_spacer(index) is not None:
            return self._skip(block, ALREADY_BROKEN, pass_number, phase, trace_skips)

        page_index = self.geometry.page_index(block.top)
        filler_px = self.geometry.page_bottom(page_index) - block.top
        if filler_px <= 0:
            return self._skip(block, NOTHING_TO_FILL, pass_number, phase, trace_skips)
        gap_px = self.geometry.top_gap_px

        await self.surface.insert_spacers_before(index, filler_px, gap_px, self.background)

        self.logger.for_pass(pass_number, phase).debug(
            f"moved {block.path} {block.label} "
            f"from top={block.top:.1f} to page {page_index + 1} (filler={filler_px:.1f}, gap={gap_px:.1f})"
        )
        if self.tracer:
            self.tracer.break_applied(pass_number, phase, block.to_dict(), filler_px, gap_px)
        return BreakOutcome(block=block, applied=True, filler_px=filler_px, gap_px=gap_px)
