"""
Pagination engine: the convergence loop.

Drives measure -> analyze -> apply -> remeasure over a LayoutSurface
until a full pass finds no violations or the pass budget runs out, then
sizes the final page.

State machine:
    Scanning -> Applying -> Rescanning -> {Scanning | Converged | Exhausted}

Direct passes relocate every violating candidate, walking forward from the
first violation and re-judging each block on fresh metrics.
Boundary sweep passes then look at each page boundary still straddled by
a relocatable candidate and move that candidate to the next page.
"""

import math
import time
import uuid
from typing import Optional

from .analyzer import BoundaryAnalysis, analyze, find_boundary_crossings
from .applicator import BreakApplicator
from .candidates import select_candidates
from .config import PaginationOptions
from .errors import NOT_CONVERGED, InputError, WarningCollector
from .logger import PaginationLogger, get_logger
from .models import PassState, PaginationResult
from .sizer import size_final_page
from .surface import LayoutSurface
from .trace import PaginationTracer

DIRECT = "direct"
SWEEP = "sweep"
VERIFY = "verify"


class PaginationEngine:
    """
    Partitions the document on a LayoutSurface into fixed-height pages.

    An engine instance holds no document state; each run() owns its
    surface, so independent documents can be paginated concurrently with
    separate surfaces.
    """

    def __init__(
        self,
        options: Optional[PaginationOptions] = None,
        tracer: Optional[PaginationTracer] = None,
        run_id: Optional[str] = None,
    ):
        self.options = options or PaginationOptions()
        self.geometry = self.options.geometry()
        self.query = self.options.candidate_query()
        self.run_id = run_id or (tracer.run_id if tracer else uuid.uuid4().hex)
        self.tracer = tracer or PaginationTracer(run_id=self.run_id)
        self.logger: PaginationLogger = get_logger(__name__, run_id=self.run_id, stage="engine")

    def _record_decisions(self, analysis: BoundaryAnalysis, pass_number: int, phase: str) -> None:
        for block, decision in analysis.decisions:
            self.tracer.block_decision(pass_number, block.to_dict(), decision.value, phase=phase)

    async def _measure_container(self, surface: LayoutSurface) -> float:
        height = await surface.content_height()
        if height is None or not math.isfinite(height) or height < 0:
            raise InputError("container", f"Container height is not measurable: {height!r}")
        return float(height)

    async def run(self, surface: LayoutSurface) -> PaginationResult:
        """
        Paginate the document on ``surface``.

        Returns:
            PaginationResult; layout-quality problems are reported in its
            warnings, never raised

        Raises:
            InputError: If the container cannot be measured or has no content root
        """
        started = time.time()
        geometry = self.geometry
        warnings = WarningCollector()

        initial_height = await self._measure_container(surface)
        # Fails fast on a missing content root, before anything is mutated
        await surface.select_blocks(self.query)
        background = (await surface.resolve_background()) or self.options.fallback_background

        self.tracer.engine_start(metadata={
            **geometry.to_dict(),
            "initial_content_height": round(initial_height, 2),
            "background": background,
            "granularity": self.query.granularity.value,
        })
        self.logger.info(
            f"Paginating {initial_height:.0f}px of content into {geometry.page_height_px:.0f}px pages "
            f"(margin={geometry.bottom_safe_margin_px:.0f}, gap={geometry.top_gap_px:.0f})"
        )

        applicator = BreakApplicator(surface, geometry, background, tracer=self.tracer, logger=self.logger)
        state = PassState.SCANNING
        direct_passes = 0
        sweep_passes = 0
        breaks_applied = 0

        # Direct passes
        for pass_number in range(1, self.options.max_direct_passes + 1):
            state = PassState.SCANNING
            direct_passes = pass_number
            log = self.logger.for_pass(pass_number, DIRECT)
            selection = await select_candidates(surface, self.query, geometry)
            self.tracer.pass_start(pass_number, DIRECT, len(selection.candidates))

            analysis = analyze(selection.candidates, geometry)
            self._record_decisions(analysis, pass_number, DIRECT)
            if not analysis.violations:
                state = PassState.CONVERGED
                self.tracer.pass_complete(pass_number, DIRECT, metadata={"violations": 0, "applied": 0})
                log.debug(f"no violations among {len(selection.candidates)} candidates")
                break

            state = PassState.APPLYING
            applied = 0
            flagged = {violation.block.index for violation in analysis.violations}
            first = analysis.violations[0].block.index
            # Walk forward from the first violation: each break shifts everything
            # after it, so later blocks are re-judged on fresh metrics
            for block in selection.candidates:
                if block.index < first:
                    continue
                outcome = await applicator.apply_break(
                    block.index, pass_number, DIRECT, trace_skips=block.index in flagged
                )
                if outcome.applied:
                    applied += 1
            breaks_applied += applied

            state = PassState.RESCANNING
            self.tracer.pass_complete(
                pass_number, DIRECT, metadata={"violations": len(analysis.violations), "applied": applied}
            )
            log.debug(f"{len(analysis.violations)} violations, {applied} breaks applied")
            if applied == 0:
                # Every violation is guarded; further passes cannot change the layout
                log.debug("no progress possible, leaving direct phase")
                break

        if not state.is_terminal:
            state = PassState.EXHAUSTED

        # Boundary sweep passes
        for sweep_number in range(1, self.options.max_boundary_sweep_passes + 1):
            sweep_passes = sweep_number
            selection = await select_candidates(surface, self.query, geometry)
            content_height = await self._measure_container(surface)
            crossings = find_boundary_crossings(selection.candidates, geometry, content_height)
            self.tracer.pass_start(sweep_number, SWEEP, len(selection.candidates))
            if not crossings:
                self.tracer.pass_complete(sweep_number, SWEEP, metadata={"crossings": 0, "applied": 0})
                break

            applied = 0
            for boundary, block in crossings:
                outcome = await applicator.apply_break(block.index, sweep_number, SWEEP, boundary=boundary)
                if outcome.applied:
                    applied += 1
            breaks_applied += applied
            self.tracer.pass_complete(
                sweep_number, SWEEP, metadata={"crossings": len(crossings), "applied": applied}
            )
            if applied == 0:
                break

        # Measurement-only verification of the final layout
        selection = await select_candidates(surface, self.query, geometry)
        final_analysis = analyze(selection.candidates, geometry)
        self._record_decisions(final_analysis, 0, VERIFY)

        for block in final_analysis.oversized:
            message = (
                f"Block {block.path} ({block.label or 'unlabelled'}) is {block.height:.0f}px tall, "
                f"more than the usable page height of {geometry.usable_height_px:.0f}px; "
                f"left in place and may be clipped"
            )
            if warnings.add_oversized(block.path, message, block.to_dict(), {
                "usable_height_px": geometry.usable_height_px,
            }):
                self.logger.warning(message)
                self.tracer.warning("oversized_block", message, block.to_dict())

        unresolved = len(final_analysis.violations)
        if unresolved:
            state = PassState.EXHAUSTED
            message = (
                f"Pagination did not converge after {direct_passes} direct and {sweep_passes} sweep passes; "
                f"{unresolved} block(s) still cross a safe boundary"
            )
            warnings.add_warning(NOT_CONVERGED, message, details={
                "unresolved_violations": unresolved,
                "blocks": [v.block.path for v in final_analysis.violations],
            })
            self.logger.warning(message)
            self.tracer.warning(NOT_CONVERGED, message)
        else:
            state = PassState.CONVERGED

        final = await size_final_page(surface, geometry, background)

        duration_ms = int((time.time() - started) * 1000)
        self.tracer.engine_complete(state.value, final.page_count, metadata={
            "breaks_applied": breaks_applied,
            "direct_passes": direct_passes,
            "sweep_passes": sweep_passes,
            "final_content_height": round(final.final_height_px, 2),
            "warnings": warnings.summary()["by_code"],
            "duration_ms": duration_ms,
        })
        self.logger.info(
            f"Pagination {state.value}: {final.page_count} page(s), {breaks_applied} break(s), "
            f"{direct_passes}+{sweep_passes} passes in {duration_ms}ms"
        )

        return PaginationResult(
            state=state,
            page_count=final.page_count,
            page_height_px=geometry.page_height_px,
            initial_content_height=initial_height,
            final_content_height=final.final_height_px,
            background=background,
            direct_passes=direct_passes,
            sweep_passes=sweep_passes,
            breaks_applied=breaks_applied,
            unresolved_violations=unresolved,
            oversized_blocks=warnings.oversized_paths,
            warnings=warnings.to_list(),
            events=self.tracer.events,
        )


async def paginate(
    surface: LayoutSurface,
    options: Optional[PaginationOptions] = None,
    tracer: Optional[PaginationTracer] = None,
) -> PaginationResult:
    """Convenience wrapper: run a fresh engine over ``surface``."""
    return await PaginationEngine(options, tracer=tracer).run(surface)
