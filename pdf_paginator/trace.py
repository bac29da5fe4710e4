"""
Structured trace events for pagination runs.

Emits JSON-formatted events for diagnostic consumption:
- Engine start/complete with geometry and final page count
- Per-pass candidate counts and per-block decisions
- Applied and skipped breaks, warnings

Events are an observational side channel: recording them never changes
the pagination outcome.

Usage:
    tracer = PaginationTracer(run_id="abc123")
    tracer.pass_start(1, phase="direct", candidate_count=12)
    tracer.block_decision(1, block.to_dict(), "violates")
"""

import json
import sys
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class TraceEventType(str, Enum):
    """Standard pagination event types."""
    ENGINE_START = "engine_start"
    PASS_START = "pass_start"
    BLOCK_DECISION = "block_decision"
    BREAK_APPLIED = "break_applied"
    BREAK_SKIPPED = "break_skipped"
    PASS_COMPLETE = "pass_complete"
    SWEEP_START = "sweep_start"
    SWEEP_COMPLETE = "sweep_complete"
    WARNING = "warning"
    ENGINE_COMPLETE = "engine_complete"


@dataclass
class TraceEvent:
    """Structured trace event with all optional fields."""
    timestamp: str
    event: str
    run_id: str
    pass_number: Optional[int] = None
    phase: Optional[str] = None
    candidate_count: Optional[int] = None
    block: Optional[Dict[str, Any]] = None
    decision: Optional[str] = None
    page_count: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class PaginationTracer:
    """
    Collects trace events for one pagination run.

    Events are kept in memory (exposed through ``events``) and can
    additionally be echoed to stdout as JSON lines.
    """

    def __init__(self, run_id: str, enabled: bool = True, echo: bool = False):
        """
        Initialize tracer.

        Args:
            run_id: Run identifier for correlation
            enabled: Whether to record events (can disable for testing)
            echo: Also print each event as a JSON line to stdout
        """
        self.run_id = run_id
        self.enabled = enabled
        self.echo = echo
        self._events: List[TraceEvent] = []

    @property
    def events(self) -> List[Dict[str, Any]]:
        return [event.to_dict() for event in self._events]

    def _now(self) -> str:
        """Get current UTC timestamp in ISO format."""
        return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

    def _emit(self, event: TraceEvent) -> None:
        if not self.enabled:
            return
        self._events.append(event)
        if self.echo:
            print(event.to_json(), file=sys.stdout, flush=True)

    def emit(
        self,
        event: str,
        pass_number: Optional[int] = None,
        phase: Optional[str] = None,
        candidate_count: Optional[int] = None,
        block: Optional[Dict[str, Any]] = None,
        decision: Optional[str] = None,
        page_count: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Emit a custom trace event.

        Args:
            event: Event type name
            pass_number: 1-based pass number within its phase
            phase: "direct" or "sweep"
            candidate_count: Number of candidates considered in the pass
            block: Block metrics snapshot (BlockMetrics.to_dict())
            decision: Per-block decision
            page_count: Page count, when known
            metadata: Additional event metadata
        """
        self._emit(TraceEvent(
            timestamp=self._now(),
            event=event,
            run_id=self.run_id,
            pass_number=pass_number,
            phase=phase,
            candidate_count=candidate_count,
            block=block,
            decision=decision,
            page_count=page_count,
            metadata=metadata,
        ))

    # ===== Convenience Methods =====

    def engine_start(self, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.emit(TraceEventType.ENGINE_START.value, metadata=metadata)

    def pass_start(self, pass_number: int, phase: str, candidate_count: int) -> None:
        event = TraceEventType.SWEEP_START if phase == "sweep" else TraceEventType.PASS_START
        self.emit(event.value, pass_number=pass_number, phase=phase, candidate_count=candidate_count)

    def pass_complete(
        self,
        pass_number: int,
        phase: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        event = TraceEventType.SWEEP_COMPLETE if phase == "sweep" else TraceEventType.PASS_COMPLETE
        self.emit(event.value, pass_number=pass_number, phase=phase, metadata=metadata)

    def block_decision(
        self,
        pass_number: int,
        block: Dict[str, Any],
        decision: str,
        phase: str = "direct",
    ) -> None:
        self.emit(
            TraceEventType.BLOCK_DECISION.value,
            pass_number=pass_number,
            phase=phase,
            block=block,
            decision=decision,
        )

    def break_applied(
        self,
        pass_number: int,
        phase: str,
        block: Dict[str, Any],
        filler_px: float,
        gap_px: float,
    ) -> None:
        self.emit(
            TraceEventType.BREAK_APPLIED.value,
            pass_number=pass_number,
            phase=phase,
            block=block,
            metadata={"filler_px": round(filler_px, 2), "gap_px": round(gap_px, 2)},
        )

    def break_skipped(self, pass_number: int, phase: str, block: Dict[str, Any], reason: str) -> None:
        self.emit(
            TraceEventType.BREAK_SKIPPED.value,
            pass_number=pass_number,
            phase=phase,
            block=block,
            metadata={"reason": reason},
        )

    def warning(self, code: str, message: str, block: Optional[Dict[str, Any]] = None) -> None:
        self.emit(
            TraceEventType.WARNING.value,
            block=block,
            metadata={"code": code, "message": message},
        )

    def engine_complete(self, state: str, page_count: int, metadata: Optional[Dict[str, Any]] = None) -> None:
        data = {"state": state}
        if metadata:
            data.update(metadata)
        self.emit(TraceEventType.ENGINE_COMPLETE.value, page_count=page_count, metadata=data)


def create_tracer(run_id: str, enabled: bool = True, echo: Optional[bool] = None) -> PaginationTracer:
    """
    Factory function to create a tracer.

    Args:
        run_id: Run identifier
        enabled: Whether to record events
        echo: Echo to stdout; defaults to the TRACE_TO_STDOUT setting

    Returns:
        PaginationTracer instance
    """
    if echo is None:
        from .config import get_settings
        echo = get_settings().trace_to_stdout
    return PaginationTracer(run_id=run_id, enabled=enabled, echo=echo)
