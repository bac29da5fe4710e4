"""
Error taxonomy for the pagination engine.

Structural problems (no content root, unmeasurable container, a broken
rasterizer) are raised as exceptions and abort the invocation. Layout
quality problems (oversized blocks, non-convergence) are recovered
locally and only collected as warnings.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class PaginationError(Exception):
    """Base class for fatal pagination errors."""


class InputError(PaginationError):
    """
    The document does not satisfy a precondition of the engine.

    Raised before any pass runs. ``precondition`` names what is missing:
    "content_root", "container", "html_empty" or "html_size".
    """

    def __init__(self, precondition: str, message: str):
        super().__init__(message)
        self.precondition = precondition
        self.message = message


class RasterizerError(PaginationError):
    """The external rasterizer failed (library unavailable, render exception)."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


# Warning codes
OVERSIZED_BLOCK = "oversized_block"
NOT_CONVERGED = "not_converged"


@dataclass
class PaginationWarning:
    """
    Structured, non-fatal layout-quality issue.

    The engine still produces output; the rendered PDF may show clipping
    at the reported location.
    """

    code: str
    message: str
    block: Optional[Dict[str, Any]] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = {
            "code": self.code,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.block is not None:
            data["block"] = self.block
        if self.details is not None:
            data["details"] = self.details
        return data


class WarningCollector:
    """
    Collects warnings during a pagination run.

    Oversized blocks are reported once per block path, however many
    passes see them.
    """

    def __init__(self):
        self.warnings: List[PaginationWarning] = []
        self._seen_oversized: set = set()

    def add_warning(
        self,
        code: str,
        message: str,
        block: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> PaginationWarning:
        """Convenience method to add a warning with parameters."""
        warning = PaginationWarning(code=code, message=message, block=block, details=details)
        self.warnings.append(warning)
        return warning

    def add_oversized(self, path: str, message: str, block: Dict[str, Any], details: Dict[str, Any]) -> bool:
        """Record an oversized block; returns False if it was already reported."""
        if path in self._seen_oversized:
            return False
        self._seen_oversized.add(path)
        self.add_warning(OVERSIZED_BLOCK, message, block=block, details=details)
        return True

    @property
    def oversized_paths(self) -> List[str]:
        return [w.block["path"] for w in self.warnings if w.code == OVERSIZED_BLOCK and w.block]

    def to_list(self) -> List[dict]:
        return [w.to_dict() for w in self.warnings]

    def summary(self) -> dict:
        """Get warning summary statistics."""
        by_code: Dict[str, int] = {}
        for warning in self.warnings:
            by_code[warning.code] = by_code.get(warning.code, 0) + 1
        return {"total": len(self.warnings), "by_code": by_code}
