"""
Logging for pagination runs.

Records carry the run they belong to and, inside the convergence loop,
the pass and phase that produced them:

    [run:1a2b3c4d] [engine] [direct#2] moved 0/3 section.skills to page 2

The same context is attached to each record as attributes (run_id, stage,
phase, pass_number) so the JSON format can emit it as fields.
"""

import json
import logging
import sys
from typing import Any, Dict, MutableMapping, Optional, Tuple

CONTEXT_FIELDS = ("run_id", "stage", "phase", "pass_number")

_debug_mode = False


def set_global_debug_mode(enabled: bool) -> None:
    """Log at DEBUG level from every pagination logger created afterwards."""
    global _debug_mode
    _debug_mode = enabled


class PaginationLogger(logging.LoggerAdapter):
    """Logger adapter that tags records with run, stage, pass and phase."""

    def __init__(
        self,
        logger: logging.Logger,
        run_id: Optional[str] = None,
        stage: Optional[str] = None,
        pass_number: Optional[int] = None,
        phase: Optional[str] = None,
    ):
        super().__init__(logger, {
            "run_id": run_id,
            "stage": stage,
            "phase": phase,
            "pass_number": pass_number,
        })

    @property
    def run_id(self) -> Optional[str]:
        return self.extra["run_id"]

    def for_pass(self, pass_number: int, phase: str) -> "PaginationLogger":
        """Same logger, scoped to one pass of the convergence loop."""
        return PaginationLogger(self.logger, self.extra["run_id"], self.extra["stage"], pass_number, phase)

    @property
    def prefix(self) -> str:
        parts = []
        if self.extra["run_id"]:
            parts.append(f"[run:{self.extra['run_id'][:8]}]")
        if self.extra["stage"]:
            parts.append(f"[{self.extra['stage']}]")
        if self.extra["phase"] and self.extra["pass_number"] is not None:
            parts.append(f"[{self.extra['phase']}#{self.extra['pass_number']}]")
        return " ".join(parts)

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        prefix = self.prefix
        return (f"{prefix} {msg}" if prefix else msg), kwargs


class JsonFormatter(logging.Formatter):
    """One JSON object per line; pagination context becomes top-level fields."""

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                data[key] = value
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data)


def setup_logging(level: str = "INFO", format: str = "simple") -> None:
    """
    Install a single stdout handler on the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: "simple" for humans, "json" for log aggregators
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    if format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)


def get_logger(name: str, run_id: Optional[str] = None, stage: Optional[str] = None) -> PaginationLogger:
    """Pagination logger for ``name`` (usually __name__), tagged with run and stage."""
    logger = logging.getLogger(name)
    if _debug_mode:
        logger.setLevel(logging.DEBUG)
    return PaginationLogger(logger, run_id=run_id, stage=stage)
