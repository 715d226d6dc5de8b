"""
Error taxonomy for the timetable optimization engine.

ConfigError and InputError are fatal and raised before a population is
seeded. EvaluationError is local to one chromosome. RunFailure moves a run
to the Failed state.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class SchedulerError(Exception):
    """Base exception for scheduler errors."""

    error_code = "scheduler_error"

    def __init__(self, message: str, error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class ConfigError(SchedulerError):
    """Bad slot, shift or restriction configuration."""

    error_code = "config_error"


class InputError(SchedulerError):
    """Entity sets that cannot produce a schedule."""

    error_code = "input_error"


class EvaluationError(SchedulerError):
    """A constraint predicate failed on a chromosome."""

    error_code = "evaluation_error"


class RunFailure(SchedulerError):
    """Unexpected run state; the run transitions to Failed."""

    error_code = "run_failure"
