from __future__ import annotations

from enum import Enum


class ViolationOutcome(str, Enum):
    WARN = "warn"
    TERMINATE = "terminate"


class ViolationTracker:
    """Strike counter for integrity violations on one connection.

    Detection happens client-side; this only decides how to respond to the
    n-th report. ``warnings_allowed`` strikes warn, the next one terminates.
    """

    def __init__(self, warnings_allowed: int = 1):
        self.warnings_allowed = max(0, int(warnings_allowed))
        self.count = 0

    def record(self) -> ViolationOutcome:
        self.count += 1
        if self.count <= self.warnings_allowed:
            return ViolationOutcome.WARN
        return ViolationOutcome.TERMINATE
