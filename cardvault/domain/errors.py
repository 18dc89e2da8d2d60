"""Errors that cross the record store boundary."""
from __future__ import annotations


class QuotaExceeded(Exception):
    """Raised once every degradation tier failed to make the write fit."""

    def __init__(self, percentage_used: int, message: str | None = None):
        self.percentage_used = percentage_used
        self.message = message or (
            f"QUOTA_EXCEEDED: storage full ({percentage_used}% used). "
            "Delete old students to free up space."
        )
        super().__init__(self.message)


class ClearIncomplete(Exception):
    """Raised when reserved keys are still readable after every clear attempt."""

    def __init__(self, remaining: list[str], removed: int):
        self.remaining = list(remaining)
        self.removed = removed
        super().__init__(f"keys still present after clear: {', '.join(self.remaining)}")
