"""Git operations for cl-trigger."""

from .history import CommitHistory, HistoryError


__all__ = [
    "CommitHistory",
    "HistoryError",
]
