"""Mock implementations for testing."""

from .gerrit_client import MockGerritClient, make_change
from .history import FakeHistory, commit_message
from .sink import RecordingSink


__all__ = ["FakeHistory", "MockGerritClient", "RecordingSink", "commit_message", "make_change"]
