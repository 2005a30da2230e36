"""cl-trigger - run GitHub CI workflows for Gerrit changes."""

__version__ = "0.1.0"

from .dispatch import DispatchCoordinator, DispatchError, GitHubDispatchSink
from .gerrit import ChangeNotFoundError, GerritClient
from .git import CommitHistory, HistoryError
from .models import ChangeMetadata, Revision, TriggerKind, TriggerPayload
from .policy import should_trigger
from .resolver import ChangeIdentifierResolver, CommitLookupError, ValidationError


__all__ = [
    "__version__",
    # Resolution
    "ChangeIdentifierResolver",
    "CommitLookupError",
    "ValidationError",
    # Dispatch
    "DispatchCoordinator",
    "DispatchError",
    "GitHubDispatchSink",
    "should_trigger",
    # Gerrit
    "ChangeNotFoundError",
    "GerritClient",
    # Git
    "CommitHistory",
    "HistoryError",
    # Models
    "ChangeMetadata",
    "Revision",
    "TriggerKind",
    "TriggerPayload",
]
