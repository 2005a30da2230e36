"""Data models for cl-trigger."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TriggerKind(str, Enum):
    """Workflows that downstream CI repositories know how to run.

    The values double as the GitHub repository_dispatch event type.
    """

    TRYBOT = "trybot"
    UNITY = "unity"


@dataclass(frozen=True)
class Commit:
    """A single commit read from local history."""

    hash: str
    message: str


@dataclass(frozen=True)
class Revision:
    """A change to trigger, optionally pinned to a specific revision.

    An empty ``revision`` means the change's current revision.
    """

    change_id: str
    revision: str = ""


@dataclass(frozen=True)
class RevisionInfo:
    """A patchset of a change as reported by Gerrit."""

    ref: str
    patchset: int


@dataclass
class ChangeMetadata:
    """Snapshot of a Gerrit change."""

    number: int
    branch: str
    current_revision: str
    revisions: dict[str, RevisionInfo] = field(default_factory=dict)
    labels: dict[str, list[int]] = field(default_factory=dict)  # label name -> vote values

    @property
    def latest_revision(self) -> str:
        """Hash of the current revision, falling back to the highest patchset."""
        if self.current_revision:
            return self.current_revision
        if not self.revisions:
            return ""
        return max(self.revisions.items(), key=lambda item: item[1].patchset)[0]

    def votes(self, label: str) -> list[int]:
        return self.labels.get(label, [])


@dataclass(frozen=True)
class TriggerPayload:
    """Request for a CI run against one patchset."""

    change_number: int
    patchset: int
    target_branch: str
    ref: str
    kind: TriggerKind = TriggerKind.TRYBOT

    @property
    def event_type(self) -> str:
        return self.kind.value

    def to_client_payload(self) -> dict[str, Any]:
        """Serialize to the JSON object the receiving workflow expects."""
        cl = {
            "type": self.kind.value,
            "cl": self.change_number,
            "patchset": self.patchset,
            "targetBranch": self.target_branch,
            "ref": self.ref,
        }
        if self.kind is TriggerKind.UNITY:
            # unity takes a version list; the CL ref is the only version here
            return {
                "type": self.kind.value,
                "cl": cl,
                "versions": quote_versions([self.ref]),
            }
        return cl


@dataclass(frozen=True)
class DispatchTarget:
    """A GitHub repository that receives dispatch events of one kind."""

    owner: str
    repo: str
    kind: TriggerKind

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


def quote_versions(versions: list[str]) -> str:
    """Render versions as the space-separated, double-quoted list unity parses.

    Example: ``["v0.3.0", "v0.4.0"]`` -> ``'"v0.3.0" "v0.4.0"'``.
    """
    quoted = []
    for v in versions:
        escaped = v.replace("\\", "\\\\").replace('"', '\\"')
        quoted.append(f'"{escaped}"')
    return " ".join(quoted)
