"""Concurrent fan-out of trigger requests.

Each revision is handled by its own worker: look the change up in Gerrit,
decide whether to trigger, then deliver one payload per dispatch target.
Failures are collected rather than raised so that one bad revision never
prevents triggers for the others.
"""

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
import logging
import threading
from typing import Protocol

from ..models import ChangeMetadata, DispatchTarget, Revision, TriggerPayload
from ..policy import APPROVED_VALUE, TRYBOT_LABEL, should_trigger
from .sink import DeliveryError, DispatchSink


logger = logging.getLogger(__name__)


class ReviewClient(Protocol):
    def get_change(self, change_id: str) -> ChangeMetadata: ...


class UnknownRevisionError(LookupError):
    """Raised when Gerrit has no record of a locally known revision."""

    def __init__(self, change_id: str, revision: str):
        self.change_id = change_id
        self.revision = revision
        super().__init__(
            f"change {change_id} does not know about revision {revision}; did you forget to run git codereview mail?"
        )


class DispatchError(Exception):
    """Aggregate of every failure from one dispatch call."""

    def __init__(self, errors: list[Exception], outcomes: list["DispatchOutcome"] | None = None):
        self.errors = list(errors)
        self.outcomes = outcomes or []
        super().__init__("\n".join(str(e) for e in self.errors))


class ErrorList:
    """Append-only, thread-safe collection of errors."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._errors: list[Exception] = []

    def add(self, error: Exception) -> None:
        with self._lock:
            self._errors.append(error)

    @property
    def errors(self) -> list[Exception]:
        with self._lock:
            return list(self._errors)

    def __len__(self) -> int:
        with self._lock:
            return len(self._errors)

    def raise_if_any(self, outcomes: list["DispatchOutcome"] | None = None) -> None:
        errors = self.errors
        if errors:
            raise DispatchError(errors, outcomes)


@dataclass
class DispatchOutcome:
    """What happened to a single revision."""

    revision: Revision
    change_number: int | None = None
    patchset: int | None = None
    triggered: list[DispatchTarget] = field(default_factory=list)
    skipped: bool = False


class DispatchCoordinator:
    """Triggers CI runs for a set of revisions concurrently."""

    def __init__(
        self,
        review_client: ReviewClient,
        sink: DispatchSink,
        targets: list[DispatchTarget],
        label: str = TRYBOT_LABEL,
        approved_value: int = APPROVED_VALUE,
    ):
        """Initialize the coordinator.

        Args:
            review_client: Source of change metadata.
            sink: Where trigger payloads are delivered.
            targets: Repositories to notify for every triggered revision.
            label: Label consulted by the skip policy.
            approved_value: Vote on ``label`` that marks a revision as passed.
        """
        if not targets:
            raise ValueError("at least one dispatch target is required")
        self.review_client = review_client
        self.sink = sink
        self.targets = targets
        self.label = label
        self.approved_value = approved_value

    def dispatch(self, revisions: list[Revision], force: bool = False) -> list[DispatchOutcome]:
        """Trigger builds for all ``revisions``.

        Every revision is attempted; the call returns only once all workers
        have finished.

        Returns:
            One outcome per revision that got as far as the skip decision.

        Raises:
            DispatchError: If anything failed. The message lists every failure
                and ``outcomes`` holds what did succeed.
        """
        if not revisions:
            return []

        errors = ErrorList()
        outcomes: list[DispatchOutcome] = []
        outcomes_lock = threading.Lock()

        def run(rev: Revision) -> None:
            try:
                outcome = self._trigger(rev, force, errors)
            except Exception as e:
                logger.debug(f"Trigger for {rev.change_id} failed", exc_info=True)
                errors.add(e)
                return
            with outcomes_lock:
                outcomes.append(outcome)

        logger.info(f"Dispatching {len(revisions)} revision(s)")
        with ThreadPoolExecutor(max_workers=len(revisions), thread_name_prefix="dispatch") as executor:
            futures = [executor.submit(run, rev) for rev in revisions]
            wait(futures)

        errors.raise_if_any(outcomes)
        return outcomes

    def _trigger(self, rev: Revision, force: bool, errors: ErrorList) -> DispatchOutcome:
        meta = self.review_client.get_change(rev.change_id)

        commit = rev.revision or meta.latest_revision
        info = meta.revisions.get(commit)
        if info is None:
            raise UnknownRevisionError(rev.change_id, commit)

        outcome = DispatchOutcome(revision=rev, change_number=meta.number, patchset=info.patchset)

        if not should_trigger(meta, rev.revision, force, self.label, self.approved_value):
            logger.info(f"Skipping change {meta.number} patchset {info.patchset}: already passed {self.label}")
            outcome.skipped = True
            return outcome

        for target in self.targets:
            payload = TriggerPayload(
                change_number=meta.number,
                patchset=info.patchset,
                target_branch=meta.branch,
                ref=info.ref,
                kind=target.kind,
            )
            try:
                self.sink.deliver(target.owner, target.repo, payload)
            except Exception as e:
                # remaining targets are still attempted
                error = DeliveryError(f"change {meta.number} patchset {info.patchset}: {e}")
                error.__cause__ = e
                errors.add(error)
                continue
            logger.info(f"Triggered {target.kind.value} in {target.full_name} for {info.ref}")
            outcome.triggered.append(target)

        return outcome
