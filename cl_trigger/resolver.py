"""Resolution of command-line arguments into changes to trigger.

Arguments are either literal change numbers/IDs (explicit mode) or references
to pending commits on the current branch (derived mode). In derived mode the
change ID of each commit is read from its ``Change-Id`` trailer, following the
conventions of git-codereview.
"""

import logging
import re
from typing import Protocol
from urllib.parse import quote

from .git import HistoryError
from .models import Commit, Revision


logger = logging.getLogger(__name__)

HEAD = "HEAD"

CHANGE_ID_RE = re.compile(r"^Change-Id: (.*)$", re.MULTILINE)


class ResolutionError(Exception):
    """Base exception for argument resolution errors."""

    pass


class ValidationError(ResolutionError):
    """Raised when the arguments are malformed or contradict local state."""

    pass


class CommitLookupError(ResolutionError, LookupError):
    """Raised when an argument does not identify a pending commit."""

    def __init__(self, arg: str, reason: str):
        self.arg = arg
        self.reason = reason
        super().__init__(f"{arg}: {reason}")


class HistoryReader(Protocol):
    """The subset of CommitHistory the resolver needs."""

    def branchpoint(self) -> str: ...

    def log(self, rev_range: str) -> list[Commit]: ...

    def resolve_single(self, ref: str) -> Commit: ...

    def upstream_branch(self) -> str: ...


def get_change_id_from_commit_msg(message: str) -> str:
    """Extract the Change-Id trailer value from a commit message.

    Raises:
        ValidationError: Unless exactly one Change-Id line is present.
    """
    matches = CHANGE_ID_RE.findall(message)
    if len(matches) != 1:
        raise ValidationError(
            f"failed to derive change identifier: expected one Change-Id line in commit message, "
            f"found {len(matches)}"
        )
    return matches[0].strip()


def qualify_change_id(change_id: str, project: str, branch: str) -> str:
    """Build the ``project~branch~Change-Id`` form Gerrit uses to disambiguate.

    The same Change-Id may exist on several branches (e.g. after a cherry-pick),
    so it is only unique once qualified by project and target branch.
    """
    return f"{quote(project, safe='')}~{quote(branch, safe='')}~{change_id}"


def _unique(args: list[str] | tuple[str, ...]) -> list[str]:
    seen: dict[str, None] = {}
    for a in args:
        seen.setdefault(a, None)
    return list(seen)


class ChangeIdentifierResolver:
    """Turns user arguments into a de-duplicated list of revisions."""

    def __init__(self, history: HistoryReader | None, project: str):
        """Initialize the resolver.

        Args:
            history: Local commit history. Only needed for derived mode.
            project: Gerrit project (e.g. ``owner/repo``) used to qualify change IDs.
        """
        self.history = history
        self.project = project

    def resolve(self, args: list[str] | tuple[str, ...], explicit: bool = False) -> list[Revision]:
        """Resolve arguments into revisions.

        Args:
            args: Command-line arguments.
            explicit: Interpret ``args`` as change numbers or IDs rather than commits.

        Returns:
            Non-empty list of unique revisions.

        Raises:
            ValidationError: If the arguments are inconsistent.
            CommitLookupError: If an argument does not match a pending commit.
        """
        unique_args = _unique(args)
        if explicit:
            if not unique_args:
                raise ValidationError("must provide at least one change number or ID")
            return [Revision(change_id=a) for a in unique_args]
        return self.derive(unique_args)

    def pending_commits(self) -> list[Commit]:
        """Commits on the current branch that are not yet upstream."""
        if self.history is None:
            raise ValidationError("no git history available to derive changes from")
        try:
            branchpoint = self.history.branchpoint()
            return self.history.log(f"{branchpoint}..HEAD")
        except HistoryError as e:
            raise ValidationError(f"failed to determine pending commits: {e}") from e

    def derive(self, args: list[str]) -> list[Revision]:
        """Derive revisions from pending commits.

        With no arguments and a single pending commit, that commit is used.
        ``HEAD`` on its own selects every pending commit. Otherwise each
        argument must name a pending commit.
        """
        pending = self.pending_commits()
        logger.debug(f"{len(pending)} pending commit(s)")

        if not pending:
            raise ValidationError("no pending commits")
        if HEAD in args and len(args) > 1:
            raise ValidationError("HEAD can only be supplied as an argument by itself")
        if not args and len(pending) > 1:
            raise ValidationError("must specify commits as arguments or use HEAD for everything")

        if HEAD in args or not args:
            selected = pending
        else:
            selected = self._match_pending(args, pending)

        qualifier = self.history.upstream_branch()
        if qualifier:
            logger.debug(f"Qualifying change IDs with {self.project}~{qualifier}")

        revisions = []
        for commit in selected:
            change_id = get_change_id_from_commit_msg(commit.message)
            if qualifier:
                change_id = qualify_change_id(change_id, self.project, qualifier)
            revisions.append(Revision(change_id=change_id, revision=commit.hash))
        return revisions

    def _match_pending(self, args: list[str], pending: list[Commit]) -> list[Commit]:
        pending_by_hash = {c.hash: c for c in pending}
        selected: dict[str, Commit] = {}

        for arg in args:
            try:
                commit = self.history.resolve_single(arg)
            except HistoryError as e:
                raise CommitLookupError(arg, f"failed to derive commit: {e}") from e
            if commit.hash not in pending_by_hash:
                raise CommitLookupError(arg, f"commit {commit.hash} is not a pending commit")
            if commit.hash in selected:
                logger.debug(f"{arg} resolves to already selected commit {commit.hash}")
                continue
            selected[commit.hash] = pending_by_hash[commit.hash]

        return list(selected.values())
