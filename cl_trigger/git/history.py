"""Read-only access to the local commit history."""

import logging
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, RemoteReference, Repo

from ..models import Commit


logger = logging.getLogger(__name__)

# Tried in order when the current branch has no upstream
FALLBACK_UPSTREAMS = ["origin/main", "origin/master"]


class HistoryError(Exception):
    """Error reading the local git repository."""

    pass


class CommitHistory:
    """Commit history of the repository containing a working directory."""

    def __init__(self, path: Path | str = "."):
        """Open the repository that contains ``path``.

        Args:
            path: Any directory inside the working tree.

        Raises:
            HistoryError: If ``path`` is not inside a git repository.
        """
        try:
            self.repo = Repo(path, search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise HistoryError(f"Not a git repository: {path}") from e

    @property
    def root(self) -> Path:
        """Top-level directory of the working tree."""
        return Path(self.repo.working_tree_dir)

    def _tracking_branch(self) -> RemoteReference | None:
        try:
            branch = self.repo.active_branch
        except TypeError:
            # detached HEAD
            return None
        return branch.tracking_branch()

    def upstream_ref(self) -> str:
        """Remote-tracking ref of the current branch (e.g. ``origin/main``), or ""."""
        tracking = self._tracking_branch()
        return tracking.name if tracking is not None else ""

    def upstream_branch(self) -> str:
        """Name of the upstream branch on its remote (e.g. ``main``), or ""."""
        tracking = self._tracking_branch()
        return tracking.remote_head if tracking is not None else ""

    def branchpoint(self) -> str:
        """Return the most recent commit shared between HEAD and its upstream.

        Raises:
            HistoryError: If there is no upstream to compare against.
        """
        upstream = self.upstream_ref()
        candidates = [upstream] if upstream else FALLBACK_UPSTREAMS
        for base in candidates:
            try:
                sha = self.repo.git.merge_base("HEAD", base).strip()
            except GitCommandError as e:
                logger.debug(f"No merge base with {base}: {e}")
                continue
            logger.debug(f"Branchpoint against {base}: {sha}")
            return sha

        raise HistoryError(f"Could not determine branchpoint; tried {', '.join(candidates)}")

    def log(self, rev_range: str) -> list[Commit]:
        """List commits in ``rev_range``, newest first.

        Args:
            rev_range: Anything ``git log`` accepts, e.g. ``abc123..HEAD``.
        """
        try:
            return [Commit(hash=c.hexsha, message=c.message) for c in self.repo.iter_commits(rev_range)]
        except GitCommandError as e:
            raise HistoryError(f"Failed to list commits in {rev_range}: {e}") from e

    def resolve_single(self, ref: str) -> Commit:
        """Resolve ``ref`` to exactly one commit.

        Abbreviated hashes that match several objects are rejected.

        Raises:
            HistoryError: If ``ref`` is unknown or ambiguous.
        """
        try:
            sha = self.repo.git.rev_parse("--verify", f"{ref}^{{commit}}").strip()
        except GitCommandError as e:
            raise HistoryError(f"Failed to resolve {ref!r} to a single commit: {e.stderr.strip()}") from e

        commit = self.repo.commit(sha)
        return Commit(hash=commit.hexsha, message=commit.message)
