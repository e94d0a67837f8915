"""Git history queries and working-tree checkout.

:class:`CommitResolver` maps dates to commits on the main line and
commits to their timestamps without touching the working tree.
:class:`CheckoutManager` syncs remote refs and moves the tree to a
detached revision.  Both shell out to ``git`` and surface its stderr
verbatim when something goes wrong.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from revbench.errors import GitError, NotFoundError, UsageError
from revbench.logging import get_logger

log = get_logger("git")

# git's --before accepts this with an explicit offset, so the local
# timezone of the benchmarking host never shifts the cut-off.
_GIT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S +0000"


def _git(repo_dir: Path, *args: str) -> subprocess.CompletedProcess[str]:
    """Run ``git <args>`` in *repo_dir* and return the completed process."""
    cmd = ["git", *args]
    log.debug("Running %s in %s", " ".join(cmd), repo_dir)
    try:
        return subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            cwd=str(repo_dir),
            check=False,
        )
    except OSError as exc:
        raise GitError(f"Failed to execute git in {repo_dir}: {exc}") from exc


def format_timestamp(timestamp: int) -> str:
    """Human-readable UTC form of a unix timestamp, for logs and tables."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Commit resolution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CommitRef:
    """A concrete revision and its committer timestamp."""

    commit_id: str
    commit_date: int

    @property
    def short(self) -> str:
        return self.commit_id[:7]


class CommitResolver:
    """Read-only date <-> commit queries against one repository."""

    def __init__(self, repo_dir: Path, main_branch: str = "master") -> None:
        self.repo_dir = Path(repo_dir)
        self.main_branch = main_branch

    def resolve_by_date(self, timestamp: int) -> CommitRef:
        """Most recent first-parent commit on the main branch at or before *timestamp*.

        Commits sharing the same second are not ordered further: the one
        git lists first wins.

        Raises:
            NotFoundError: If no commit is that old (or the branch is unknown).
        """
        before = datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime(_GIT_DATE_FORMAT)
        log.debug("Looking up last commit on %s before %s", self.main_branch, before)
        proc = _git(
            self.repo_dir,
            "rev-list",
            "-n",
            "1",
            "--first-parent",
            f"--before={before}",
            self.main_branch,
            "--",
        )
        if proc.returncode != 0:
            raise NotFoundError(
                f"git rev-list on {self.main_branch!r} failed: {proc.stderr.strip()}"
            )
        commit_id = proc.stdout.strip()
        if not commit_id:
            raise NotFoundError(
                f"No commit on {self.main_branch!r} at or before {format_timestamp(timestamp)}"
            )
        return self.resolve_by_id(commit_id)

    def resolve_by_id(self, revision: str) -> CommitRef:
        """Full hash and committer timestamp of *revision*.

        Raises:
            NotFoundError: If git does not know the revision.
        """
        if not revision.strip():
            raise UsageError("A revision must be provided")
        proc = _git(
            self.repo_dir, "show", "-s", "--format=%H %ct", f"{revision}^{{commit}}", "--"
        )
        if proc.returncode != 0:
            raise NotFoundError(f"Unknown revision {revision!r}: {proc.stderr.strip()}")
        try:
            commit_id, commit_date = proc.stdout.split()
            return CommitRef(commit_id=commit_id, commit_date=int(commit_date))
        except ValueError:
            raise GitError(
                f"Unexpected git show output for {revision!r}: {proc.stdout.strip()!r}"
            ) from None

    def commit_timestamp(self, revision: str) -> int:
        """Committer timestamp (unix seconds) of *revision*."""
        return self.resolve_by_id(revision).commit_date


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


class CheckoutManager:
    """Keeps the source tree synced and pointed at the revision under test."""

    def __init__(self, repo_dir: Path, check_file: str = "src/init.cpp") -> None:
        self.repo_dir = Path(repo_dir)
        self.check_file = check_file
        self._validated = False

    def validate(self) -> None:
        """Make sure the tree is the expected project.

        Raises:
            UsageError: If the characteristic file is missing.
        """
        marker = self.repo_dir / self.check_file
        if not marker.exists():
            raise UsageError(
                f"Expected file {self.check_file} not found in source directory: {marker}"
            )
        log.info("Found %s in source directory %s", self.check_file, self.repo_dir)
        self._validated = True

    def sync(self) -> None:
        """Fetch all remotes, including tags, pruning stale refs."""
        proc = _git(self.repo_dir, "fetch", "--all", "--tags", "--prune")
        if proc.returncode != 0:
            raise GitError(f"Failed to fetch git repository: {proc.stderr.strip()}")
        log.info("Synced git repository %s", self.repo_dir)

    def checkout(self, revision: str) -> None:
        """Detach the working tree at *revision*."""
        if not self._validated:
            self.validate()
        proc = _git(self.repo_dir, "checkout", "--detach", revision)
        if proc.returncode != 0:
            raise GitError(f"git checkout {revision} failed: {proc.stderr.strip()}")
        log.info("Checked out commit %s", revision)
