"""
Git client implementation for zcommit.

This module wraps the Git operations required by the commit assistant.
Every command is executed as an argument list (never through a shell)
with a timeout and a cap on captured output. Failure text reported by
Git is pattern-matched into typed errors so that the CLI can print a
concrete remedy. All subprocess calls go through :meth:`GitClient._run`
so that unit tests can mock them easily.
"""

from __future__ import annotations

import enum
import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from zcommit.diff.diff_bundler import DiffBundle, build_diff_bundle


logger = logging.getLogger(__name__)
# Attach a null handler to avoid logging errors when the root logger is not
# configured. Logs will propagate to the root when configured by the CLI.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


COMMAND_TIMEOUT = 30.0
MAX_OUTPUT_CHARS = 10 * 1024 * 1024
# Hash of the empty tree, valid in every SHA-1 repository.
EMPTY_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

_CONFLICT_CODES = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}


class ConflictState(enum.Enum):
    """Multi-step operation the repository is currently in the middle of."""

    NONE = "none"
    REBASE = "rebase"
    MERGE = "merge"
    CHERRY_PICK = "cherry-pick"


class CommitRejection(enum.Enum):
    """Why ``git commit`` refused to create a commit."""

    HOOK = "hook"
    LOCKED = "lock"
    NOTHING_TO_COMMIT = "nothing-to-commit"
    OTHER = "other"


@dataclass
class FileChange:
    """Representation of a single entry of ``git status --porcelain``."""

    path: str
    status: str  # two-column XY code, e.g. ' M', 'A ', '??', 'UU'

    @property
    def is_new(self) -> bool:
        return self.status == "??" or self.status.startswith("A")


@dataclass
class RepoStatus:
    """Working tree changes grouped the way the commit flow needs them."""

    staged: List[FileChange] = field(default_factory=list)
    unstaged: List[FileChange] = field(default_factory=list)
    untracked: List[FileChange] = field(default_factory=list)
    conflicted: List[FileChange] = field(default_factory=list)
    entries: List[FileChange] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.entries


class GitError(Exception):
    """Raised when a Git command fails."""

    pass


class NotARepositoryError(GitError):
    """Raised when the working directory is not inside a Git repository."""

    pass


class ConflictInProgressError(GitError):
    """Raised when a rebase, merge or cherry-pick has not been finished."""

    def __init__(self, state: ConflictState) -> None:
        super().__init__(f"A {state.value} is in progress")
        self.state = state


class StagingError(GitError):
    """Raised when changes could not be added to the index."""

    pass


class CommitRejectedError(GitError):
    """Raised when ``git commit`` exits with a failure."""

    def __init__(self, reason: CommitRejection, detail: str) -> None:
        super().__init__(detail)
        self.reason = reason
        self.detail = detail


def classify_commit_failure(output: str) -> CommitRejection:
    """Map the text Git printed on a failed commit to a :class:`CommitRejection`."""
    text = output.lower()
    if "index.lock" in text or ("unable to create" in text and ".lock" in text):
        return CommitRejection.LOCKED
    if "nothing to commit" in text or "no changes added to commit" in text:
        return CommitRejection.NOTHING_TO_COMMIT
    if "hook" in text:
        return CommitRejection.HOOK
    return CommitRejection.OTHER


def parse_porcelain_status(output: str) -> RepoStatus:
    """Parse ``git status --porcelain`` (v1) output into a :class:`RepoStatus`."""
    status = RepoStatus()
    for line in output.splitlines():
        # Git porcelain format: XY filename, at least 4 characters
        if len(line) < 4 or not line.strip():
            continue
        code = line[:2]
        path = line[3:]
        if " -> " in path:
            # Renames and copies report "old -> new"; the new path is what exists now
            path = path.split(" -> ", 1)[1]
        entry = FileChange(path=path, status=code)
        status.entries.append(entry)
        if code == "??":
            status.untracked.append(entry)
            continue
        if code in _CONFLICT_CODES:
            status.conflicted.append(entry)
            continue
        if code[0] not in (" ", "?", "!"):
            status.staged.append(entry)
        if code[1] not in (" ", "?", "!"):
            status.unstaged.append(entry)
    return status


class GitClient:
    """Client for interacting with a Git repository."""

    def __init__(self, repo_root: Path, timeout: float = COMMAND_TIMEOUT) -> None:
        self.repo_root = repo_root
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Static helpers
    # ------------------------------------------------------------------
    @staticmethod
    def find_repo_root(start: Path) -> Optional[Path]:
        """Return the top-level directory of the work tree containing ``start``.

        Returns ``None`` when ``start`` is not inside a Git work tree or
        Git is not installed.
        """
        try:
            result = subprocess.run(
                ["git", "rev-parse", "--show-toplevel"],
                cwd=start,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=COMMAND_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.debug("Could not run git in %s: %s", start, exc)
            return None
        if result.returncode != 0 or not result.stdout.strip():
            return None
        return Path(result.stdout.strip())

    @staticmethod
    def is_repo(path: Path) -> bool:
        """Return True if the given path is inside a Git work tree."""
        return GitClient.find_repo_root(path) is not None

    @classmethod
    def open(cls, start: Path) -> "GitClient":
        """Return a client for the repository containing ``start``.

        Raises
        ------
        NotARepositoryError
            If ``start`` is not inside a Git work tree.
        """
        root = cls.find_repo_root(start)
        if root is None:
            raise NotARepositoryError(f"{start} is not inside a git repository")
        return cls(root)

    # ------------------------------------------------------------------
    # Basic Git commands
    # ------------------------------------------------------------------
    def _run(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a Git command in the repository root.

        Raises
        ------
        GitError
            If Git cannot be started, times out, or exits with a non-zero
            status when ``check`` is True.
        """
        full_cmd = ["git"] + args
        logger.debug("Executing Git command: %s", " ".join(full_cmd))
        try:
            result = subprocess.run(
                full_cmd,
                cwd=self.repo_root,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",  # Replace invalid characters instead of failing
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            logger.error("Git command timed out after %ss: %s", self.timeout, " ".join(full_cmd))
            raise GitError(f"git {args[0]} timed out after {self.timeout:.0f}s") from exc
        except OSError as exc:
            logger.error("Could not execute git: %s", exc)
            raise GitError(f"Could not execute git: {exc}") from exc

        if result.stdout and len(result.stdout) > MAX_OUTPUT_CHARS:
            result.stdout = result.stdout[:MAX_OUTPUT_CHARS]

        if check and result.returncode != 0:
            logger.error(
                "Git command failed: %s\nSTDOUT: %s\nSTDERR: %s",
                " ".join(full_cmd),
                result.stdout,
                result.stderr,
            )
            raise GitError(result.stderr.strip() or result.stdout.strip())
        return result

    # ------------------------------------------------------------------
    # Repository state
    # ------------------------------------------------------------------
    def _git_dir(self) -> Path:
        result = self._run(["rev-parse", "--git-dir"], check=True)
        git_dir = Path(result.stdout.strip())
        if not git_dir.is_absolute():
            git_dir = self.repo_root / git_dir
        return git_dir

    def get_conflict_state(self) -> ConflictState:
        """Detect an unfinished rebase, merge or cherry-pick."""
        git_dir = self._git_dir()
        if (git_dir / "rebase-merge").exists() or (git_dir / "rebase-apply").exists():
            return ConflictState.REBASE
        if (git_dir / "MERGE_HEAD").exists():
            return ConflictState.MERGE
        if (git_dir / "CHERRY_PICK_HEAD").exists():
            return ConflictState.CHERRY_PICK
        return ConflictState.NONE

    def ensure_no_conflict(self) -> None:
        """Raise :class:`ConflictInProgressError` while an operation is unfinished."""
        state = self.get_conflict_state()
        if state is not ConflictState.NONE:
            raise ConflictInProgressError(state)

    def get_current_branch(self) -> str:
        """Return the current branch name, or ``"HEAD (detached)"``."""
        result = self._run(["branch", "--show-current"], check=False)
        branch = result.stdout.strip()
        return branch if result.returncode == 0 and branch else "HEAD (detached)"

    def has_head(self) -> bool:
        """Return True once the repository has at least one commit."""
        result = self._run(["rev-parse", "--verify", "--quiet", "HEAD"], check=False)
        return result.returncode == 0

    def get_status(self) -> RepoStatus:
        """Return staged, unstaged, untracked and conflicted entries."""
        result = self._run(["-c", "core.quotePath=false", "status", "--porcelain"], check=True)
        return parse_porcelain_status(result.stdout)

    def has_staged_changes(self) -> bool:
        """Return True if the index differs from HEAD (or is non-empty in a new repo)."""
        result = self._run(["diff", "--cached", "--quiet"], check=False)
        if result.returncode not in (0, 1):
            raise GitError(result.stderr.strip() or "git diff --cached failed")
        return result.returncode == 1

    # ------------------------------------------------------------------
    # Staging and committing
    # ------------------------------------------------------------------
    def stage_all(self) -> None:
        """Stage every change in the work tree, including deletions and new files."""
        try:
            self._run(["add", "-A"], check=True)
        except GitError as exc:
            raise StagingError(str(exc)) from exc

    def stage_files(self, paths: Sequence[str]) -> None:
        """Stage the given paths. Deleted paths are staged as removals by Git."""
        if not paths:
            return
        try:
            self._run(["add", "--"] + list(paths), check=True)
        except GitError as exc:
            raise StagingError(str(exc)) from exc

    def commit(self, message: str) -> None:
        """Create a commit with the given message.

        Raises
        ------
        CommitRejectedError
            If Git refuses the commit; ``reason`` tells why.
        """
        result = self._run(["commit", "-m", message], check=False)
        if result.returncode != 0:
            output = "\n".join(part for part in (result.stderr.strip(), result.stdout.strip()) if part)
            reason = classify_commit_failure(output)
            logger.error("Commit rejected (%s): %s", reason.value, output)
            raise CommitRejectedError(reason, output or "git commit failed")

    # ------------------------------------------------------------------
    # Diffs and history
    # ------------------------------------------------------------------
    def get_staged_diff(self) -> DiffBundle:
        """Return the bounded diff of the index against HEAD."""
        stat = self._run(["diff", "--cached", "--stat"], check=True).stdout
        raw = self._run(["diff", "--cached"], check=True).stdout
        return build_diff_bundle(stat, raw)

    def get_staged_diff_for_empty_repo(self) -> DiffBundle:
        """Return the bounded diff of the index against the empty tree."""
        stat = self._run(["diff", "--cached", "--stat", EMPTY_TREE_SHA], check=True).stdout
        raw = self._run(["diff", "--cached", EMPTY_TREE_SHA], check=True).stdout
        return build_diff_bundle(stat, raw)

    def get_recent_history(self, count: int = 5) -> str:
        """Return the last ``count`` commits as one-line entries ('' if none)."""
        result = self._run(["log", "--oneline", f"-{count}", "--no-decorate"], check=False)
        if result.returncode != 0:
            return ""
        return result.stdout.strip()
