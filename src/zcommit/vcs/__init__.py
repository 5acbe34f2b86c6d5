"""
Version control system (VCS) integration.

This package contains the Git client used by zcommit. It exposes
methods for detecting the repository, inspecting its state, staging
changes, reading the staged diff, and committing.
"""

from .git_client import (  # noqa: F401
    CommitRejectedError,
    CommitRejection,
    ConflictInProgressError,
    ConflictState,
    FileChange,
    GitClient,
    GitError,
    NotARepositoryError,
    RepoStatus,
    StagingError,
)
