"""
Custom exception types used across semsplit.

Defining explicit error classes makes it easier for the CLI and the
orchestrator to distinguish between precondition failures, phase
failures and operator cancellation.
"""

from __future__ import annotations


class SemsplitError(Exception):
    """Base class for all semsplit specific errors."""


class PreconditionError(SemsplitError):
    """Raised before any workspace mutation when the run cannot start."""


class GitError(SemsplitError):
    """Raised when git operations fail."""


class PatchApplyError(GitError):
    """Raised when a single patch file of a commit plan fails to apply."""

    def __init__(self, patch_file: str, detail: str) -> None:
        super().__init__(f"failed to apply patch {patch_file}: {detail}")
        self.patch_file = patch_file


class EngineError(SemsplitError):
    """Raised when the external clustering engine fails."""


class EngineOutputError(EngineError):
    """Raised when the engine's output is not a valid JSON document."""


class CancelledError(SemsplitError):
    """Raised internally when the operator or a signal cancels the run."""
