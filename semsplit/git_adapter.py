"""
Git integration for semsplit.

This module is responsible for interacting with the git CLI: reading
the staged diff, stashing and branching, applying patch files, and
creating and merging commits. Every call goes through _run_git so error
handling and logging are centralized.
"""

from __future__ import annotations

import logging
import subprocess
from typing import List, Optional

from .errors import GitError

LOG = logging.getLogger(__name__)


def _run_git(
    args: list[str],
    cwd: Optional[str] = None,
    input_text: Optional[str] = None,
) -> subprocess.CompletedProcess[str]:
    """
    Run a git command and return the completed process.

    A non-zero exit raises GitError carrying the command line and git's
    stderr.
    """

    cmd = ["git", *args]
    LOG.debug("Running git command: %s", " ".join(cmd))
    try:
        completed = subprocess.run(
            cmd,
            cwd=cwd,
            check=False,
            text=True,
            capture_output=True,
            input=input_text,
        )
    except OSError as exc:  # noqa: BLE001
        raise GitError(f"failed to execute git: {exc}") from exc

    if completed.returncode != 0:
        LOG.debug("git stderr: %s", completed.stderr)
        detail = completed.stderr.strip()
        message = f"git command failed: {' '.join(cmd)}"
        if detail:
            message = f"{message}: {detail}"
        raise GitError(message)

    return completed


def _git_status_code(args: list[str]) -> int:
    """
    Run a git command whose exit status is the answer (0 or 1).
    """

    cmd = ["git", *args]
    LOG.debug("Running git command (status check): %s", " ".join(cmd))
    try:
        completed = subprocess.run(cmd, check=False, text=True, capture_output=True)
    except OSError as exc:  # noqa: BLE001
        raise GitError(f"failed to execute git: {exc}") from exc
    if completed.returncode not in (0, 1):
        raise GitError(f"git command failed: {' '.join(cmd)}: {completed.stderr.strip()}")
    return completed.returncode


def is_inside_work_tree() -> bool:
    try:
        completed = _run_git(["rev-parse", "--is-inside-work-tree"])
    except GitError:
        return False
    return completed.stdout.strip() == "true"


def staged_paths() -> List[str]:
    """
    Return the paths with staged changes, relative to the repository root.
    """

    output = _run_git(["diff", "--cached", "--name-only"]).stdout
    return [line for line in output.splitlines() if line.strip()]


def current_branch() -> str:
    """
    Return the name of the checked out branch.

    A detached HEAD has no branch to merge back into, so it is an error.
    """

    name = _run_git(["rev-parse", "--abbrev-ref", "HEAD"]).stdout.strip()
    if not name or name == "HEAD":
        raise GitError("HEAD is detached; check out a branch first")
    return name


def rev_parse(ref: str) -> str:
    return _run_git(["rev-parse", ref]).stdout.strip()


def branch_exists(name: str) -> bool:
    return _git_status_code(["show-ref", "--verify", "--quiet", f"refs/heads/{name}"]) == 0


def status_entries() -> List[str]:
    """
    Return porcelain status entries, covering modified, untracked,
    deleted, staged, renamed and newly created files.
    """

    output = _run_git(["status", "--porcelain", "--untracked-files=all"]).stdout
    return [line for line in output.splitlines() if line.strip()]


def has_staged_changes() -> bool:
    return _git_status_code(["diff", "--cached", "--quiet"]) == 1


def stash_push(message: str) -> None:
    """
    Stash tracked and untracked changes under a recognizable message.
    """

    _run_git(["stash", "push", "--include-untracked", "-m", message])


def find_stash(message: str) -> Optional[str]:
    """
    Return the stash ref (e.g. stash@{0}) whose message ends with
    message, or None when no such stash exists.
    """

    output = _run_git(["stash", "list", "--format=%gd %s"]).stdout
    for line in output.splitlines():
        ref, _, subject = line.partition(" ")
        if subject.endswith(message):
            return ref
    return None


def stash_apply(ref: str, index: bool = True) -> None:
    args = ["stash", "apply"]
    if index:
        args.append("--index")
    _run_git([*args, ref])


def stash_pop(ref: str, index: bool = True) -> None:
    args = ["stash", "pop"]
    if index:
        args.append("--index")
    _run_git([*args, ref])


def create_branch_here(name: str) -> None:
    """
    Create a branch at HEAD and check it out.
    """

    _run_git(["checkout", "-b", name])


def checkout(ref: str) -> None:
    _run_git(["checkout", ref])


def delete_branch(name: str, force: bool = False) -> None:
    _run_git(["branch", "-D" if force else "-d", name])


def diff_cached() -> str:
    return _run_git(["diff", "--cached"]).stdout


def reset_hard() -> None:
    _run_git(["reset", "--hard"])


def clean_untracked() -> None:
    _run_git(["clean", "-fd"])


def apply_patch_file(path: str, unidiff_zero: bool = True) -> None:
    """
    Apply a patch file to the working tree.

    unidiff_zero accepts hunks generated without context lines.
    """

    args = ["apply"]
    if unidiff_zero:
        args.append("--unidiff-zero")
    _run_git([*args, path])


def stage_all() -> None:
    _run_git(["add", "-A"])


def create_commit(message: str) -> None:
    _run_git(["commit", "-m", message])


def merge(branch: str) -> None:
    _run_git(["merge", "--no-edit", branch])


def merge_in_progress() -> bool:
    return _git_status_code(["rev-parse", "-q", "--verify", "MERGE_HEAD"]) == 0


def merge_abort() -> None:
    _run_git(["merge", "--abort"])


def changed_files(sha: str) -> List[str]:
    output = _run_git(["diff", f"{sha}^", sha, "--name-only"]).stdout
    return [line for line in output.splitlines() if line.strip()]


def full_context_file_diff(sha: str, path: str) -> str:
    """
    Return the diff of one file in commit sha with the whole file as
    context.
    """

    return _run_git(["diff", "-U999999", f"{sha}^", sha, "--", path]).stdout
