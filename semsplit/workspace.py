"""
Workspace management for semsplit.

The staged changes are isolated onto a throwaway staging branch, the
commit plan is applied there, and the branch is merged back into the
operator's branch. Whatever happens in between, cleanup() brings the
repository back to the original branch with any pre-existing changes
restored from the temporary stash.

All state lives in the WorkspaceSession passed to every call; nothing
in this module is global.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .domain import CommitEntry, CommitPlan, WorkspaceSession
from .errors import GitError, PatchApplyError
from .git_adapter import (
    apply_patch_file,
    branch_exists,
    checkout,
    clean_untracked,
    create_branch_here,
    create_commit,
    current_branch,
    delete_branch,
    diff_cached,
    find_stash,
    has_staged_changes,
    merge,
    merge_abort,
    merge_in_progress,
    reset_hard,
    rev_parse,
    stage_all,
    stash_apply,
    stash_pop,
    stash_push,
    status_entries,
)
from .scratch import ScratchDir

LOG = logging.getLogger(__name__)

BRANCH_PREFIX = "semsplit-staging"
STASH_PREFIX = "semsplit-temp"
DANGLING_COMMIT_MESSAGE = "semsplit: discard partial changes"


@dataclass
class CleanupReport:
    """
    Outcome of a cleanup pass.

    unresolved_stash names a stash that could not be reapplied and was
    left in place for manual recovery.
    """

    branch_restored: bool = True
    staging_branch_deleted: bool = True
    stash_restored: Optional[bool] = None
    unresolved_stash: Optional[str] = None
    artifacts_deleted: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.branch_restored and self.staging_branch_deleted and self.unresolved_stash is None


def start_session() -> WorkspaceSession:
    return WorkspaceSession(original_branch=current_branch())


def _unique_branch_name() -> str:
    stamp = int(time.time() * 1000)
    name = f"{BRANCH_PREFIX}-{stamp}"
    suffix = 1
    while branch_exists(name):
        name = f"{BRANCH_PREFIX}-{stamp}-{suffix}"
        suffix += 1
    return name


def isolate(session: WorkspaceSession) -> str:
    """
    Move the staged changes onto a fresh staging branch.

    Outstanding changes are stashed (untracked files included), the
    staging branch is created from HEAD, the stash is reapplied with
    its index, and the cached diff is captured. The working tree is
    then reset so the staging branch matches its last commit; from here
    on the staged changes exist only in the captured diff and in the
    stash.
    """

    if session.staging_branch is not None:
        raise GitError(f"staging branch {session.staging_branch} is already live")

    if status_entries():
        message = f"{STASH_PREFIX}-{int(time.time() * 1000)}"
        LOG.info("Stashing outstanding changes as %s", message)
        stash_push(message)
        session.stash_created = True
        session.stash_message = message

    name = _unique_branch_name()
    LOG.info("Creating staging branch %s from %s", name, session.original_branch)
    create_branch_here(name)
    session.staging_branch = name

    if session.stash_created:
        ref = _stash_ref(session)
        if ref is None:
            raise GitError(f"stash {session.stash_message} disappeared")
        stash_apply(ref, index=True)

    session.staged_diff_text = diff_cached()
    reset_hard()
    if session.stash_created:
        # Untracked files are preserved in the stash.
        clean_untracked()
    return name


def _stash_ref(session: WorkspaceSession) -> Optional[str]:
    if not session.stash_message:
        return None
    return find_stash(session.stash_message)


def apply_commit_plan(
    session: WorkspaceSession,
    plan: CommitPlan,
    progress: Optional[Callable[[int, int, CommitEntry], None]] = None,
) -> List[str]:
    """
    Apply every commit of the plan, in order, on the staging branch.

    The first patch that fails to apply aborts the whole plan; commits
    created before it are left for cleanup to discard.
    """

    if session.staging_branch is None:
        raise GitError("no staging branch to apply the commit plan on")
    active = current_branch()
    if active != session.staging_branch:
        raise GitError(f"expected staging branch {session.staging_branch}, found {active}")

    total = len(plan.commits)
    for index, entry in enumerate(plan.commits, start=1):
        if progress is not None:
            progress(index, total, entry)
        if not entry.patch_files:
            LOG.warning("Commit %d (%s) has no patch files; skipping", index, entry.title)
            continue

        for patch_file in entry.patch_files:
            LOG.debug("Applying %s", patch_file)
            try:
                apply_patch_file(patch_file, unidiff_zero=True)
            except GitError as exc:
                raise PatchApplyError(patch_file, str(exc)) from exc

        stage_all()
        create_commit(entry.message)
        sha = rev_parse("HEAD")
        session.commit_shas.append(sha)
        LOG.info("Created commit %s: %s", sha[:7], entry.title)

    return list(session.commit_shas)


def merge_back(session: WorkspaceSession) -> None:
    """
    Merge the staging branch into the original branch and delete it.
    """

    if session.staging_branch is None:
        raise GitError("no staging branch to merge")

    staging = session.staging_branch
    checkout(session.original_branch)
    merge(staging)
    delete_branch(staging, force=True)
    session.staging_branch = None
    LOG.info("Merged %s into %s", staging, session.original_branch)


def cleanup(
    session: WorkspaceSession,
    delete_artifacts: bool = False,
    scratch: Optional[ScratchDir] = None,
) -> CleanupReport:
    """
    Best-effort restoration of the operator's workspace.

    Safe to call any number of times and on any path. Steps that fail
    are logged and recorded in the report; nothing is raised.

    Recovery order: abort an unfinished merge, commit whatever is
    dangling on the staging branch, return to the original branch, delete the staging branch, remove
    untracked leftovers, then pop the temporary stash with its index,
    falling back to a plain pop. A stash that still cannot be popped is
    reported as unresolved.
    """

    report = CleanupReport()

    if session.staging_branch is not None:
        _discard_staging_branch(session, session.staging_branch, report)

    if session.stash_created and report.branch_restored:
        _restore_stash(session, report)
    elif session.stash_created:
        report.stash_restored = False
        report.unresolved_stash = _safe_stash_ref(session) or session.stash_message

    if delete_artifacts and scratch is not None:
        try:
            scratch.remove()
            report.artifacts_deleted = True
        except OSError as exc:
            LOG.warning("Failed to remove scratch directory %s: %s", scratch.path, exc)
            report.errors.append(str(exc))

    return report


def _discard_staging_branch(session: WorkspaceSession, staging: str, report: CleanupReport) -> None:
    try:
        if merge_in_progress():
            LOG.warning("Aborting the unfinished merge of %s", staging)
            merge_abort()
    except GitError as exc:
        LOG.warning("Could not abort the unfinished merge: %s", exc)
        report.errors.append(str(exc))

    try:
        on_staging = current_branch() == staging
    except GitError as exc:
        LOG.warning("Could not determine the current branch: %s", exc)
        report.errors.append(str(exc))
        on_staging = True

    if on_staging:
        try:
            stage_all()
            if has_staged_changes():
                create_commit(DANGLING_COMMIT_MESSAGE)
        except GitError as exc:
            LOG.warning("Could not commit dangling changes on %s: %s", staging, exc)
            report.errors.append(str(exc))
            try:
                reset_hard()
                clean_untracked()
            except GitError as reset_exc:
                LOG.error("Could not reset %s: %s", staging, reset_exc)
                report.errors.append(str(reset_exc))

    try:
        checkout(session.original_branch)
    except GitError as exc:
        LOG.error("Failed to return to original branch %s: %s", session.original_branch, exc)
        report.errors.append(str(exc))
        report.branch_restored = False
        report.staging_branch_deleted = False
        return

    try:
        delete_branch(staging, force=True)
    except GitError as exc:
        LOG.error("Failed to delete staging branch %s: %s", staging, exc)
        report.errors.append(str(exc))
        report.staging_branch_deleted = False
        return

    session.staging_branch = None


def _safe_stash_ref(session: WorkspaceSession) -> Optional[str]:
    try:
        return _stash_ref(session)
    except GitError as exc:
        LOG.warning("Could not list stashes: %s", exc)
        return None


def _restore_stash(session: WorkspaceSession, report: CleanupReport) -> None:
    ref = _safe_stash_ref(session)
    if ref is None:
        LOG.error("Temporary stash %s not found", session.stash_message)
        report.stash_restored = False
        report.unresolved_stash = session.stash_message
        return

    try:
        clean_untracked()
    except GitError as exc:
        LOG.warning("Could not remove untracked leftovers: %s", exc)
        report.errors.append(str(exc))

    try:
        stash_pop(ref, index=True)
    except GitError as exc:
        LOG.warning("Restoring %s with its index failed (%s); retrying without --index", ref, exc)
        try:
            stash_pop(ref, index=False)
        except GitError as plain_exc:
            LOG.error("Could not restore %s; it is left for manual recovery", ref)
            report.errors.append(str(plain_exc))
            report.stash_restored = False
            report.unresolved_stash = _safe_stash_ref(session) or ref
            session.stash_created = False
            return

    report.stash_restored = True
    session.stash_created = False
