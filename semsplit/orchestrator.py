"""
High-level orchestration for semsplit.

The orchestrator is a single-threaded state machine. It advances one
phase at a time:

  init -> processing -> dendrogram -> threshold-processing -> applying
       -> visualization -> merging -> restoring -> done

Blocking work (git, the engine) runs inside a phase and is never
interrupted; cancellation requests, whether from the operator or from
SIGINT/SIGTERM, are honored between phases. Every failure funnels into
one cleanup path.
"""

from __future__ import annotations

import logging
import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from rich.console import Console

from .config import Config
from .diff_parser import parse_full_context_diff, parse_unified_diff, summarize
from .domain import CommitEntry, WorkspaceSession
from .engine import ComputeBridge
from .errors import CancelledError, EngineError, GitError
from .git_adapter import changed_files, full_context_file_diff
from .phases import (
    INTERACTIVE_PHASES,
    Applying,
    Cancelled,
    CommitView,
    Dendrogram,
    DevConfirm,
    Done,
    Failed,
    Init,
    Merging,
    Phase,
    Processing,
    Restoring,
    State,
    ThresholdProcessing,
    Visualization,
    describe,
    is_allowed,
    is_terminal,
)
from .scratch import ScratchDir
from .screens import (
    APPLY,
    CONFIRM,
    DendrogramScreen,
    DevConfirmScreen,
    InputQueue,
    KeySource,
    PromptKeySource,
    VisualizationScreen,
    drive,
)
from .workspace import CleanupReport, apply_commit_plan, cleanup, isolate, merge_back, start_session

LOG = logging.getLogger(__name__)


class Orchestrator:
    """
    Drives one semsplit run from isolation to merge-back.
    """

    def __init__(
        self,
        config: Config,
        console: Optional[Console] = None,
        keys: Optional[KeySource] = None,
        bridge: Optional[ComputeBridge] = None,
    ) -> None:
        self.config = config
        self.console = console or Console()
        self.queue = InputQueue(keys or PromptKeySource(self.console))
        self.bridge = bridge or ComputeBridge(config.engine, verbose=config.verbosity > 0)
        self.scratch = ScratchDir(config.scratch_dir)

        self.state: State = Init()
        self.history: List[Phase] = [Phase.INIT]
        self.session: Optional[WorkspaceSession] = None
        self.cleanup_report: Optional[CleanupReport] = None
        self.engine_stderr: List[str] = []
        self._state_path: Optional[Path] = None
        self._cancel_requested = False
        self._awaiting_input = False

    # -- transitions -------------------------------------------------

    def _enter(self, nxt: State) -> None:
        if not is_allowed(self.state, nxt):
            raise RuntimeError(f"illegal transition {describe(self.state)} -> {describe(nxt)}")
        LOG.debug("Phase %s -> %s", describe(self.state), describe(nxt))
        previous = self.state
        self.state = nxt
        self.history.append(nxt.phase)

        if isinstance(nxt, Cancelled):
            self._cleanup(delete_artifacts=True)
        elif isinstance(nxt, Failed) and previous.phase is not Phase.RESTORING:
            self._cleanup(delete_artifacts=False)

    def _advance(self, nxt: State) -> None:
        """
        Automatic transition; in dev mode it waits behind a confirmation gate.
        """

        if self.config.dev and not is_terminal(nxt):
            self._enter(DevConfirm(pending=nxt))
        else:
            self._enter(nxt)

    def _cleanup(self, delete_artifacts: bool) -> None:
        if self.session is None:
            if delete_artifacts:
                self.scratch.remove()
            return
        self.cleanup_report = cleanup(self.session, delete_artifacts=delete_artifacts, scratch=self.scratch)

    def request_cancel(self) -> None:
        self._cancel_requested = True

    # -- main loop ---------------------------------------------------

    def run(self) -> State:
        with self._signal_handlers():
            while not is_terminal(self.state):
                if self._cancel_requested:
                    LOG.info("Cancellation requested during %s", describe(self.state))
                    self._enter(Cancelled())
                    break
                self._step()
        self._report()
        return self.state

    def _step(self) -> None:
        state = self.state
        if state.phase in INTERACTIVE_PHASES:
            self.queue.discard_pending()
        try:
            if isinstance(state, Init):
                self._run_init()
            elif isinstance(state, Processing):
                self._run_processing()
            elif isinstance(state, Dendrogram):
                self._run_dendrogram(state)
            elif isinstance(state, ThresholdProcessing):
                self._run_threshold_processing(state)
            elif isinstance(state, Applying):
                self._run_applying(state)
            elif isinstance(state, Visualization):
                self._run_visualization(state)
            elif isinstance(state, Merging):
                self._run_merging(state)
            elif isinstance(state, Restoring):
                self._run_restoring(state)
            elif isinstance(state, DevConfirm):
                self._run_dev_confirm(state)
        except (CancelledError, KeyboardInterrupt):
            self._enter(Cancelled())
        except Exception as exc:  # noqa: BLE001
            LOG.debug("Phase %s failed", describe(state), exc_info=True)
            if self._cancel_requested:
                # The signal also reached the child process and killed it.
                self._enter(Cancelled())
                return
            self._enter(Failed(message=str(exc) or exc.__class__.__name__, failed_phase=state.phase))
        finally:
            self._awaiting_input = False

    def _interact(self, screen) -> str:
        self._awaiting_input = True
        try:
            return drive(screen, self.queue, self.console)
        finally:
            self._awaiting_input = False

    def _require_session(self) -> WorkspaceSession:
        if self.session is None:
            raise GitError("the staged changes have not been isolated")
        return self.session

    def _record_stderr(self, stderr: str) -> None:
        if not stderr:
            return
        self.engine_stderr.append(stderr.rstrip())
        if self.config.verbosity > 0:
            self.console.print(stderr.rstrip(), style="dim", markup=False, highlight=False)

    # -- phases ------------------------------------------------------

    def _run_init(self) -> None:
        with self.console.status("Initializing..."):
            self.scratch.create()
            self.session = start_session()
        with self.console.status("Creating staging branch..."):
            branch = isolate(self.session)
        LOG.info("Isolated staged changes on %s", branch)
        self._advance(Processing())

    def _run_processing(self) -> None:
        diff_text = self._require_session().staged_diff_text
        LOG.info("Staged diff: %s", summarize(parse_unified_diff(diff_text)))
        with self.console.status("Analyzing changes..."):
            result = self.bridge.build_tree(diff_text, self.scratch)
        self._record_stderr(result.stderr)
        self._state_path = result.state_path
        threshold = min(max(self.config.threshold, 0.0), result.dendrogram.scale)
        self._advance(Dendrogram(data=result.dendrogram, threshold=threshold))

    def _run_dendrogram(self, state: Dendrogram) -> None:
        screen = DendrogramScreen(state.data, state.threshold, self.config)
        outcome = self._interact(screen)
        if outcome == CONFIRM:
            LOG.info("Threshold %.3f selected (%d clusters)", screen.threshold, screen.cluster_count)
            self._advance(ThresholdProcessing(data=state.data, threshold=screen.threshold))
        else:
            self._enter(Cancelled())

    def _run_threshold_processing(self, state: ThresholdProcessing) -> None:
        if self._state_path is None:
            raise EngineError("no saved merge tree to resolve a threshold against")
        with self.console.status("Applying threshold and generating commits..."):
            result = self.bridge.resolve_plan(state.threshold, self._state_path)
        self._record_stderr(result.stderr)
        self._advance(Applying(plan=result.plan))

    def _run_applying(self, state: Applying) -> None:
        session = self._require_session()
        with self.console.status("Applying commits...") as status:

            def progress(index: int, total: int, entry: CommitEntry) -> None:
                status.update(f"Applying cluster {index}/{total}...")

            shas = apply_commit_plan(session, state.plan, progress=progress)
            status.update("Loading commit diffs...")
            views = self._load_commit_views(shas, [e for e in state.plan.commits if e.patch_files])
        self._advance(Visualization(plan=state.plan, commits=views))

    def _load_commit_views(self, shas: List[str], entries: List[CommitEntry]) -> List[CommitView]:
        views: List[CommitView] = []
        for sha, entry in zip(shas, entries):
            view = CommitView(sha=sha, message=entry.message)
            for path in changed_files(sha):
                view.files[path] = parse_full_context_diff(full_context_file_diff(sha, path))
            views.append(view)
        return views

    def _run_visualization(self, state: Visualization) -> None:
        screen = VisualizationScreen(state.commits, view_height=self.config.max_rows)
        outcome = self._interact(screen)
        if outcome == APPLY:
            self._advance(Merging(plan=state.plan))
        else:
            self._enter(Cancelled())

    def _run_merging(self, state: Merging) -> None:
        with self.console.status("Merging to original branch..."):
            merge_back(self._require_session())
        self._advance(Restoring(plan=state.plan))

    def _run_restoring(self, state: Restoring) -> None:
        session = self._require_session()
        with self.console.status("Cleaning up..."):
            report = cleanup(session, delete_artifacts=True, scratch=self.scratch)
        self.cleanup_report = report
        if report.unresolved_stash is not None:
            self._enter(
                Failed(
                    message=f"could not restore stashed changes ({report.unresolved_stash})",
                    failed_phase=Phase.RESTORING,
                )
            )
            return
        messages = [entry.message for entry in state.plan.commits if entry.patch_files]
        self._enter(Done(messages=messages, branch=session.original_branch))

    def _run_dev_confirm(self, state: DevConfirm) -> None:
        outcome = self._interact(DevConfirmScreen(state.pending.phase.value))
        if outcome == CONFIRM:
            self._enter(state.pending)
        else:
            self._enter(Cancelled())

    # -- signals and reporting ---------------------------------------

    def _on_signal(self, signum, frame) -> None:
        LOG.info("Received signal %s", signum)
        self._cancel_requested = True
        if self._awaiting_input:
            raise CancelledError("interrupted")

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        if threading.current_thread() is not threading.main_thread():
            yield
            return
        previous = {
            signum: signal.signal(signum, self._on_signal)
            for signum in (signal.SIGINT, signal.SIGTERM)
        }
        try:
            yield
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)

    def _report(self) -> None:
        state = self.state
        console = self.console
        if isinstance(state, Done):
            console.print(f"✓ Created {len(state.messages)} commit(s) on {state.branch}", style="green")
            for message in state.messages:
                console.print(f"  - {message.splitlines()[0] if message else ''}", style="dim", markup=False)
        elif isinstance(state, Cancelled):
            console.print("Cancelled. No changes made.", style="dim")
            self._report_unresolved_stash()
        elif isinstance(state, Failed):
            console.print(f"Error: {state.message}", style="red", markup=False)
            report = self.cleanup_report
            if state.failed_phase is not Phase.RESTORING and (report is None or report.ok):
                console.print("Cleanup attempted: staging branch removed and stash restored.", style="dim")
            elif state.failed_phase is not Phase.RESTORING:
                console.print("Cleanup attempted.", style="dim")
            if self.scratch.exists():
                console.print(f"Intermediate files kept in {self.scratch.path}", style="dim", markup=False)
            self._report_unresolved_stash()

    def _report_unresolved_stash(self) -> None:
        report = self.cleanup_report
        if report is None or report.ok:
            return
        if report.unresolved_stash is not None:
            self.console.print(
                f"Warning: stashed changes could not be restored; recover them with "
                f"`git stash pop {report.unresolved_stash}`.",
                style="yellow",
                markup=False,
            )
        if not report.branch_restored:
            self.console.print("Warning: could not switch back to the original branch.", style="yellow")
        elif not report.staging_branch_deleted:
            self.console.print("Warning: the staging branch could not be deleted.", style="yellow")
