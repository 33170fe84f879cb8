"""
Bridge to the external clustering engine.

The engine is a separate executable. It is spawned twice per run:

  - tree mode (``-m``): the staged diff goes in on stdin and a JSON
    document with the merge tree comes back on stdout. The whole
    document, including engine-private state, is saved to the scratch
    directory for the second call.
  - threshold mode (``-t <threshold> <state file>``): the engine cuts
    the tree at the chosen threshold and returns the commit plan.

Anything the engine writes to stderr is diagnostic output only.
"""

from __future__ import annotations

import json
import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from .domain import CommitPlan, DendrogramData, commit_plan_from_json, dendrogram_from_json
from .errors import EngineError, EngineOutputError
from .scratch import ScratchDir

LOG = logging.getLogger(__name__)


@dataclass
class TreePhaseResult:
    dendrogram: DendrogramData
    state_path: Path
    stderr: str = ""


@dataclass
class PlanPhaseResult:
    plan: CommitPlan
    stderr: str = ""


class ComputeBridge:
    """
    Spawns the engine and marshals its input and output.
    """

    def __init__(self, engine: str, verbose: bool = False) -> None:
        self.argv = shlex.split(engine)
        if not self.argv:
            raise EngineError("no engine command configured")
        self.verbose = verbose

    def _run(self, args: List[str], input_text: Optional[str] = None) -> subprocess.CompletedProcess[str]:
        cmd = [*self.argv, *args]
        if self.verbose:
            cmd.append("-v")
        LOG.debug("Running engine: %s", " ".join(cmd))
        try:
            completed = subprocess.run(
                cmd,
                check=False,
                text=True,
                capture_output=True,
                input=input_text,
            )
        except OSError as exc:  # noqa: BLE001
            raise EngineError(f"failed to execute engine {self.argv[0]}: {exc}") from exc

        if completed.stderr:
            LOG.debug("engine stderr: %s", completed.stderr)
        if completed.returncode != 0:
            detail = completed.stderr.strip()
            message = f"engine exited with status {completed.returncode}"
            if detail:
                message = f"{message}: {detail}"
            raise EngineError(message)
        return completed

    @staticmethod
    def _decode(stdout: str, what: str) -> Any:
        try:
            document = json.loads(stdout)
        except json.JSONDecodeError as exc:
            raise EngineOutputError(f"engine returned malformed {what} JSON: {exc}") from exc
        if not isinstance(document, dict):
            raise EngineOutputError(f"engine {what} output must be a JSON object")
        return document

    def build_tree(self, diff_text: str, scratch: ScratchDir) -> TreePhaseResult:
        """
        Phase 1: send the staged diff, receive the merge tree.
        """

        completed = self._run(["-m"], input_text=diff_text)
        document = self._decode(completed.stdout, "merge tree")
        if "dendrogram" not in document:
            raise EngineOutputError("engine merge tree output has no 'dendrogram' field")
        dendrogram = dendrogram_from_json(document["dendrogram"])

        state_path = scratch.state_path
        state_path.write_text(completed.stdout)
        LOG.info(
            "Engine returned %d leaves and %d merges (max distance %.3f)",
            dendrogram.num_leaves,
            len(dendrogram.merges),
            dendrogram.max_distance,
        )
        return TreePhaseResult(dendrogram=dendrogram, state_path=state_path, stderr=completed.stderr)

    def resolve_plan(self, threshold: float, state_path: Path) -> PlanPhaseResult:
        """
        Phase 2: cut the saved tree at threshold, receive the commit plan.
        """

        completed = self._run(["-t", repr(float(threshold)), str(state_path)])
        document = self._decode(completed.stdout, "commit plan")
        plan = commit_plan_from_json(document, base_dir=str(state_path.parent))
        LOG.info("Engine returned %d commits at threshold %.3f", len(plan.commits), threshold)
        return PlanPhaseResult(plan=plan, stderr=completed.stderr)
