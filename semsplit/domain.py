"""
Core domain models for semsplit.

These dataclasses describe the merge tree returned by the clustering
engine, the commit plan it resolves at a threshold, the per-run
workspace session, and parsed diffs. They avoid any direct git or
terminal dependencies so they can be reused by different parts of the
system.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from typing import Any, List, Literal, Optional

from .errors import EngineOutputError


@dataclass(frozen=True)
class MergeEvent:
    """
    One internal node of the hierarchical clustering.

    left and right are either leaf indices (< number of labels) or the
    id of a cluster formed by an earlier merge, numbered
    ``num_leaves + merge_index``.
    """

    left: int
    right: int
    distance: float


@dataclass(frozen=True)
class DendrogramData:
    labels: List[str]
    merges: List[MergeEvent]
    max_distance: float

    @property
    def num_leaves(self) -> int:
        return len(self.labels)

    @property
    def scale(self) -> float:
        """Distance used for the x-axis; a zero maximum scales as 1.0."""
        return self.max_distance if self.max_distance > 0 else 1.0


@dataclass
class CommitEntry:
    """
    A single commit of the plan: its message and the patch files that
    make it up, applied in list order.
    """

    message: str
    patch_files: List[str]
    cluster_id: Optional[int] = None

    @property
    def title(self) -> str:
        return self.message.split("\n", 1)[0]


@dataclass
class CommitPlan:
    commits: List[CommitEntry] = field(default_factory=list)


@dataclass
class WorkspaceSession:
    """
    Process-instance state owned by the workspace manager.

    staging_branch is set once isolation succeeds and cleared once the
    branch has been merged back or cleaned up.
    """

    original_branch: str
    staging_branch: Optional[str] = None
    staged_diff_text: str = ""
    stash_created: bool = False
    stash_message: Optional[str] = None
    commit_shas: List[str] = field(default_factory=list)


@dataclass
class DiffLine:
    """
    A single display line of a diff.
    """

    type: Literal["addition", "deletion", "context"]
    content: str


@dataclass
class DiffHunk:
    header: str
    lines: List[DiffLine] = field(default_factory=list)


@dataclass
class FileDiff:
    """
    All hunks associated with a single file in a diff.
    """

    path_old: Optional[str]
    path_new: Optional[str]
    change_type: Literal["add", "modify", "delete", "rename"]
    is_binary: bool
    hunks: List[DiffHunk] = field(default_factory=list)

    @property
    def display_path(self) -> str:
        old_path = self.path_old or self.path_new or "unknown"
        new_path = self.path_new or self.path_old or "unknown"
        if old_path == new_path:
            return new_path
        return f"{old_path} -> {new_path}"


@dataclass
class Diff:
    files: List[FileDiff] = field(default_factory=list)


def _require(obj: Any, key: str, kind: type, where: str) -> Any:
    if not isinstance(obj, dict) or key not in obj:
        raise EngineOutputError(f"{where}: missing field '{key}'")
    value = obj[key]
    if kind is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise EngineOutputError(f"{where}: field '{key}' must be a number")
        return float(value)
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise EngineOutputError(f"{where}: field '{key}' must be an integer")
        return value
    if not isinstance(value, kind):
        raise EngineOutputError(f"{where}: field '{key}' must be a {kind.__name__}")
    return value


def dendrogram_from_json(raw: Any) -> DendrogramData:
    """
    Build DendrogramData from the engine's decoded JSON object.

    Merge references are validated against the leaves and the merges
    seen so far; merge order is preserved exactly as received.
    """

    labels = _require(raw, "labels", list, "dendrogram")
    if not all(isinstance(label, str) for label in labels):
        raise EngineOutputError("dendrogram: labels must be strings")

    raw_merges = _require(raw, "merges", list, "dendrogram")
    max_distance = _require(raw, "max_distance", float, "dendrogram")
    if math.isnan(max_distance) or max_distance < 0:
        raise EngineOutputError("dendrogram: max_distance must be a non-negative number")

    num_leaves = len(labels)
    if num_leaves and len(raw_merges) > num_leaves - 1:
        raise EngineOutputError(
            f"dendrogram: {len(raw_merges)} merges for {num_leaves} leaves"
        )

    merges: List[MergeEvent] = []
    for index, item in enumerate(raw_merges):
        where = f"dendrogram merge #{index}"
        left = _require(item, "left", int, where)
        right = _require(item, "right", int, where)
        distance = _require(item, "distance", float, where)
        if math.isnan(distance) or distance < 0:
            raise EngineOutputError(f"{where}: distance must be non-negative")
        limit = num_leaves + index
        for ref in (left, right):
            if ref < 0 or ref >= limit:
                raise EngineOutputError(f"{where}: invalid reference {ref}")
        if left == right:
            raise EngineOutputError(f"{where}: merges {left} with itself")
        merges.append(MergeEvent(left=left, right=right, distance=distance))

    return DendrogramData(labels=list(labels), merges=merges, max_distance=max_distance)


def commit_plan_from_json(raw: Any, base_dir: Optional[str] = None) -> CommitPlan:
    """
    Build a CommitPlan from the engine's decoded JSON object.

    Relative patch paths are resolved against base_dir when given.
    """

    raw_commits = _require(raw, "commits", list, "commit plan")
    commits: List[CommitEntry] = []
    for index, item in enumerate(raw_commits):
        where = f"commit #{index}"
        message = _require(item, "message", str, where)
        patch_files = _require(item, "patch_files", list, where)
        if not all(isinstance(path, str) and path for path in patch_files):
            raise EngineOutputError(f"{where}: patch_files must be non-empty strings")
        if base_dir is not None:
            patch_files = [
                path if os.path.isabs(path) else os.path.join(base_dir, path)
                for path in patch_files
            ]
        cluster_id = item.get("cluster_id")
        if cluster_id is not None and (isinstance(cluster_id, bool) or not isinstance(cluster_id, int)):
            raise EngineOutputError(f"{where}: cluster_id must be an integer")
        commits.append(
            CommitEntry(message=message, patch_files=list(patch_files), cluster_id=cluster_id)
        )
    return CommitPlan(commits=commits)
