"""
Phases of a semsplit run.

Each phase carries exactly the data it needs, so a state such as "on
the dendrogram screen without a dendrogram" cannot be built. The
orchestrator owns the current state; the screens only read it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, FrozenSet, List, Optional, Union

from .domain import CommitPlan, DendrogramData, DiffLine


class Phase(str, Enum):
    INIT = "init"
    DEV_CONFIRM = "dev-confirm"
    PROCESSING = "processing"
    DENDROGRAM = "dendrogram"
    THRESHOLD_PROCESSING = "threshold-processing"
    APPLYING = "applying"
    VISUALIZATION = "visualization"
    MERGING = "merging"
    RESTORING = "restoring"
    DONE = "done"
    CANCELLED = "cancelled"
    ERROR = "error"


TERMINAL_PHASES: FrozenSet[Phase] = frozenset({Phase.DONE, Phase.CANCELLED, Phase.ERROR})

# Automatic successors along the happy path.
TRANSITIONS: Dict[Phase, FrozenSet[Phase]] = {
    Phase.INIT: frozenset({Phase.PROCESSING}),
    Phase.PROCESSING: frozenset({Phase.DENDROGRAM}),
    Phase.DENDROGRAM: frozenset({Phase.THRESHOLD_PROCESSING}),
    Phase.THRESHOLD_PROCESSING: frozenset({Phase.APPLYING}),
    Phase.APPLYING: frozenset({Phase.VISUALIZATION}),
    Phase.VISUALIZATION: frozenset({Phase.MERGING}),
    Phase.MERGING: frozenset({Phase.RESTORING}),
    Phase.RESTORING: frozenset({Phase.DONE}),
}

INTERACTIVE_PHASES: FrozenSet[Phase] = frozenset(
    {Phase.DEV_CONFIRM, Phase.DENDROGRAM, Phase.VISUALIZATION}
)


@dataclass
class CommitView:
    """
    A created commit as shown on the visualization screen: its message
    and, per changed file, the full-context diff lines.
    """

    sha: str
    message: str
    files: Dict[str, List[DiffLine]] = field(default_factory=dict)

    @property
    def title(self) -> str:
        return self.message.split("\n", 1)[0]


@dataclass(frozen=True)
class Init:
    phase: ClassVar[Phase] = Phase.INIT


@dataclass(frozen=True)
class Processing:
    phase: ClassVar[Phase] = Phase.PROCESSING


@dataclass(frozen=True)
class Dendrogram:
    data: DendrogramData
    threshold: float
    phase: ClassVar[Phase] = Phase.DENDROGRAM


@dataclass(frozen=True)
class ThresholdProcessing:
    data: DendrogramData
    threshold: float
    phase: ClassVar[Phase] = Phase.THRESHOLD_PROCESSING


@dataclass(frozen=True)
class Applying:
    plan: CommitPlan
    phase: ClassVar[Phase] = Phase.APPLYING


@dataclass(frozen=True)
class Visualization:
    plan: CommitPlan
    commits: List[CommitView]
    phase: ClassVar[Phase] = Phase.VISUALIZATION


@dataclass(frozen=True)
class Merging:
    plan: CommitPlan
    phase: ClassVar[Phase] = Phase.MERGING


@dataclass(frozen=True)
class Restoring:
    plan: CommitPlan
    phase: ClassVar[Phase] = Phase.RESTORING


@dataclass(frozen=True)
class Done:
    messages: List[str]
    branch: str
    phase: ClassVar[Phase] = Phase.DONE


@dataclass(frozen=True)
class Cancelled:
    phase: ClassVar[Phase] = Phase.CANCELLED


@dataclass(frozen=True)
class Failed:
    message: str
    failed_phase: Phase
    phase: ClassVar[Phase] = Phase.ERROR


@dataclass(frozen=True)
class DevConfirm:
    pending: "State"
    phase: ClassVar[Phase] = Phase.DEV_CONFIRM


State = Union[
    Init,
    Processing,
    Dendrogram,
    ThresholdProcessing,
    Applying,
    Visualization,
    Merging,
    Restoring,
    Done,
    Cancelled,
    Failed,
    DevConfirm,
]


def is_terminal(state: State) -> bool:
    return state.phase in TERMINAL_PHASES


def is_allowed(current: State, nxt: State) -> bool:
    """
    Whether the machine may move from current to nxt.

    Cancellation and errors are reachable from every non-terminal phase;
    cancellation is only ever taken between phases.
    """

    if is_terminal(current):
        return False
    if isinstance(nxt, (Cancelled, Failed)):
        return True
    if isinstance(current, DevConfirm):
        return nxt == current.pending
    if isinstance(nxt, DevConfirm):
        return nxt.pending.phase in TRANSITIONS.get(current.phase, frozenset())
    return nxt.phase in TRANSITIONS.get(current.phase, frozenset())


def describe(state: Optional[State]) -> str:
    return state.phase.value if state is not None else "none"
