"""
Interactive screens for semsplit.

Key input arrives as KeyEvent values on an InputQueue. Whichever
screen currently has focus pulls events from the queue one at a time
and maps each to at most one outcome; there are no global listeners.
Frames are rich renderables printed to a Console.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, List, Optional, Protocol

from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

from .config import Config
from .dendrogram.clusters import count_clusters
from .dendrogram.grid import render_grid
from .dendrogram.ordering import leaf_order
from .domain import DendrogramData
from .phases import CommitView

LOG = logging.getLogger(__name__)

CONFIRM = "confirm"
CANCEL = "cancel"
APPLY = "apply"

THRESHOLD_STEPS = 20
FILE_NAME_WIDTH = 19


@dataclass(frozen=True)
class KeyEvent:
    key: str


class KeySource(Protocol):
    def read(self) -> Optional[KeyEvent]:
        """Block until the operator produces a key; None means end of input."""


class ScriptedKeySource:
    """
    Replays a fixed key sequence, then reports end of input.
    """

    def __init__(self, keys: Iterable[str]) -> None:
        self._keys: Deque[str] = deque(keys)

    def read(self) -> Optional[KeyEvent]:
        if not self._keys:
            return None
        return KeyEvent(self._keys.popleft())


class PromptKeySource:
    """
    Reads one command per line through rich's Prompt.

    An empty line is Enter; longer input is taken as a named key
    (``tab``, ``esc``) or, failing that, its first character.
    """

    NAMED_KEYS = {"enter", "tab", "esc", "escape"}

    def __init__(self, console: Console) -> None:
        self.console = console

    def read(self) -> Optional[KeyEvent]:
        try:
            raw = Prompt.ask("[dim]key[/dim]", console=self.console, default="", show_default=False)
        except EOFError:
            return None
        text = raw.strip()
        if not text:
            return KeyEvent("enter")
        if text.lower() in self.NAMED_KEYS:
            return KeyEvent("esc" if text.lower() == "escape" else text.lower())
        return KeyEvent(text[0])


class InputQueue:
    """
    Queue of pending key events backed by a KeySource.

    Events posted while no screen has focus are dropped by
    discard_pending() before the next screen starts reading.
    """

    def __init__(self, source: KeySource) -> None:
        self.source = source
        self._pending: Deque[KeyEvent] = deque()

    def post(self, event: KeyEvent) -> None:
        self._pending.append(event)

    def discard_pending(self) -> int:
        dropped = len(self._pending)
        if dropped:
            LOG.debug("Ignoring %d key event(s) received outside an interactive phase", dropped)
        self._pending.clear()
        return dropped

    def next_event(self) -> Optional[KeyEvent]:
        if self._pending:
            return self._pending.popleft()
        return self.source.read()


class Screen(Protocol):
    def render(self) -> RenderableType: ...

    def handle(self, event: KeyEvent) -> Optional[str]: ...


def drive(screen: Screen, queue: InputQueue, console: Console) -> str:
    """
    Show screen and feed it events until it produces an outcome.

    End of input counts as cancellation.
    """

    while True:
        if console.is_terminal:
            console.clear()
        console.print(screen.render())
        event = queue.next_event()
        if event is None:
            return CANCEL
        outcome = screen.handle(event)
        if outcome is not None:
            return outcome


def truncate(text: str, width: int, pad: bool = True) -> str:
    if len(text) <= width:
        return text.ljust(width) if pad else text
    return text[: width - 1] + "…"


class DevConfirmScreen:
    def __init__(self, pending_phase: str) -> None:
        self.pending_phase = pending_phase

    def render(self) -> RenderableType:
        return Group(
            Text(f'[DEV] Proceed to "{self.pending_phase}"?', style="yellow"),
            Text("Press y/Enter to continue, n to cancel", style="dim"),
        )

    def handle(self, event: KeyEvent) -> Optional[str]:
        if event.key in ("y", "enter"):
            return CONFIRM
        if event.key == "n":
            return CANCEL
        return None


class DendrogramScreen:
    """
    Threshold tuning over the merge tree.

    h/l move the threshold by a twentieth of the maximum distance,
    Enter confirms it, q or Esc cancels the run.
    """

    def __init__(self, data: DendrogramData, threshold: float, config: Config) -> None:
        self.data = data
        self.config = config
        self.max_distance = data.scale
        self.step = self.max_distance / THRESHOLD_STEPS
        self.threshold = min(max(threshold, 0.0), self.max_distance)
        self.order = leaf_order(data.merges, data.num_leaves)

    @property
    def cluster_count(self) -> int:
        return count_clusters(self.data.merges, self.data.num_leaves, self.threshold)

    def handle(self, event: KeyEvent) -> Optional[str]:
        if event.key in ("h", "left"):
            self.threshold = max(0.0, self.threshold - self.step)
        elif event.key in ("l", "right"):
            self.threshold = min(self.max_distance, self.threshold + self.step)
        elif event.key == "enter":
            return CONFIRM
        elif event.key in ("q", "esc"):
            return CANCEL
        return None

    def render(self) -> RenderableType:
        config = self.config
        grid = render_grid(
            self.order,
            self.data.merges,
            self.max_distance,
            self.threshold,
            config.tree_width,
            min(config.max_rows, self.data.num_leaves),
        )

        lines: List[RenderableType] = [Text("Dendrogram - Adjust Threshold", style="bold"), Text("")]
        for row, leaf in zip(grid.cells, self.order):
            line = Text(truncate(self.data.labels[leaf], config.label_width))
            line.append(" ")
            for cell in row:
                line.append(cell.glyph, style=cell.style)
            lines.append(line)

        if grid.overflow:
            lines.append(Text(f"  ... and {grid.overflow} more chunks", style="dim"))

        scale_label = f"{self.max_distance:.2f}"
        gap = max(1, config.tree_width - 1 - len(scale_label))
        lines.append(Text(""))
        lines.append(Text(" " * (config.label_width + 1) + "0" + " " * gap + scale_label, style="dim"))
        lines.append(Text(""))

        status = Text()
        status.append("Threshold: ", style="bold")
        status.append(f"{self.threshold:.3f}", style="yellow")
        status.append(" │ ")
        status.append("Clusters: ", style="bold")
        status.append(str(self.cluster_count), style="green")
        lines.append(status)

        help_line = Text("h/←: decrease │ l/→: increase │ ", style="dim")
        help_line.append("Enter", style="bold green")
        help_line.append(": confirm │ ", style="dim")
        help_line.append("q", style="bold red")
        help_line.append(": cancel", style="dim")
        lines.append(help_line)
        return Group(*lines)


class VisualizationScreen:
    """
    Two-panel review of the created commits: changed files on the
    left, the selected file's diff on the right.
    """

    def __init__(self, commits: List[CommitView], view_height: int = 20) -> None:
        self.commits = commits
        self.view_height = view_height
        self.selected_commit = 0
        self.selected_file = 0
        self.focus = "tree"
        self.scroll = 0

    @property
    def current(self) -> Optional[CommitView]:
        if not self.commits:
            return None
        return self.commits[self.selected_commit]

    @property
    def files(self) -> List[str]:
        current = self.current
        return list(current.files) if current is not None else []

    @property
    def selected_path(self) -> str:
        files = self.files
        return files[self.selected_file] if files else ""

    def _select_commit(self, index: int) -> None:
        index = max(0, min(len(self.commits) - 1, index))
        if index != self.selected_commit:
            self.selected_commit = index
            self.selected_file = 0
            self.scroll = 0

    def handle(self, event: KeyEvent) -> Optional[str]:
        key = event.key
        if key == "a":
            return APPLY
        if key in ("q", "c", "esc"):
            return CANCEL
        if key == "tab":
            self.focus = "diff" if self.focus == "tree" else "tree"
        elif key == "H":
            self._select_commit(self.selected_commit - 1)
        elif key == "L":
            self._select_commit(self.selected_commit + 1)
        elif key in ("j", "down"):
            if self.focus == "tree":
                self.selected_file = min(max(len(self.files) - 1, 0), self.selected_file + 1)
                self.scroll = 0
            else:
                self.scroll += 1
        elif key in ("k", "up"):
            if self.focus == "tree":
                self.selected_file = max(0, self.selected_file - 1)
                self.scroll = 0
            else:
                self.scroll = max(0, self.scroll - 1)
        return None

    def _file_panel(self) -> Panel:
        body = Text()
        files = self.files
        for index in range(self.view_height):
            if index < len(files):
                name = files[index].rsplit("/", 1)[-1]
                label = truncate(name, FILE_NAME_WIDTH, pad=False)
                if index == self.selected_file:
                    body.append(f"▶ {label}", style="reverse cyan")
                else:
                    body.append(f"  {label}")
            body.append("\n")
        body.append(f"{len(files)} file(s)", style="dim")
        return Panel(
            body,
            title="Changed Files",
            width=FILE_NAME_WIDTH + 6,
            border_style="cyan" if self.focus == "tree" else "grey50",
        )

    def _diff_panel(self) -> Panel:
        current = self.current
        lines = current.files.get(self.selected_path, []) if current is not None else []
        self.scroll = min(self.scroll, max(0, len(lines) - self.view_height))
        body = Text()
        for line in lines[self.scroll : self.scroll + self.view_height]:
            if line.type == "addition":
                body.append(f"+{line.content}\n", style="green")
            elif line.type == "deletion":
                body.append(f"-{line.content}\n", style="red")
            else:
                body.append(f" {line.content}\n")
        return Panel(
            body,
            title=self.selected_path or "no file selected",
            border_style="cyan" if self.focus == "diff" else "grey50",
        )

    def render(self) -> RenderableType:
        current = self.current
        if current is None:
            header = Text("No commits were created", style="bold")
        else:
            header = Text(
                f"Commit {self.selected_commit + 1}/{len(self.commits)}: {current.title}",
                style="bold",
            )

        panels = Table.grid(padding=(0, 1))
        panels.add_row(self._file_panel(), self._diff_panel())

        scroll_help = "j/k: files" if self.focus == "tree" else "j/k: scroll"
        controls = Text(f"TAB: panels · {scroll_help} · H/L: commits · ", style="dim")
        controls.append("a", style="bold green")
        controls.append(": apply · ", style="dim")
        controls.append("q", style="bold red")
        controls.append(": quit", style="dim")
        return Group(Panel(header), panels, controls)
