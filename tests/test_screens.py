import io

from rich.console import Console

from semsplit.config import Config
from semsplit.domain import DendrogramData, DiffLine, MergeEvent
from semsplit.phases import CommitView
from semsplit.screens import (
    APPLY,
    CANCEL,
    CONFIRM,
    DendrogramScreen,
    DevConfirmScreen,
    InputQueue,
    KeyEvent,
    ScriptedKeySource,
    VisualizationScreen,
    drive,
    truncate,
)


def _console():
    return Console(file=io.StringIO(), record=True, width=120)


def _data():
    return DendrogramData(
        labels=["a.py", "b.py", "new.py"],
        merges=[MergeEvent(0, 1, 0.2), MergeEvent(3, 2, 0.6)],
        max_distance=0.6,
    )


def _commits():
    return [
        CommitView(
            sha="1" * 40,
            message="Update a.py, b.py\n\nBody",
            files={
                "a.py": [DiffLine("context", "def a():"), DiffLine("deletion", "    return 1"), DiffLine("addition", "    return 2")],
                "pkg/b.py": [DiffLine("context", f"line {i}") for i in range(30)],
            },
        ),
        CommitView(sha="2" * 40, message="Update new.py", files={"new.py": [DiffLine("addition", "x")]}),
    ]


def test_truncate():
    assert truncate("abc", 5) == "abc  "
    assert truncate("abc", 5, pad=False) == "abc"
    assert truncate("abcdefgh", 5) == "abcd…"


def test_input_queue_prefers_posted_events_and_discards_stale_ones():
    queue = InputQueue(ScriptedKeySource(["x"]))
    queue.post(KeyEvent("q"))
    assert queue.next_event() == KeyEvent("q")
    queue.post(KeyEvent("l"))
    queue.post(KeyEvent("l"))
    assert queue.discard_pending() == 2
    assert queue.next_event() == KeyEvent("x")
    assert queue.next_event() is None


def test_dev_confirm_screen():
    screen = DevConfirmScreen("processing")
    assert screen.handle(KeyEvent("y")) == CONFIRM
    assert screen.handle(KeyEvent("enter")) == CONFIRM
    assert screen.handle(KeyEvent("n")) == CANCEL
    assert screen.handle(KeyEvent("z")) is None


def test_dendrogram_threshold_steps_and_clamps():
    screen = DendrogramScreen(_data(), 0.5, Config())
    assert screen.cluster_count == 2
    assert screen.step == 0.6 / 20

    for _ in range(30):
        assert screen.handle(KeyEvent("l")) is None
    assert screen.threshold == 0.6
    assert screen.cluster_count == 1

    for _ in range(30):
        screen.handle(KeyEvent("h"))
    assert screen.threshold == 0.0
    assert screen.cluster_count == 3

    assert screen.handle(KeyEvent("enter")) == CONFIRM
    assert screen.handle(KeyEvent("esc")) == CANCEL


def test_dendrogram_initial_threshold_is_clamped():
    assert DendrogramScreen(_data(), 5.0, Config()).threshold == 0.6
    assert DendrogramScreen(_data(), -1.0, Config()).threshold == 0.0


def test_dendrogram_render_shows_labels_and_status():
    console = _console()
    console.print(DendrogramScreen(_data(), 0.5, Config()).render())
    text = console.export_text()
    assert "a.py" in text
    assert "new.py" in text
    assert "Threshold: 0.500" in text
    assert "Clusters: 2" in text
    assert "more chunks" not in text


def test_dendrogram_render_reports_overflow():
    console = _console()
    console.print(DendrogramScreen(_data(), 0.5, Config(max_rows=2)).render())
    assert "... and 1 more chunks" in console.export_text()


def test_visualization_navigation():
    screen = VisualizationScreen(_commits(), view_height=10)
    assert screen.selected_path == "a.py"

    screen.handle(KeyEvent("j"))
    assert screen.selected_path == "pkg/b.py"
    screen.handle(KeyEvent("j"))
    assert screen.selected_file == 1

    screen.handle(KeyEvent("tab"))
    assert screen.focus == "diff"
    for _ in range(50):
        screen.handle(KeyEvent("j"))
    screen.render()
    assert screen.scroll == 20

    screen.handle(KeyEvent("L"))
    assert screen.selected_commit == 1
    assert screen.selected_file == 0
    assert screen.scroll == 0
    screen.handle(KeyEvent("L"))
    assert screen.selected_commit == 1
    screen.handle(KeyEvent("H"))
    assert screen.selected_commit == 0

    assert screen.handle(KeyEvent("a")) == APPLY
    assert screen.handle(KeyEvent("c")) == CANCEL


def test_visualization_render():
    console = _console()
    console.print(VisualizationScreen(_commits()).render())
    text = console.export_text()
    assert "Commit 1/2: Update a.py, b.py" in text
    assert "▶ a.py" in text
    assert "+    return 2" in text
    assert "2 file(s)" in text


def test_visualization_without_commits():
    console = _console()
    console.print(VisualizationScreen([]).render())
    assert "No commits were created" in console.export_text()


def test_drive_returns_first_outcome_and_treats_end_of_input_as_cancel():
    console = _console()
    queue = InputQueue(ScriptedKeySource(["l", "l", "enter"]))
    screen = DendrogramScreen(_data(), 0.0, Config())
    assert drive(screen, queue, console) == CONFIRM
    assert screen.threshold == 2 * (0.6 / 20)

    assert drive(DevConfirmScreen("init"), InputQueue(ScriptedKeySource([])), console) == CANCEL
