"""
Unified diff parsing for semsplit.

Two consumers need diffs in structured form: the processing phase
summarizes the staged diff before handing it to the engine, and the
visualization screen shows one file of a created commit at a time as
full-context display lines.

The parser focuses on the unified diff format produced by git and
ignores metadata that is not needed here (modes, index lines).
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .domain import Diff, DiffHunk, DiffLine, FileDiff

_LINE_TYPES = {"+": "addition", "-": "deletion", " ": "context"}


def parse_unified_diff(raw_diff: str) -> Diff:
    """
    Parse a unified diff into a Diff object.
    """

    lines = raw_diff.splitlines()
    files: List[FileDiff] = []

    i = 0
    while i < len(lines):
        if not lines[i].startswith("diff --git "):
            i += 1
            continue

        file_diff, i = _parse_single_file_diff(lines, i)
        if file_diff is not None:
            files.append(file_diff)

    return Diff(files=files)


def _parse_single_file_diff(
    lines: Sequence[str],
    start_index: int,
) -> Tuple[Optional[FileDiff], int]:
    """
    Parse a single `diff --git` section starting at start_index.

    Returns a tuple of (FileDiff | None, next_index).
    """

    i = start_index
    parts = lines[i].split()
    i += 1

    if len(parts) < 4:
        while i < len(lines) and not lines[i].startswith("diff --git "):
            i += 1
        return None, i

    path_old: Optional[str] = parts[-2][2:] if parts[-2].startswith("a/") else parts[-2]
    path_new: Optional[str] = parts[-1][2:] if parts[-1].startswith("b/") else parts[-1]
    change_type = "modify"
    is_binary = False

    while i < len(lines) and not lines[i].startswith("diff --git "):
        line = lines[i]
        if line.startswith("new file mode "):
            change_type = "add"
        elif line.startswith("deleted file mode "):
            change_type = "delete"
        elif line.startswith("rename from "):
            path_old = line[len("rename from ") :].strip()
            change_type = "rename"
        elif line.startswith("rename to "):
            path_new = line[len("rename to ") :].strip()
            change_type = "rename"
        elif line.startswith("Binary files ") or line.startswith("GIT binary patch"):
            is_binary = True
        elif line.startswith("--- ") or line.startswith("@@"):
            break
        i += 1

    if i < len(lines) and lines[i].startswith("--- "):
        if lines[i][4:].strip() == "/dev/null":
            change_type = "add"
            path_old = None
        i += 1
    if i < len(lines) and lines[i].startswith("+++ "):
        if lines[i][4:].strip() == "/dev/null":
            change_type = "delete"
            path_new = None
        i += 1

    hunks: List[DiffHunk] = []
    while i < len(lines) and not lines[i].startswith("diff --git "):
        if lines[i].startswith("@@"):
            hunk, i = _parse_hunk(lines, i)
            hunks.append(hunk)
        else:
            i += 1

    return (
        FileDiff(
            path_old=path_old,
            path_new=path_new,
            change_type=change_type,  # type: ignore[arg-type]
            is_binary=is_binary,
            hunks=hunks,
        ),
        i,
    )


def _parse_hunk(lines: Sequence[str], start_index: int) -> Tuple[DiffHunk, int]:
    header = lines[start_index]
    i = start_index + 1
    hunk_lines: List[DiffLine] = []

    while i < len(lines):
        line = lines[i]
        if line.startswith("diff --git ") or line.startswith("@@"):
            break
        if line.startswith("\\"):
            # "\ No newline at end of file"
            i += 1
            continue
        hunk_lines.append(_display_line(line))
        i += 1

    return DiffHunk(header=header, lines=hunk_lines), i


def _display_line(line: str) -> DiffLine:
    if not line:
        return DiffLine(type="context", content="")
    line_type = _LINE_TYPES.get(line[0])
    if line_type is None:
        # Unexpected leading character; keep the text as context.
        return DiffLine(type="context", content=line)
    return DiffLine(type=line_type, content=line[1:])  # type: ignore[arg-type]


def parse_full_context_diff(raw_diff: str) -> List[DiffLine]:
    """
    Flatten a single-file diff (typically produced with -U999999) into
    display lines, dropping headers and hunk markers.
    """

    result: List[DiffLine] = []
    for file_diff in parse_unified_diff(raw_diff).files:
        for hunk in file_diff.hunks:
            result.extend(hunk.lines)
    return result


def summarize(diff: Diff) -> str:
    """One-line description used in status messages and logs."""
    hunk_count = sum(len(f.hunks) for f in diff.files)
    return f"{len(diff.files)} file(s), {hunk_count} hunk(s)"
