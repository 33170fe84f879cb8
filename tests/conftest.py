import shlex
import subprocess
import sys
from pathlib import Path

import pytest


FAKE_ENGINE = r'''
"""
Stand-in for the clustering engine used by the tests.

Tree mode treats every file section of the diff as one leaf and chains
the leaves with merges at distances 0.2, 0.6, 1.0, ... Threshold mode
cuts that chain and writes one patch file per leaf.

FAKE_ENGINE_CORRUPT_CLUSTER=<n> makes the patch of cluster n unusable.
FAKE_ENGINE_FAIL=tree|plan makes that mode exit with status 3.
FAKE_ENGINE_SIGNAL=<name> sends that signal to the calling process
during tree mode, then exits as if interrupted.
"""
import json
import os
import signal
import sys
import time


def split_sections(diff):
    sections = []
    for line in diff.splitlines(keepends=True):
        if line.startswith("diff --git "):
            sections.append([line])
        elif sections:
            sections[-1].append(line)
    return ["".join(s) for s in sections]


def label(section):
    return section.split("\n", 1)[0].split()[-1][2:]


def main(argv):
    args = [a for a in argv if a != "-v"]
    if "-v" in argv:
        sys.stderr.write("fake engine: verbose\n")
    if args[0] == "-m":
        signame = os.environ.get("FAKE_ENGINE_SIGNAL")
        if signame:
            os.kill(os.getppid(), getattr(signal, signame))
            time.sleep(0.5)
            sys.stderr.write("interrupted\n")
            return 130
        if os.environ.get("FAKE_ENGINE_FAIL") == "tree":
            sys.stderr.write("boom\n")
            return 3
        sections = split_sections(sys.stdin.read())
        merges = []
        n = len(sections)
        for i in range(1, n):
            left = 0 if i == 1 else n + i - 2
            merges.append({"left": left, "right": i, "distance": round(0.2 + 0.4 * (i - 1), 3)})
        max_distance = merges[-1]["distance"] if merges else 0.0
        json.dump(
            {
                "dendrogram": {
                    "labels": [label(s) for s in sections],
                    "merges": merges,
                    "max_distance": max_distance,
                },
                "chunks": sections,
            },
            sys.stdout,
        )
        return 0

    if args[0] == "-t":
        if os.environ.get("FAKE_ENGINE_FAIL") == "plan":
            return 3
        threshold = float(args[1])
        state_path = args[2]
        with open(state_path) as fh:
            state = json.load(fh)
        sections = state["chunks"]
        merges = state["dendrogram"]["merges"]
        clusters = [[0]] if sections else []
        for i in range(1, len(sections)):
            if merges[i - 1]["distance"] <= threshold:
                clusters[-1].append(i)
            else:
                clusters.append([i])
        corrupt = os.environ.get("FAKE_ENGINE_CORRUPT_CLUSTER")
        base = os.path.dirname(state_path)
        commits = []
        for c, members in enumerate(clusters):
            directory = os.path.join(base, "cluster_%d" % c)
            os.makedirs(directory, exist_ok=True)
            paths = []
            for j, leaf in enumerate(members):
                path = os.path.join(directory, "patch_%d.patch" % j)
                text = sections[leaf]
                if corrupt is not None and int(corrupt) == c:
                    # Turn additions into deletions so the hunk counts no longer match.
                    text = "".join(
                        "-" + line[1:] if line.startswith("+") and not line.startswith("+++") else line
                        for line in text.splitlines(keepends=True)
                    )
                with open(path, "w") as fh:
                    fh.write(text)
                paths.append(os.path.relpath(path, base))
            names = ", ".join(label(sections[m]) for m in members)
            commits.append({"cluster_id": c, "message": "Update " + names, "patch_files": paths})
        json.dump({"commits": commits}, sys.stdout)
        return 0

    sys.stderr.write("usage: engine -m | -t threshold state\n")
    return 2


sys.exit(main(sys.argv[1:]))
'''


def run_git(args, cwd: Path) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        text=True,
        capture_output=True,
        check=True,
    )


@pytest.fixture
def fake_engine(tmp_path) -> str:
    script = tmp_path / "fake_engine.py"
    script.write_text(FAKE_ENGINE)
    return f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"


@pytest.fixture
def git_repo(tmp_path, monkeypatch) -> Path:
    """
    A repository with one commit on branch main, used as the working
    directory for the test.
    """

    repo = tmp_path / "repo"
    repo.mkdir()
    run_git(["init"], cwd=repo)
    run_git(["checkout", "-b", "main"], cwd=repo)
    run_git(["config", "user.name", "semsplit"], cwd=repo)
    run_git(["config", "user.email", "semsplit@example.com"], cwd=repo)
    run_git(["config", "commit.gpgsign", "false"], cwd=repo)

    (repo / "a.py").write_text("def a():\n    return 1\n")
    (repo / "b.py").write_text("def b():\n    return 1\n")
    (repo / "c.py").write_text("def c():\n    return 1\n")
    run_git(["add", "-A"], cwd=repo)
    run_git(["commit", "-m", "base"], cwd=repo)

    monkeypatch.chdir(repo)
    return repo


def stage_three_files(repo: Path) -> None:
    (repo / "a.py").write_text("def a():\n    return 2\n")
    (repo / "b.py").write_text("def b():\n    return 2\n")
    (repo / "new.py").write_text("def new():\n    return 0\n")
    run_git(["add", "a.py", "b.py", "new.py"], cwd=repo)
