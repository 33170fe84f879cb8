"""
Command-line interface for semsplit.

This module is responsible for argument parsing, the preconditions
that must hold before anything in the repository is touched, and
delegating to the orchestrator.
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from .config import Config, default_engine
from .errors import GitError, PreconditionError
from .git_adapter import current_branch, is_inside_work_tree, rev_parse, staged_paths
from .logging_utils import configure_logging
from .orchestrator import Orchestrator
from .phases import Failed


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-semsplit",
        description=(
            "Cluster the staged changes by meaning, tune the clustering "
            "threshold on a dendrogram, and commit each cluster separately."
        ),
    )

    parser.add_argument(
        "-d",
        "--threshold",
        type=float,
        default=0.5,
        help="Initial clustering distance threshold (default: 0.5).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity and show the engine's diagnostic output.",
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Step through phases with confirmation prompts.",
    )
    parser.add_argument(
        "--engine",
        default=None,
        help="Command used to run the clustering engine (default: $SEMSPLIT_ENGINE or git-semsplit-engine).",
    )

    return parser


def check_preconditions() -> None:
    """
    Fail before any workspace mutation if the run cannot start.
    """

    if not is_inside_work_tree():
        raise PreconditionError("Not in a git repository")
    try:
        rev_parse("HEAD")
    except GitError as exc:
        raise PreconditionError("The repository has no commits yet") from exc
    try:
        current_branch()
    except GitError as exc:
        raise PreconditionError(str(exc)) from exc
    if not staged_paths():
        raise PreconditionError("No staged changes. Use `git add` to stage files.")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if args.threshold < 0:
        parser.error("--threshold must be non-negative")

    config = Config(
        threshold=args.threshold,
        verbosity=args.verbose,
        dev=args.dev,
        engine=args.engine or default_engine(),
    )

    configure_logging(verbosity=config.verbosity)

    try:
        check_preconditions()
    except PreconditionError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        final = Orchestrator(config).run()
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # noqa: BLE001
        print(f"git-semsplit: error: {exc}", file=sys.stderr)
        return 1

    return 1 if isinstance(final, Failed) else 0


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
