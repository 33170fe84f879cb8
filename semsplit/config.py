"""
Configuration model for semsplit.

The CLI constructs a Config instance and passes it down into the
orchestrator so behavior can be adjusted without relying on global
state.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_ENGINE = "git-semsplit-engine"


def default_engine() -> str:
    return os.environ.get("SEMSPLIT_ENGINE") or DEFAULT_ENGINE


@dataclass
class Config:
    """
    Top-level configuration for a semsplit run.

    threshold is only the starting value; the operator tunes it on the
    dendrogram screen before the commit plan is requested.
    """

    threshold: float = 0.5
    verbosity: int = 0
    dev: bool = False
    engine: str = field(default_factory=default_engine)
    scratch_dir: Optional[str] = None

    # Dendrogram screen geometry.
    max_rows: int = 20
    tree_width: int = 40
    label_width: int = 25
