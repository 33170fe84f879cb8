"""
Box-drawing connector composition.

Every glyph of the dendrogram alphabet is described by the set of
stubs (up, down, left, right) it draws. Joining two line segments in
one cell unions their stubs and maps the result back to a glyph, so
composition is symmetric and idempotent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

UP = "up"
DOWN = "down"
LEFT = "left"
RIGHT = "right"

DIRECTIONS = (UP, DOWN, LEFT, RIGHT)

BLANK = " "
THRESHOLD_MARK = "┆"

GLYPH_STUBS = {
    " ": frozenset(),
    "─": frozenset({LEFT, RIGHT}),
    "│": frozenset({UP, DOWN}),
    "┐": frozenset({DOWN, LEFT}),
    "┘": frozenset({UP, LEFT}),
    "┌": frozenset({DOWN, RIGHT}),
    "└": frozenset({UP, RIGHT}),
    "┤": frozenset({UP, DOWN, LEFT}),
    "├": frozenset({UP, DOWN, RIGHT}),
    "┬": frozenset({DOWN, LEFT, RIGHT}),
    "┴": frozenset({UP, LEFT, RIGHT}),
    "┼": frozenset({UP, DOWN, LEFT, RIGHT}),
}

_STUBS_GLYPH = {stubs: glyph for glyph, stubs in GLYPH_STUBS.items()}


def stubs_of(glyph: str) -> FrozenSet[str]:
    """Return the stubs drawn by glyph; unknown glyphs draw nothing."""
    return GLYPH_STUBS.get(glyph, frozenset())


def glyph_for(stubs: Iterable[str]) -> str:
    """
    Map a stub set to its glyph.

    Single stubs have no glyph of their own and degrade to the straight
    line along the same axis.
    """

    stubs = frozenset(stubs)
    unknown = stubs.difference(DIRECTIONS)
    if unknown:
        raise ValueError(f"unknown connector direction(s): {sorted(unknown)}")
    glyph = _STUBS_GLYPH.get(stubs)
    if glyph is not None:
        return glyph
    if stubs & {UP, DOWN}:
        return "│"
    return "─"


def add_connection(existing: str, direction: str) -> str:
    return glyph_for(stubs_of(existing) | {direction})


def remove_connection(existing: str, direction: str) -> str:
    return glyph_for(stubs_of(existing) - {direction})


def compose(a: str, b: str) -> str:
    """Overlay two glyphs in the same cell."""
    return glyph_for(stubs_of(a) | stubs_of(b))


@dataclass
class Cell:
    """
    One grid cell.

    The cell keeps its stub set rather than a glyph so adding and then
    removing the same stub always restores the previous glyph, even for
    degenerate single-stub states.
    """

    stubs: FrozenSet[str] = field(default_factory=frozenset)
    style: Optional[str] = None
    marker: bool = False

    @property
    def glyph(self) -> str:
        if not self.stubs:
            return THRESHOLD_MARK if self.marker else BLANK
        return glyph_for(self.stubs)

    @property
    def is_blank(self) -> bool:
        return not self.stubs

    def add(self, direction: str, style: Optional[str] = None) -> None:
        if direction not in DIRECTIONS:
            raise ValueError(f"unknown connector direction: {direction}")
        self.stubs = self.stubs | {direction}
        if style is not None:
            self.style = style

    def remove(self, direction: str) -> None:
        self.stubs = self.stubs - {direction}
