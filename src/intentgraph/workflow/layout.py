"""Deterministic node placement: the synthesis lane and the repair grid."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class GridLayout:
    row_width: int = 5
    node_width: int = 300
    node_height: int = 200
    origin_x: int = 240
    origin_y: int = 300


@dataclass(frozen=True)
class LaneLayout:
    origin_x: int = 100
    spacing: int = 200
    y: int = 200


def grid_position(index: int, layout: GridLayout) -> list[int]:
    """Grid slot for the node at ``index``; distinct indices never share a slot."""
    row, col = divmod(index, layout.row_width)
    return [
        layout.origin_x + col * layout.node_width,
        layout.origin_y + row * layout.node_height,
    ]


def lane_position(index: int, layout: LaneLayout) -> list[int]:
    """Position along the single horizontal lane used by synthesis."""
    return [layout.origin_x + layout.spacing * index, layout.y]


def is_valid_position(position: Any) -> bool:
    """True for a two-element sequence of real numbers (bools excluded)."""
    if not isinstance(position, (list, tuple)) or len(position) != 2:
        return False
    return all(
        isinstance(coord, (int, float)) and not isinstance(coord, bool)
        for coord in position
    )


def within_canvas(position: list[Any], bound: int) -> bool:
    return all(-bound <= coord <= bound for coord in position)
