# Area: Engine
"""
volley_live._engine.rotation — Rotation arithmetic
==================================================

Pure helpers over a list of LineupSlot. Position labels move, players
stay attached to their slot.
"""

from __future__ import annotations
from typing import Iterable, List, Set

from .enums import RotationDirection
from .state import FRONT_ROW, LineupSlot

_FORWARD = {1: 6, 6: 5, 5: 4, 4: 3, 3: 2, 2: 1}
_BACKWARD = {new: old for old, new in _FORWARD.items()}


def next_position(position: int, direction: RotationDirection) -> int:
    table = _FORWARD if direction is RotationDirection.FORWARD else _BACKWARD
    return table.get(position, position)


def rotate_slots(
    rotation: Iterable[LineupSlot], direction: RotationDirection
) -> List[LineupSlot]:
    """Return a new rotation with every slot relabelled one step."""
    rotated = [
        LineupSlot(next_position(slot.position, direction), slot.player_id, slot.is_libero)
        for slot in rotation
    ]
    return sorted(rotated, key=lambda slot: slot.position)


def front_row_liberos(
    rotation: Iterable[LineupSlot], libero_ids: Set[str]
) -> List[LineupSlot]:
    """Slots in positions 2-4 occupied by a libero (an illegal rotation)."""
    return [
        slot for slot in rotation
        if slot.position in FRONT_ROW and slot.player_id
        and (slot.is_libero or slot.player_id in libero_ids)
    ]


def replace_slot(
    rotation: Iterable[LineupSlot], replacement: LineupSlot
) -> List[LineupSlot]:
    return [
        replacement if slot.position == replacement.position else slot
        for slot in rotation
    ]
