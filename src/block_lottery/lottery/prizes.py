"""Prize split arithmetic."""

from __future__ import annotations

from typing import List


def prize_for_slot(total_pot: int, slot_index: int, total_winners: int) -> int:
    """Return the prize for one slot of an even split of ``total_pot``.

    Every slot gets ``total_pot // total_winners``; slot 0 also takes the
    remainder so the slots always sum to ``total_pot``. Raises
    ``ZeroDivisionError`` when ``total_winners`` is 0.
    """
    if total_winners == 0:
        raise ZeroDivisionError("cannot split a pot between zero winners")
    base = total_pot // total_winners
    if slot_index == 0:
        return base + total_pot % total_winners
    return base


def split_pot(total_pot: int, total_winners: int) -> List[int]:
    return [prize_for_slot(total_pot, slot, total_winners) for slot in range(total_winners)]
