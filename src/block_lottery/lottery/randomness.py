"""Seed derivation from block timestamps.

The seed is a linear combination of two block timestamps reduced modulo
10^9. It is NOT a source of secure randomness: anyone who can predict or
influence the timestamps of the current and preceding blocks can predict or
bias the draw. The formula is kept exactly as is so that every draw can be
recomputed from public chain data.
"""

from __future__ import annotations

from typing import Optional

CURRENT_TIME_FACTOR = 113
PREVIOUS_TIME_FACTOR = 151
SEED_MODULUS = 1_000_000_000


def derive_seed(current_time: int, previous_time: int) -> int:
    """Return ``(current_time * 113 + previous_time * 151) mod 10^9``."""
    if current_time < 0 or previous_time < 0:
        raise ValueError("block timestamps must be non-negative")
    return (current_time * CURRENT_TIME_FACTOR + previous_time * PREVIOUS_TIME_FACTOR) % SEED_MODULUS


def seed_for_height(block_source, height: int) -> int:
    """Derive the seed for ``height`` from its own and its parent's timestamp.

    A timestamp the source cannot supply (e.g. the parent of the genesis
    block) counts as 0.
    """
    current_time = _time_or_zero(block_source.time_at(height))
    previous_time = _time_or_zero(block_source.time_at(height - 1)) if height > 0 else 0
    return derive_seed(current_time, previous_time)


def _time_or_zero(value: Optional[int]) -> int:
    return 0 if value is None else int(value)
