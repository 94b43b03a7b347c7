from __future__ import annotations

from enum import Enum

from .state import RaffleState


class Decision(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"


def decide(state: RaffleState, now: int) -> Decision:
    """Round is over once ``now`` reaches ``end_time``. Pure, no I/O."""
    if now >= state.end_time:
        return Decision.EXPIRED
    return Decision.ACTIVE


def seconds_left(state: RaffleState, now: int) -> int:
    return max(0, state.end_time - now)
