from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import List, Tuple

from solders.pubkey import Pubkey

from .errors import MalformedState
from .project_constants import (
    END_TIME_FMT,
    JACKPOT_FMT,
    PUBKEY_LEN,
    TICKET_COUNT_FMT,
)

NO_WINNER = Pubkey.default()


@dataclass(frozen=True)
class RaffleState:
    jackpot: int  # lamports
    end_time: int  # unix seconds
    winner: Pubkey
    tickets: Tuple[Pubkey, ...] = ()

    @property
    def has_winner(self) -> bool:
        return self.winner != NO_WINNER


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.offset = 0

    def take(self, size: int, field: str) -> bytes:
        end = self.offset + size
        if end > len(self.data):
            raise MalformedState(
                f"{field}: need {size} bytes at offset {self.offset}, "
                f"only {len(self.data) - self.offset} left"
            )
        chunk = self.data[self.offset : end]
        self.offset = end
        return chunk

    def unpack(self, fmt: str, field: str) -> int:
        return struct.unpack(fmt, self.take(struct.calcsize(fmt), field))[0]

    def pubkey(self, field: str) -> Pubkey:
        raw = self.take(PUBKEY_LEN, field)
        try:
            return Pubkey.from_bytes(raw)
        except ValueError as e:
            raise MalformedState(f"{field}: invalid public key: {e}") from e


def decode_raffle_state(data: bytes) -> RaffleState:
    """
    Raffle account layout (little-endian, no padding):
    jackpot u64 | end_time u64 | winner (32) | ticket count u32 | tickets (count x 32)

    Bytes past the last ticket are ignored; the account is allocated larger
    than the state it currently holds.
    """
    r = _Reader(bytes(data))
    jackpot = r.unpack(JACKPOT_FMT, "jackpot")
    end_time = r.unpack(END_TIME_FMT, "end_time")
    winner = r.pubkey("winner")
    count = r.unpack(TICKET_COUNT_FMT, "ticket_count")

    remaining = len(r.data) - r.offset
    if count * PUBKEY_LEN > remaining:
        raise MalformedState(
            f"ticket_count claims {count} tickets but only {remaining} bytes follow"
        )

    tickets: List[Pubkey] = [r.pubkey(f"tickets[{i}]") for i in range(count)]
    return RaffleState(
        jackpot=jackpot,
        end_time=end_time,
        winner=winner,
        tickets=tuple(tickets),
    )


def encode_raffle_state(state: RaffleState) -> bytes:
    parts = [
        struct.pack(JACKPOT_FMT, state.jackpot),
        struct.pack(END_TIME_FMT, state.end_time),
        bytes(state.winner),
        struct.pack(TICKET_COUNT_FMT, len(state.tickets)),
    ]
    parts.extend(bytes(t) for t in state.tickets)
    return b"".join(parts)
