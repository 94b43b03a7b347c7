from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from solders.instruction import AccountMeta, Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from .project_constants import DISCRIMINATOR_LEN, INSTRUCTION_NAMESPACE


class InstructionKind(str, Enum):
    INITIALIZE = "initialize"
    BUY_TICKET = "buy_ticket"
    SELECT_WINNER = "select_winner"


@dataclass(frozen=True)
class RaffleInstruction:
    """
    One call into the raffle program. ``amount`` is only used by BUY_TICKET.

    The crank only sends SELECT_WINNER; the other kinds are kept so the whole
    instruction set of the deployed program is encoded and checked in one place.
    """

    kind: InstructionKind
    amount: Optional[int] = None

    @classmethod
    def initialize(cls) -> "RaffleInstruction":
        return cls(InstructionKind.INITIALIZE)

    @classmethod
    def buy_ticket(cls, amount: int) -> "RaffleInstruction":
        return cls(InstructionKind.BUY_TICKET, amount)

    @classmethod
    def end_round(cls) -> "RaffleInstruction":
        return cls(InstructionKind.SELECT_WINNER)


def discriminator(name: str) -> bytes:
    preimage = f"{INSTRUCTION_NAMESPACE}:{name}".encode("utf-8")
    return hashlib.sha256(preimage).digest()[:DISCRIMINATOR_LEN]


def encode_instruction(ix: RaffleInstruction) -> bytes:
    """
    Instruction data as the program expects it:
    8-byte discriminator followed by the little-endian arguments, if any.
    """
    head = discriminator(ix.kind.value)
    if ix.kind is InstructionKind.BUY_TICKET:
        if ix.amount is None or ix.amount < 0:
            raise ValueError("buy_ticket needs a non-negative amount")
        return head + struct.pack("<Q", ix.amount)
    if ix.amount is not None:
        raise ValueError(f"{ix.kind.value} takes no arguments")
    return head


def build_end_round_instruction(
    program_id: Pubkey, raffle: Pubkey, payer: Pubkey
) -> Instruction:
    accounts = [
        AccountMeta(pubkey=raffle, is_signer=False, is_writable=True),
        AccountMeta(pubkey=payer, is_signer=True, is_writable=False),
    ]
    return Instruction(program_id, encode_instruction(RaffleInstruction.end_round()), accounts)


def build_end_round_transaction(
    program_id: Pubkey, raffle: Pubkey, payer: Pubkey
) -> Transaction:
    """Unsigned; the gateway attaches a blockhash and signs at submit time."""
    ix = build_end_round_instruction(program_id, raffle, payer)
    return Transaction.new_unsigned(Message([ix], payer))
