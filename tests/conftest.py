from __future__ import annotations

from typing import List, Optional

import pytest
from solders.keypair import Keypair

from raffle_crank.errors import AccountNotFound
from raffle_crank.state import NO_WINNER, RaffleState, encode_raffle_state


class FakeLedger:
    """In-memory stand-in for RpcClient."""

    def __init__(self, account: Optional[bytes] = None, post_account: Optional[bytes] = None):
        self.account = account
        self.post_account = post_account
        self.reads = 0
        self.sent: List[tuple] = []
        self.confirmed: List[str] = []
        self.status_checks: List[str] = []
        self.searched_history: List[bool] = []
        self.send_error: Optional[Exception] = None
        self.confirm_error: Optional[Exception] = None
        self.read_error: Optional[Exception] = None
        self.status: Optional[dict] = None
        # Found only when transaction history is searched (aged out of the status cache).
        self.history_status: Optional[dict] = None

    def get_account_data(self, address):
        self.reads += 1
        if self.read_error is not None:
            raise self.read_error
        if self.account is None:
            raise AccountNotFound(str(address))
        return self.account

    def send_transaction(self, transaction, signers):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((transaction, list(signers)))
        return f"sig{len(self.sent)}"

    def confirm_transaction(self, signature, commitment="confirmed", timeout_s=60.0):
        self.confirmed.append(signature)
        if self.confirm_error is not None:
            raise self.confirm_error
        if self.post_account is not None:
            self.account = self.post_account
        return {"confirmationStatus": commitment, "err": None}

    def get_signature_status(self, signature, search_history=False):
        self.status_checks.append(signature)
        self.searched_history.append(search_history)
        if self.status is None and search_history:
            return self.history_status
        return self.status


class FakeNotifier:
    def __init__(self) -> None:
        self.messages: List[str] = []
        self.error: Optional[Exception] = None

    def publish(self, message, parse_mode="Markdown"):
        if self.error is not None:
            raise self.error
        self.messages.append(message)


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def payer() -> Keypair:
    return Keypair()


@pytest.fixture
def program_id():
    return Keypair().pubkey()


@pytest.fixture
def raffle_account():
    return Keypair().pubkey()


@pytest.fixture
def empty_round() -> bytes:
    return encode_raffle_state(
        RaffleState(jackpot=5_000_000_000, end_time=1000, winner=NO_WINNER)
    )
