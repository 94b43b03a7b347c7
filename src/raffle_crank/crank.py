from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .config import Settings
from .decision import Decision, decide, seconds_left
from .errors import ConfirmationTimeout, CrankError
from .instructions import build_end_round_transaction
from .notify import format_result_message, to_sol
from .project_constants import (
    DEFAULT_CONFIRM_COMMITMENT,
    DEFAULT_CONFIRM_TIMEOUT_S,
    DEFAULT_PENDING_TTL_S,
    DEFAULT_POLL_INTERVAL_S,
)
from .rpc import commitment_reached
from .state import RaffleState, decode_raffle_state

log = logging.getLogger("crank")


class TickOutcome(str, Enum):
    NONE = "none"
    ENDED = "ended"
    ERROR = "error"


class Stage(str, Enum):
    IDLE = "idle"
    CHECKING = "checking"
    DECIDING = "deciding"
    ACTING = "acting"
    CONFIRMING = "confirming"
    REPORTING = "reporting"


@dataclass
class CrankTick:
    timestamp: int
    pre_state: Optional[RaffleState] = None
    post_state: Optional[RaffleState] = None
    outcome: TickOutcome = TickOutcome.NONE
    stage: Stage = Stage.IDLE
    signature: Optional[str] = None
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class PendingSubmission:
    signature: str
    submitted_at: float  # monotonic


class CrankScheduler:
    """
    Runs the read -> decide -> end round -> confirm -> announce cycle once per
    interval. One tick at a time; a failed tick is logged and forgotten, the
    next one starts again from what the ledger says.

    ``gateway`` is an RpcClient (or anything with the same methods) and
    ``notifier`` anything with ``publish(message)``.
    """

    def __init__(
        self,
        gateway,
        notifier,
        program_id: Pubkey,
        raffle_account: Pubkey,
        payer: Keypair,
        interval_s: float = DEFAULT_POLL_INTERVAL_S,
        commitment: str = DEFAULT_CONFIRM_COMMITMENT,
        confirm_timeout_s: float = DEFAULT_CONFIRM_TIMEOUT_S,
        pending_ttl_s: float = DEFAULT_PENDING_TTL_S,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.gateway = gateway
        self.notifier = notifier
        self.program_id = program_id
        self.raffle_account = raffle_account
        self._payer = payer
        self.interval_s = interval_s
        self.commitment = commitment
        self.confirm_timeout_s = confirm_timeout_s
        self.pending_ttl_s = pending_ttl_s
        self._clock = clock
        self._monotonic = monotonic
        self._tick_lock = threading.Lock()
        self.pending: Optional[PendingSubmission] = None

    @classmethod
    def from_settings(cls, settings: Settings, gateway, notifier) -> "CrankScheduler":
        return cls(
            gateway,
            notifier,
            program_id=settings.program_id,
            raffle_account=settings.raffle_account,
            payer=settings.payer,
            interval_s=settings.poll_interval_s,
            commitment=settings.confirm_commitment,
            confirm_timeout_s=settings.confirm_timeout_s,
        )

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------
    def run_forever(self, stop_event: Optional[threading.Event] = None) -> None:
        stop = stop_event or threading.Event()
        log.info(
            "Crank started: raffle %s, program %s, every %.0fs",
            self.raffle_account,
            self.program_id,
            self.interval_s,
        )
        while not stop.is_set():
            started = self._monotonic()
            self.tick()
            elapsed = self._monotonic() - started
            if elapsed >= self.interval_s:
                log.warning(
                    "Tick took %.1fs, longer than the %.0fs interval; starting the next one now",
                    elapsed,
                    self.interval_s,
                )
                continue
            stop.wait(self.interval_s - elapsed)
        log.info("Crank stopped")

    def tick(self) -> CrankTick:
        """Run one full cycle. Never raises; the result says what happened."""
        tick = CrankTick(timestamp=int(self._clock()))
        if not self._tick_lock.acquire(blocking=False):
            log.warning("Previous tick still in progress; skipping this one")
            return tick
        try:
            self._run(tick)
        except CrankError as e:
            self._fail(tick, e)
            log.error(
                "Tick failed while %s (raffle %s, signature %s): %s",
                tick.stage.value,
                self.raffle_account,
                tick.signature or "-",
                e,
            )
        except Exception as e:
            self._fail(tick, e)
            log.exception(
                "Unexpected error while %s (raffle %s)",
                tick.stage.value,
                self.raffle_account,
            )
        finally:
            self._tick_lock.release()
        return tick

    @staticmethod
    def _fail(tick: CrankTick, e: BaseException) -> None:
        tick.error = e
        if tick.outcome is not TickOutcome.ENDED:
            tick.outcome = TickOutcome.ERROR

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    def _run(self, tick: CrankTick) -> None:
        tick.stage = Stage.CHECKING
        tick.pre_state = self.read_state()

        if self.pending is not None and not self._resolve_pending(tick):
            return

        tick.stage = Stage.DECIDING
        decision = decide(tick.pre_state, tick.timestamp)
        if decision is Decision.ACTIVE:
            log.info(
                "Raffle still active (%ds left, %d tickets, jackpot %s SOL)",
                seconds_left(tick.pre_state, tick.timestamp),
                len(tick.pre_state.tickets),
                to_sol(tick.pre_state.jackpot),
            )
            tick.stage = Stage.IDLE
            return

        tick.stage = Stage.ACTING
        log.info("Raffle ended at %d, sending end round transaction", tick.pre_state.end_time)
        tx = build_end_round_transaction(
            self.program_id, self.raffle_account, self._payer.pubkey()
        )
        tick.signature = self.gateway.send_transaction(tx, [self._payer])
        self.pending = PendingSubmission(tick.signature, self._monotonic())
        log.info("Transaction sent: %s", tick.signature)

        tick.stage = Stage.CONFIRMING
        try:
            self.gateway.confirm_transaction(
                tick.signature, self.commitment, self.confirm_timeout_s
            )
        except ConfirmationTimeout:
            # Outcome unknown; the next tick asks the ledger before resending.
            raise
        except CrankError:
            self.pending = None
            raise
        self.pending = None
        log.info("Transaction %s reached %s", tick.signature, self.commitment)

        self._report(tick)

    def _resolve_pending(self, tick: CrankTick) -> bool:
        """
        Settle a submission whose confirmation timed out on an earlier tick.
        Returns True when the tick should carry on to the decision stage.
        """
        pending = self.pending
        tick.signature = pending.signature
        try:
            # The signature may be older than the node's recent status cache.
            status = self.gateway.get_signature_status(
                pending.signature, search_history=True
            )
        except CrankError as e:
            log.warning("Could not check pending transaction %s: %s", pending.signature, e)
            status = None

        if status and status.get("err") is not None:
            log.warning(
                "Pending transaction %s failed on-chain (%s); will resubmit if still due",
                pending.signature,
                status["err"],
            )
            self.pending = None
            tick.signature = None
            return True

        if commitment_reached(status, self.commitment):
            log.info("Pending transaction %s has landed", pending.signature)
            self.pending = None
            self._report(tick)
            return False

        age = self._monotonic() - pending.submitted_at
        if age < self.pending_ttl_s:
            log.info(
                "Transaction %s still unconfirmed after %.0fs; not resubmitting yet",
                pending.signature,
                age,
            )
            tick.stage = Stage.IDLE
            return False

        log.warning(
            "Transaction %s never confirmed within %.0fs; giving up on it",
            pending.signature,
            self.pending_ttl_s,
        )
        self.pending = None
        tick.signature = None
        return True

    def _report(self, tick: CrankTick) -> None:
        tick.stage = Stage.REPORTING
        tick.outcome = TickOutcome.ENDED
        tick.post_state = self.read_state()
        message = format_result_message(tick.post_state)
        self.notifier.publish(message)
        log.info(
            "Announced round result: winner %s, jackpot %s SOL",
            tick.post_state.winner if tick.post_state.has_winner else "none",
            to_sol(tick.post_state.jackpot),
        )
        tick.stage = Stage.IDLE

    def read_state(self) -> RaffleState:
        data = self.gateway.get_account_data(self.raffle_account)
        return decode_raffle_state(data)
