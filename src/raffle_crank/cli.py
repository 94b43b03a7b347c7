from __future__ import annotations

import argparse
import logging
from datetime import datetime, timezone
from typing import Optional

import time

from .config import Settings
from .crank import CrankScheduler, TickOutcome
from .decision import decide, seconds_left
from .errors import ConfigError, CrankError
from .notify import TelegramNotifier, to_sol
from .rpc import RpcClient


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    # httpx logs every request URL at INFO, which includes the bot token.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _load_settings(args: argparse.Namespace) -> Settings:
    try:
        return Settings.from_env(rpc_url_override=args.rpc_url)
    except ConfigError as e:
        raise SystemExit(f"Configuration error: {e}")


def _build_scheduler(settings: Settings, timeout: Optional[float]) -> CrankScheduler:
    rpc = RpcClient(settings.rpc_url, timeout_s=timeout or settings.rpc_timeout_s)
    notifier = TelegramNotifier(settings.telegram_bot_token, settings.telegram_chat_id)
    return CrankScheduler.from_settings(settings, rpc, notifier)


def _close(scheduler: CrankScheduler) -> None:
    scheduler.gateway.close()
    scheduler.notifier.close()


def cmd_run(args: argparse.Namespace) -> int:
    settings = _load_settings(args)
    scheduler = _build_scheduler(settings, args.timeout)
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        logging.getLogger("crank").info("Interrupted, shutting down")
    finally:
        _close(scheduler)
    return 0


def cmd_tick(args: argparse.Namespace) -> int:
    settings = _load_settings(args)
    scheduler = _build_scheduler(settings, args.timeout)
    try:
        tick = scheduler.tick()
    finally:
        _close(scheduler)

    print(f"Outcome       : {tick.outcome.value}")
    print(f"Stopped at    : {tick.stage.value}")
    if tick.signature:
        print(f"Signature     : {tick.signature}")
    if tick.error is not None:
        print(f"Error         : {tick.error}")
    return 1 if tick.outcome is TickOutcome.ERROR else 0


def cmd_show(args: argparse.Namespace) -> int:
    """Print the decoded raffle account and what the crank would do with it."""
    settings = _load_settings(args)
    scheduler = _build_scheduler(settings, args.timeout)
    try:
        state = scheduler.read_state()
    except CrankError as e:
        raise SystemExit(f"Could not read raffle state: {e}")
    finally:
        _close(scheduler)

    now = int(time.time())
    end_dt = datetime.fromtimestamp(state.end_time, tz=timezone.utc)

    print("========================================")
    print("🎟️  RAFFLE STATE")
    print("========================================")
    print(f"Account       : {settings.raffle_account}")
    print(f"Program       : {settings.program_id}")
    print(f"Jackpot       : {to_sol(state.jackpot)} SOL")
    print(f"Ends at (UTC) : {end_dt.strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"Time left     : {seconds_left(state, now)}s")
    print(f"Winner        : {state.winner if state.has_winner else '-'}")
    print(f"Tickets       : {len(state.tickets)}")
    if args.tickets:
        for i, t in enumerate(state.tickets):
            print(f"  {i:>5}  {t}")
    print("----------------------------------------")
    print(f"Decision      : {decide(state, now).value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="raffle-crank",
        description="Ends expired Solana raffle rounds and announces the winner.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="RPC timeout seconds (else RPC_TIMEOUT_S).",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("run", help="Check the raffle every interval until stopped.")
    r.set_defaults(func=cmd_run)

    t = sub.add_parser("tick", help="Run a single check and exit.")
    t.set_defaults(func=cmd_tick)

    s = sub.add_parser("show", help="Print the current raffle state.")
    s.add_argument("--tickets", action="store_true", help="List every ticket holder.")
    s.set_defaults(func=cmd_show)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    raise SystemExit(args.func(args))
