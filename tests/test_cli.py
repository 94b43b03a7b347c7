from types import SimpleNamespace

import pytest

from raffle_crank import cli
from raffle_crank.crank import CrankScheduler

from conftest import FakeLedger, FakeNotifier


class ClosingLedger(FakeLedger):
    def close(self):
        self.closed = True


class ClosingNotifier(FakeNotifier):
    def close(self):
        self.closed = True


@pytest.fixture
def wired(monkeypatch, empty_round, program_id, raffle_account, payer):
    ledger = ClosingLedger(account=empty_round, post_account=empty_round)
    notifier = ClosingNotifier()
    settings = SimpleNamespace(raffle_account=raffle_account, program_id=program_id)
    monkeypatch.setattr(cli, "_load_settings", lambda args: settings)

    def build(settings, timeout):
        return CrankScheduler(
            ledger,
            notifier,
            program_id=program_id,
            raffle_account=raffle_account,
            payer=payer,
            clock=lambda: 999,
        )

    monkeypatch.setattr(cli, "_build_scheduler", build)
    return ledger, notifier


def test_parser_requires_subcommand():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_parser_global_options():
    args = cli.build_parser().parse_args(["--rpc-url", "http://x", "--timeout", "5", "show", "--tickets"])
    assert args.rpc_url == "http://x"
    assert args.timeout == 5.0
    assert args.tickets is True
    assert args.func is cli.cmd_show


def test_tick_command_reports_outcome(wired, capsys):
    ledger, notifier = wired
    args = cli.build_parser().parse_args(["tick"])
    assert args.func(args) == 0
    out = capsys.readouterr().out
    assert "Outcome       : none" in out
    assert ledger.closed and notifier.closed


def test_tick_command_fails_on_error(wired):
    ledger, _ = wired
    ledger.account = None
    args = cli.build_parser().parse_args(["tick"])
    assert args.func(args) == 1


def test_show_command_prints_state(wired, capsys):
    args = cli.build_parser().parse_args(["show"])
    assert args.func(args) == 0
    out = capsys.readouterr().out
    assert "Jackpot       : 5 SOL" in out
    assert "Tickets       : 0" in out
