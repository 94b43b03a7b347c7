import json

import base58
import pytest
from solders.keypair import Keypair

from raffle_crank.config import Settings
from raffle_crank.errors import ConfigError


@pytest.fixture
def env(program_id, raffle_account, payer):
    return {
        "RPC_URL": "https://api.devnet.solana.com",
        "RAFFLE_PROGRAM_ID": str(program_id),
        "RAFFLE_ACCOUNT": str(raffle_account),
        "PAYER_SECRET_KEY": base58.b58encode(bytes(payer)).decode("ascii"),
        "TELEGRAM_BOT_TOKEN": "123:abc",
        "TELEGRAM_CHAT_ID": "-10042",
    }


def test_from_env_defaults(env, program_id, raffle_account, payer):
    s = Settings.from_env(environ=env)
    assert s.rpc_url == "https://api.devnet.solana.com"
    assert s.program_id == program_id
    assert s.raffle_account == raffle_account
    assert s.payer.pubkey() == payer.pubkey()
    assert s.poll_interval_s == 60.0
    assert s.confirm_commitment == "confirmed"


def test_secret_material_not_in_repr(env):
    text = repr(Settings.from_env(environ=env))
    assert env["PAYER_SECRET_KEY"] not in text
    assert "123:abc" not in text


def test_json_array_secret_key(env, payer):
    env["PAYER_SECRET_KEY"] = json.dumps(list(bytes(payer)))
    assert Settings.from_env(environ=env).payer.pubkey() == payer.pubkey()


def test_rpc_url_override_and_helius_fallback(env):
    assert Settings.from_env("http://localhost:8899", environ=env).rpc_url == "http://localhost:8899"
    del env["RPC_URL"]
    env["HELIUS_API_KEY"] = "k"
    assert Settings.from_env(environ=env).rpc_url.endswith("api-key=k")


def test_overrides(env):
    env.update(POLL_INTERVAL_S="15", CONFIRM_COMMITMENT="finalized", CONFIRM_TIMEOUT_S="90")
    s = Settings.from_env(environ=env)
    assert (s.poll_interval_s, s.confirm_commitment, s.confirm_timeout_s) == (15.0, "finalized", 90.0)


@pytest.mark.parametrize(
    "key, value",
    [
        ("RAFFLE_ACCOUNT", ""),
        ("RAFFLE_ACCOUNT", "not-a-key"),
        ("PAYER_SECRET_KEY", "0OIl"),
        ("PAYER_SECRET_KEY", "[1, 2, 3]"),
        ("TELEGRAM_CHAT_ID", ""),
        ("POLL_INTERVAL_S", "soon"),
        ("POLL_INTERVAL_S", "0"),
        ("CONFIRM_COMMITMENT", "max"),
    ],
)
def test_invalid_config(env, key, value):
    env[key] = value
    with pytest.raises(ConfigError):
        Settings.from_env(environ=env)


def test_missing_rpc(env):
    del env["RPC_URL"]
    with pytest.raises(ConfigError, match="HELIUS_API_KEY"):
        Settings.from_env(environ=env)
