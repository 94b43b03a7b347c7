from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

import base58
from dotenv import load_dotenv
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .errors import ConfigError
from .project_constants import (
    COMMITMENT_LEVELS,
    DEFAULT_CONFIRM_COMMITMENT,
    DEFAULT_CONFIRM_TIMEOUT_S,
    DEFAULT_POLL_INTERVAL_S,
    DEFAULT_RPC_TIMEOUT_S,
)


def parse_pubkey(name: str, value: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except ValueError as e:
        raise ConfigError(f"{name} is not a valid public key: {value!r}") from e


def parse_keypair(value: str) -> Keypair:
    """
    Accepts the two common secret key exports:
    a base58 string, or a JSON byte array as written by `solana-keygen`.
    """
    value = value.strip()
    try:
        if value.startswith("["):
            raw = bytes(json.loads(value))
        else:
            raw = base58.b58decode(value)
        return Keypair.from_bytes(raw)
    except (TypeError, ValueError) as e:
        # Never echo the secret itself.
        raise ConfigError(f"PAYER_SECRET_KEY could not be decoded: {type(e).__name__}") from e


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    program_id: Pubkey
    raffle_account: Pubkey
    payer: Keypair = field(repr=False)
    telegram_bot_token: str = field(repr=False)
    telegram_chat_id: str
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S
    confirm_commitment: str = DEFAULT_CONFIRM_COMMITMENT
    confirm_timeout_s: float = DEFAULT_CONFIRM_TIMEOUT_S
    rpc_timeout_s: float = DEFAULT_RPC_TIMEOUT_S

    @staticmethod
    def from_env(
        rpc_url_override: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Settings":
        if environ is None:
            load_dotenv()
            environ = os.environ

        def get(name: str) -> str:
            return environ.get(name, "").strip()

        def require(name: str) -> str:
            v = get(name)
            if not v:
                raise ConfigError(f"Missing {name}. Put it in .env or export it.")
            return v

        def number(name: str, default: float) -> float:
            v = get(name)
            if not v:
                return default
            try:
                n = float(v)
            except ValueError as e:
                raise ConfigError(f"{name} must be a number, got {v!r}") from e
            if n <= 0:
                raise ConfigError(f"{name} must be positive, got {v!r}")
            return n

        # --rpc-url wins, then RPC_URL, then a helius url built from the key.
        rpc_url = rpc_url_override or get("RPC_URL")
        if not rpc_url:
            helius_key = get("HELIUS_API_KEY")
            if not helius_key:
                raise ConfigError(
                    "Missing HELIUS_API_KEY (or RPC_URL). Put it in .env or export it."
                )
            rpc_url = f"https://mainnet.helius-rpc.com/?api-key={helius_key}"

        commitment = get("CONFIRM_COMMITMENT") or DEFAULT_CONFIRM_COMMITMENT
        if commitment not in COMMITMENT_LEVELS:
            raise ConfigError(
                f"CONFIRM_COMMITMENT must be one of {', '.join(COMMITMENT_LEVELS)}"
            )

        return Settings(
            rpc_url=rpc_url,
            program_id=parse_pubkey("RAFFLE_PROGRAM_ID", require("RAFFLE_PROGRAM_ID")),
            raffle_account=parse_pubkey("RAFFLE_ACCOUNT", require("RAFFLE_ACCOUNT")),
            payer=parse_keypair(require("PAYER_SECRET_KEY")),
            telegram_bot_token=require("TELEGRAM_BOT_TOKEN"),
            telegram_chat_id=require("TELEGRAM_CHAT_ID"),
            poll_interval_s=number("POLL_INTERVAL_S", DEFAULT_POLL_INTERVAL_S),
            confirm_commitment=commitment,
            confirm_timeout_s=number("CONFIRM_TIMEOUT_S", DEFAULT_CONFIRM_TIMEOUT_S),
            rpc_timeout_s=number("RPC_TIMEOUT_S", DEFAULT_RPC_TIMEOUT_S),
        )
