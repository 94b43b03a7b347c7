from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

import httpx

from .errors import DeliveryFailed
from .project_constants import LAMPORTS_PER_SOL, NO_WINNER_TEXT, TELEGRAM_API_BASE
from .state import RaffleState

log = logging.getLogger("notify")


def to_sol(lamports: int) -> str:
    """Exact decimal SOL amount without trailing zeros (5, 2.5, 0.000000001)."""
    amount = Decimal(lamports) / Decimal(LAMPORTS_PER_SOL)
    return format(amount.normalize(), "f")


def format_result_message(state: RaffleState) -> str:
    """Announcement for a finished round, built from the post-action state."""
    winner = str(state.winner) if state.has_winner else NO_WINNER_TEXT
    return (
        "🎉 *Raffle Round Ended!*\n\n"
        f"🏆 *Winner:* {winner}\n"
        f"💰 *Jackpot:* {to_sol(state.jackpot)} SOL\n\n"
        "The next round starts now! Get your tickets! 🎟️"
    )


class TelegramNotifier:
    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        timeout_s: float = 10.0,
        client: Optional[httpx.Client] = None,
        api_base: str = TELEGRAM_API_BASE,
    ) -> None:
        self.chat_id = chat_id
        self._url = f"{api_base}/bot{bot_token}/sendMessage"
        self.client = client or httpx.Client(timeout=timeout_s)

    def close(self) -> None:
        self.client.close()

    def publish(self, message: str, parse_mode: Optional[str] = "Markdown") -> None:
        payload = {"chat_id": self.chat_id, "text": message}
        if parse_mode:
            payload["parse_mode"] = parse_mode

        try:
            resp = self.client.post(self._url, json=payload)
            data = resp.json()
        except httpx.HTTPError as e:
            # The token is part of the URL; keep it out of the error text.
            raise DeliveryFailed(f"Telegram request failed: {type(e).__name__}") from e
        except ValueError as e:
            raise DeliveryFailed(
                f"Telegram returned non-JSON response (HTTP {resp.status_code})"
            ) from e

        if not isinstance(data, dict):
            raise DeliveryFailed(
                f"Telegram returned unexpected response (HTTP {resp.status_code})"
            )
        if resp.status_code >= 400 or not data.get("ok"):
            raise DeliveryFailed(
                f"Telegram rejected message (HTTP {resp.status_code}): "
                f"{data.get('description', 'no description')}"
            )
        log.debug("Published message to chat %s", self.chat_id)
