from __future__ import annotations

import base64
import logging
import time
from typing import Any, Callable, Dict, Optional, Sequence

import httpx
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from .errors import (
    AccountNotFound,
    ConfirmationTimeout,
    RpcError,
    SubmissionRejected,
)
from .project_constants import COMMITMENT_LEVELS

log = logging.getLogger("rpc")


def commitment_reached(status: Optional[Dict[str, Any]], commitment: str) -> bool:
    if not status:
        return False
    got = status.get("confirmationStatus")
    if got not in COMMITMENT_LEVELS:
        return False
    return COMMITMENT_LEVELS.index(got) >= COMMITMENT_LEVELS.index(commitment)


class RpcClient:
    """
    Minimal Solana JSON-RPC client for the crank. Never retries: resubmitting
    a transaction blindly risks ending a round twice.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 30.0,
        client: Optional[httpx.Client] = None,
        poll_interval_s: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rpc_url = rpc_url
        self.client = client or httpx.Client(timeout=timeout_s)
        self.poll_interval_s = poll_interval_s
        self._sleep = sleep
        self._monotonic = monotonic
        self._next_id = 0

    def close(self) -> None:
        self.client.close()

    def _post(self, method: str, params: list) -> Dict[str, Any]:
        self._next_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id,
            "method": method,
            "params": params,
        }
        try:
            resp = self.client.post(self.rpc_url, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise RpcError(method, f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise RpcError(method, f"invalid JSON response: {e}") from e
        if "error" in data:
            raise RpcError(method, data["error"])
        return data

    def get_account_data(self, address: Pubkey, commitment: str = "confirmed") -> bytes:
        """Raw account bytes, or AccountNotFound if the ledger has no account there."""
        data = self._post(
            "getAccountInfo",
            [str(address), {"encoding": "base64", "commitment": commitment}],
        )
        value = (data.get("result") or {}).get("value")
        if value is None:
            raise AccountNotFound(str(address))
        # value['data'] is [base64_str, "base64"]
        return base64.b64decode(value["data"][0])

    def get_latest_blockhash(self, commitment: str = "finalized") -> Hash:
        data = self._post("getLatestBlockhash", [{"commitment": commitment}])
        try:
            return Hash.from_string(data["result"]["value"]["blockhash"])
        except (KeyError, TypeError, ValueError) as e:
            raise RpcError("getLatestBlockhash", f"unexpected result: {data}") from e

    def send_transaction(
        self,
        transaction: Transaction,
        signers: Sequence[Keypair],
        preflight_commitment: str = "confirmed",
    ) -> str:
        """Sign with a fresh blockhash and submit. Returns the base58 signature."""
        try:
            blockhash = self.get_latest_blockhash()
        except RpcError as e:
            raise SubmissionRejected(f"could not fetch a blockhash: {e}") from e

        signed = Transaction(list(signers), transaction.message, blockhash)
        encoded = base64.b64encode(bytes(signed)).decode("ascii")
        try:
            data = self._post(
                "sendTransaction",
                [
                    encoded,
                    {
                        "encoding": "base64",
                        "skipPreflight": False,
                        "preflightCommitment": preflight_commitment,
                    },
                ],
            )
        except RpcError as e:
            raise SubmissionRejected(f"transaction rejected: {e.message}") from e

        signature = data.get("result")
        if not isinstance(signature, str):
            raise SubmissionRejected(f"sendTransaction returned no signature: {data}")
        return signature

    def get_signature_status(
        self, signature: str, search_history: bool = False
    ) -> Optional[Dict[str, Any]]:
        """
        Status dict (slot, err, confirmationStatus) or None if the ledger has not seen it.
        Without ``search_history`` only the node's recent status cache (~2 minutes) is searched.
        """
        data = self._post(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": search_history}],
        )
        values = (data.get("result") or {}).get("value") or [None]
        return values[0]

    def confirm_transaction(
        self,
        signature: str,
        commitment: str = "confirmed",
        timeout_s: float = 60.0,
    ) -> Dict[str, Any]:
        """
        Poll until ``signature`` reaches ``commitment``. Raises ConfirmationTimeout
        once the deadline passes and SubmissionRejected if the transaction
        landed but failed.
        """
        if commitment not in COMMITMENT_LEVELS:
            raise ValueError(f"Unknown commitment level: {commitment}")

        deadline = self._monotonic() + timeout_s
        while True:
            try:
                status = self.get_signature_status(signature)
            except RpcError as e:
                log.debug("Status poll for %s failed: %s", signature, e)
                status = None

            if status and status.get("err") is not None:
                raise SubmissionRejected(
                    f"transaction {signature} failed on-chain: {status['err']}"
                )
            if commitment_reached(status, commitment):
                return status

            if self._monotonic() >= deadline:
                raise ConfirmationTimeout(signature, commitment, timeout_s)
            self._sleep(self.poll_interval_s)
