from __future__ import annotations

from typing import Any, Optional


class CrankError(RuntimeError):
    """Base class for every failure a crank tick can hit."""


class ConfigError(CrankError):
    pass


class RpcError(CrankError):
    def __init__(self, method: str, error: Any) -> None:
        self.method = method
        self.code: Optional[int] = None
        self.message = str(error)
        if isinstance(error, dict):
            self.code = error.get("code")
            self.message = str(error.get("message", error))
        super().__init__(f"RPC error from {method}: {self.message}")


class AccountNotFound(CrankError):
    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"Account {address} not found")


class MalformedState(CrankError):
    pass


class SubmissionRejected(CrankError):
    pass


class ConfirmationTimeout(CrankError):
    def __init__(self, signature: str, commitment: str, timeout_s: float) -> None:
        self.signature = signature
        self.commitment = commitment
        super().__init__(
            f"Transaction {signature} not {commitment} after {timeout_s:.0f}s"
        )


class DeliveryFailed(CrankError):
    pass
