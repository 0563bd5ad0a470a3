"""Result types for Solana operations."""

from dataclasses import dataclass
from typing import Any


@dataclass
class TransferResult:
    """Terminal outcome of a transfer, memo or update.

    ``error`` carries the upstream message verbatim behind a prefix naming
    the path that failed ("Kora transfer failed: ...").
    """

    success: bool
    signature: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.signature is not None:
            data["txSignature"] = self.signature
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class UsdcBalanceResult:
    """USDC balance with diagnostics."""

    balance: float
    network: str
    ok: bool
    error: str | None = None
