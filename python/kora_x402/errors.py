"""Error types for kora-x402.

RPC and transport errors surface verbatim to the transfer orchestrator,
which folds them into a ``TransferResult`` / ``X402PaymentResult`` with a
path-identifying prefix. Query helpers (balances, availability) collapse
errors into default values instead of raising.
"""


class KoraX402Error(Exception):
    """Base class for all kora-x402 errors."""


class RpcHttpError(KoraX402Error):
    """The fee-payer service answered with a non-2xx HTTP status."""

    def __init__(self, status: int, reason: str = "", service: str = "Kora"):
        self.status = status
        self.reason = reason
        self.service = service
        detail = f"{status} {reason}".strip()
        super().__init__(f"{service} RPC HTTP error: {detail}")


# Name used by the error taxonomy for HTTP-level failures.
HttpTransportError = RpcHttpError


class RpcProtocolError(KoraX402Error):
    """The fee-payer service returned a JSON-RPC ``error`` object."""

    def __init__(self, code: int, message: str, service: str = "Kora"):
        self.code = code
        self.rpc_message = message
        self.service = service
        super().__init__(f"{service} RPC error [{code}]: {message}")


class SafetyLimitExceeded(KoraX402Error):
    """A transfer asked for more than the allowed share of the balance."""

    def __init__(self, message: str, amount: float, balance: float):
        self.amount = amount
        self.balance = balance
        super().__init__(message)


class UnparseablePaymentChallenge(KoraX402Error):
    """A 402 response body could not be turned into payment requirements."""

    def __init__(self, message: str, status: int = 402):
        self.status = status
        super().__init__(message)


class TransactionBuildFailure(KoraX402Error):
    """A payment or registration transaction could not be built or submitted."""


class IdempotentConflict(KoraX402Error):
    """The target account already exists.

    Raised while creating a deterministic asset; callers treat it as proof
    that an earlier attempt already succeeded.
    """
