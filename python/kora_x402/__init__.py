"""kora-x402: Solana payments with Kora fee abstraction.

Pay for on-chain actions and x402-gated HTTP resources in USDC without
holding SOL, by letting a Kora server act as fee payer.
"""

from kora_x402.config import KoraX402Config, load_config
from kora_x402.errors import (
    HttpTransportError,
    IdempotentConflict,
    KoraX402Error,
    RpcHttpError,
    RpcProtocolError,
    SafetyLimitExceeded,
    TransactionBuildFailure,
    UnparseablePaymentChallenge,
)
from kora_x402.http import X402Client, X402PaymentResult, check_x402, x402_fetch
from kora_x402.mechanisms.svm import (
    KeypairSigner,
    KoraClient,
    SolanaRegistry,
    SolanaUsdc,
    TransferResult,
    create_kora_client,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Config
    "KoraX402Config",
    "load_config",
    # Errors
    "KoraX402Error",
    "RpcHttpError",
    "HttpTransportError",
    "RpcProtocolError",
    "SafetyLimitExceeded",
    "UnparseablePaymentChallenge",
    "TransactionBuildFailure",
    "IdempotentConflict",
    # Solana
    "KeypairSigner",
    "KoraClient",
    "create_kora_client",
    "SolanaUsdc",
    "SolanaRegistry",
    "TransferResult",
    # x402
    "X402Client",
    "X402PaymentResult",
    "x402_fetch",
    "check_x402",
]
