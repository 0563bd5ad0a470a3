"""Solana (SVM) mechanisms: Kora co-signing, USDC transfers, agent registry."""

from kora_x402.mechanisms.svm.constants import (
    SOLANA_DEVNET,
    SOLANA_MAINNET,
    SOLANA_TESTNET,
    USDC_DECIMALS,
)
from kora_x402.mechanisms.svm.kora import KoraClient, create_kora_client
from kora_x402.mechanisms.svm.registry import (
    JsonFileRegistryStore,
    RegistryEntry,
    RegistryStore,
    RetryPolicy,
    SolanaRegistry,
)
from kora_x402.mechanisms.svm.signers import KeypairSigner
from kora_x402.mechanisms.svm.submit import (
    CosignResult,
    DirectSubmission,
    FeePayerSubmission,
    SubmissionStrategy,
    TransferIntent,
    cosign_transfer,
    submission_for,
)
from kora_x402.mechanisms.svm.types import TransferResult, UsdcBalanceResult
from kora_x402.mechanisms.svm.usdc import SolanaUsdc, get_usdc_balance, transfer_usdc

__all__ = [
    # Networks
    "SOLANA_MAINNET",
    "SOLANA_DEVNET",
    "SOLANA_TESTNET",
    "USDC_DECIMALS",
    # Signer
    "KeypairSigner",
    # Kora
    "KoraClient",
    "create_kora_client",
    # Co-signing
    "TransferIntent",
    "CosignResult",
    "cosign_transfer",
    "SubmissionStrategy",
    "DirectSubmission",
    "FeePayerSubmission",
    "submission_for",
    # Transfers
    "TransferResult",
    "UsdcBalanceResult",
    "SolanaUsdc",
    "get_usdc_balance",
    "transfer_usdc",
    # Registry
    "RegistryEntry",
    "RegistryStore",
    "JsonFileRegistryStore",
    "RetryPolicy",
    "SolanaRegistry",
]
