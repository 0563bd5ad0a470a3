"""Kora fee-payer service client."""

from kora_x402.mechanisms.svm.kora.client import KoraClient, create_kora_client
from kora_x402.mechanisms.svm.kora.types import (
    EstimateTransactionFeeResponse,
    GetPayerSignerResponse,
    GetSupportedTokensResponse,
    KoraMethod,
    SignAndSendTransactionResponse,
    SignTransactionResponse,
    SupportedToken,
    TransferTransactionRequest,
    TransferTransactionResponse,
)

__all__ = [
    # Client
    "KoraClient",
    "create_kora_client",
    # Types
    "KoraMethod",
    "TransferTransactionRequest",
    "TransferTransactionResponse",
    "SignAndSendTransactionResponse",
    "SignTransactionResponse",
    "GetPayerSignerResponse",
    "GetSupportedTokensResponse",
    "SupportedToken",
    "EstimateTransactionFeeResponse",
]
