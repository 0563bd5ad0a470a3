"""Request and response types for the Kora JSON-RPC API."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class KoraMethod(str, Enum):
    """JSON-RPC methods exposed by a Kora server."""

    TRANSFER_TRANSACTION = "transferTransaction"
    SIGN_AND_SEND_TRANSACTION = "signAndSendTransaction"
    SIGN_TRANSACTION = "signTransaction"
    GET_PAYER_SIGNER = "getPayerSigner"
    GET_SUPPORTED_TOKENS = "getSupportedTokens"
    ESTIMATE_TRANSACTION_FEE = "estimateTransactionFee"


@dataclass(frozen=True)
class TransferTransactionRequest:
    """Ask Kora to build a token transfer with itself as fee payer."""

    amount: int  # smallest token units (1_000_000 = 1 USDC)
    token: str  # SPL token mint
    source: str  # sender wallet (base58)
    destination: str  # recipient wallet (base58)

    def to_params(self) -> dict[str, Any]:
        return {
            "amount": self.amount,
            "token": self.token,
            "source": self.source,
            "destination": self.destination,
        }


@dataclass
class TransferTransactionResponse:
    """Partially built transaction; Kora is fee payer, holder must sign."""

    transaction: str
    signer_pubkey: str
    blockhash: str = ""
    message: str = ""
    instructions: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransferTransactionResponse":
        return cls(
            transaction=data["transaction"],
            signer_pubkey=data.get("signer_pubkey", ""),
            blockhash=data.get("blockhash", ""),
            message=data.get("message", ""),
            instructions=data.get("instructions"),
        )


@dataclass
class SignAndSendTransactionResponse:
    signature: str
    signed_transaction: str
    signer_pubkey: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SignAndSendTransactionResponse":
        return cls(
            signature=data["signature"],
            signed_transaction=data.get("signed_transaction", ""),
            signer_pubkey=data.get("signer_pubkey", ""),
        )


@dataclass
class SignTransactionResponse:
    """Fully signed transaction that Kora did not broadcast."""

    signature: str
    signed_transaction: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SignTransactionResponse":
        return cls(
            signature=data.get("signature", ""),
            signed_transaction=data["signed_transaction"],
        )


@dataclass
class GetPayerSignerResponse:
    payer_signer: str
    payment_destination: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GetPayerSignerResponse":
        return cls(
            payer_signer=data["payerSigner"],
            payment_destination=data.get("paymentDestination", ""),
        )


@dataclass
class SupportedToken:
    mint: str
    symbol: str = ""
    decimals: int = 0


@dataclass
class GetSupportedTokensResponse:
    tokens: list[SupportedToken] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GetSupportedTokensResponse":
        tokens = []
        for token in data.get("tokens", []):
            # Some Kora versions return bare mint strings
            if isinstance(token, str):
                tokens.append(SupportedToken(mint=token))
            else:
                tokens.append(
                    SupportedToken(
                        mint=token["mint"],
                        symbol=token.get("symbol", ""),
                        decimals=int(token.get("decimals", 0)),
                    )
                )
        return cls(tokens=tokens)


@dataclass
class EstimateTransactionFeeResponse:
    lamports: int
    token_amount: int
    fee_token: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EstimateTransactionFeeResponse":
        return cls(
            lamports=int(data.get("lamports", 0)),
            token_amount=int(data.get("token_amount", 0)),
            fee_token=data.get("fee_token", ""),
        )
