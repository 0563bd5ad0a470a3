"""Transaction co-signing and submission.

Two ways to get a transaction on chain:

- Direct: the holder is fee payer, signs everything, and sends through
  the Solana RPC node.
- Via fee payer: Kora is fee payer. The holder partially signs, and Kora
  adds its signature and either broadcasts (sign-and-send) or hands the
  fully signed bytes back (sign-only) for someone else to broadcast.

The path is an explicit ``SubmissionStrategy`` value chosen by the
caller; nothing is patched at runtime.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.instruction import Instruction  # type: ignore
from solders.keypair import Keypair  # type: ignore
from solders.message import Message  # type: ignore
from solders.pubkey import Pubkey  # type: ignore
from solders.transaction import Transaction  # type: ignore

from ...errors import TransactionBuildFailure
from .kora import KoraClient, TransferTransactionRequest
from .signers import KeypairSigner
from .transactions import LegacyTx, authorize_transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferIntent:
    """A single token transfer. Built per call and never persisted."""

    amount: int  # smallest token units
    token: str  # SPL token mint
    source: str  # holder wallet
    destination: str  # recipient wallet


@dataclass
class CosignResult:
    """Outcome of a Kora co-signed transfer."""

    signature: str
    signed_transaction: str


async def cosign_transfer(
    kora: KoraClient,
    signer: KeypairSigner,
    intent: TransferIntent,
    *,
    broadcast: bool,
) -> CosignResult:
    """Run the three-step Kora co-signing protocol for a transfer.

    1. Kora builds the transfer with itself as fee payer.
    2. The holder decodes it and adds their signature.
    3. Kora adds the fee-payer signature and broadcasts (``broadcast=True``)
       or only returns the fully signed transaction (``broadcast=False``).

    Each step runs once. A failure at any step raises and skips the rest;
    a retry starts again from step 1.

    Args:
        kora: Kora client.
        signer: The fund holder.
        intent: Transfer to perform.
        broadcast: Whether Kora should send the transaction itself.

    Returns:
        CosignResult with the network (or Kora) signature and the fully
        signed base64 transaction.
    """
    # Step 1: Kora builds the transaction (Kora is fee payer)
    built = await kora.transfer_transaction(
        TransferTransactionRequest(
            amount=intent.amount,
            token=intent.token,
            source=intent.source,
            destination=intent.destination,
        )
    )

    # Step 2: holder authorizes the transfer
    partially_signed = authorize_transaction(built.transaction, [signer.keypair])

    # Step 3: Kora finalizes
    if broadcast:
        sent = await kora.sign_and_send_transaction(partially_signed)
        return CosignResult(signature=sent.signature, signed_transaction=sent.signed_transaction)

    signed = await kora.sign_transaction(partially_signed)
    return CosignResult(signature=signed.signature, signed_transaction=signed.signed_transaction)


async def send_and_confirm(rpc_client: Any, tx_bytes: bytes) -> str:
    """Broadcast a fully signed transaction and wait for confirmation."""
    resp = await rpc_client.send_raw_transaction(
        tx_bytes,
        opts=TxOpts(preflight_commitment=Confirmed),
    )
    signature = resp.value

    confirmation = await rpc_client.confirm_transaction(signature, Confirmed)
    statuses = getattr(confirmation, "value", None) or []
    if statuses and statuses[0] is not None and statuses[0].err:
        raise TransactionBuildFailure(f"Transaction {signature} failed: {statuses[0].err}")

    return str(signature)


async def get_latest_blockhash(rpc_client: Any):
    resp = await rpc_client.get_latest_blockhash()
    return resp.value.blockhash


class SubmissionStrategy(Protocol):
    """How a locally built instruction list reaches the chain."""

    label: str

    async def submit(
        self,
        instructions: Sequence[Instruction],
        signers: Sequence[Keypair],
        rpc_client: Any,
    ) -> str:
        """Sign and broadcast; return the transaction signature."""
        ...


class DirectSubmission:
    """Holder pays fees in SOL. The first signer is fee payer."""

    label = "Direct"

    async def submit(
        self,
        instructions: Sequence[Instruction],
        signers: Sequence[Keypair],
        rpc_client: Any,
    ) -> str:
        if not signers:
            raise ValueError("At least one signer is required")

        blockhash = await get_latest_blockhash(rpc_client)
        message = Message.new_with_blockhash(list(instructions), signers[0].pubkey(), blockhash)
        tx = Transaction(list(signers), message, blockhash)

        return await send_and_confirm(rpc_client, bytes(tx))


class FeePayerSubmission:
    """Kora pays fees. Local signers partially sign, Kora signs and sends."""

    label = "Kora"

    def __init__(self, kora: KoraClient):
        self._kora = kora

    @property
    def kora(self) -> KoraClient:
        return self._kora

    async def submit(
        self,
        instructions: Sequence[Instruction],
        signers: Sequence[Keypair],
        rpc_client: Any,
    ) -> str:
        payer = await self._kora.get_payer_signer()
        fee_payer = Pubkey.from_string(payer.payer_signer)

        blockhash = await get_latest_blockhash(rpc_client)
        message = Message.new_with_blockhash(list(instructions), fee_payer, blockhash)
        unsigned = LegacyTx(Transaction.new_unsigned(message))

        partially_signed = unsigned.partial_sign(signers).to_base64()
        result = await self._kora.sign_and_send_transaction(partially_signed)
        return result.signature


def submission_for(kora: KoraClient | None) -> SubmissionStrategy:
    """Pick the fee-payer path when a Kora client is present, else direct.

    A plain presence check: no capability probe and no fallback.
    """
    if kora is not None:
        return FeePayerSubmission(kora)
    return DirectSubmission()
