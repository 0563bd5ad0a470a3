"""Legacy and versioned Solana transaction handling.

Kora may hand back either a legacy transaction or a v0 versioned
transaction. Both are wrapped in a small tagged variant with the same
``partial_sign`` / ``to_base64`` surface so the co-signing code never
branches on the encoding itself.

Decoding policy (fixed, not a guess):
    1. Decode as a versioned transaction first.
    2. Accept it as ``VersionedTx`` only if the message is a v0 message.
    3. Otherwise decode as a legacy transaction (``LegacyTx``).

The versioned decoder also accepts legacy wire bytes (it yields a legacy
message), so step 2 is what keeps the two variants disjoint: exactly one
decoder's result is ever used.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import ClassVar, Sequence

from solders.keypair import Keypair  # type: ignore
from solders.message import MessageV0, to_bytes_versioned  # type: ignore
from solders.transaction import Transaction  # type: ignore
from solders.transaction import VersionedTransaction  # type: ignore

LEGACY = "legacy"
VERSIONED = "versioned"


@dataclass(frozen=True)
class DecodedTx:
    """Base for a decoded transaction. Signing returns a new instance."""

    kind: ClassVar[str]

    def partial_sign(self, signers: Sequence[Keypair]) -> DecodedTx:
        raise NotImplementedError

    def to_bytes(self) -> bytes:
        raise NotImplementedError

    def to_base64(self) -> str:
        return base64.b64encode(self.to_bytes()).decode()


@dataclass(frozen=True)
class LegacyTx(DecodedTx):
    """Legacy transaction."""

    tx: Transaction
    kind: ClassVar[str] = LEGACY

    def partial_sign(self, signers: Sequence[Keypair]) -> LegacyTx:
        # Copy first: solders signs legacy transactions in place
        tx = Transaction.from_bytes(bytes(self.tx))
        tx.partial_sign(list(signers), tx.message.recent_blockhash)
        return LegacyTx(tx)

    def to_bytes(self) -> bytes:
        # Serializing does not require every signature to be present
        return bytes(self.tx)


@dataclass(frozen=True)
class VersionedTx(DecodedTx):
    """v0 versioned transaction."""

    tx: VersionedTransaction
    kind: ClassVar[str] = VERSIONED

    def partial_sign(self, signers: Sequence[Keypair]) -> VersionedTx:
        message = self.tx.message
        required = message.header.num_required_signatures
        signer_keys = list(message.account_keys[:required])
        signatures = list(self.tx.signatures)
        message_bytes = to_bytes_versioned(message)

        for signer in signers:
            pubkey = signer.pubkey()
            if pubkey not in signer_keys:
                raise ValueError(f"{pubkey} is not a required signer of this transaction")
            signatures[signer_keys.index(pubkey)] = signer.sign_message(message_bytes)

        return VersionedTx(VersionedTransaction.populate(message, signatures))

    def to_bytes(self) -> bytes:
        return bytes(self.tx)


def decode_transaction(data: str | bytes) -> DecodedTx:
    """Decode a base64 string (or raw bytes) into a transaction variant.

    Raises:
        ValueError: If the payload is neither a versioned nor a legacy transaction.
    """
    raw = base64.b64decode(data) if isinstance(data, str) else data

    try:
        versioned = VersionedTransaction.from_bytes(raw)
    except Exception:
        versioned = None

    if versioned is not None and isinstance(versioned.message, MessageV0):
        return VersionedTx(versioned)

    try:
        legacy = Transaction.from_bytes(raw)
    except Exception as e:
        raise ValueError(f"Unable to decode transaction: {e}") from e
    return LegacyTx(legacy)


def authorize_transaction(transaction: str, signers: Sequence[Keypair]) -> str:
    """Add the holder's signature to a base64 transaction built by someone else.

    The fee payer's signature slot is left empty for the co-signer.
    """
    decoded = decode_transaction(transaction)
    return decoded.partial_sign(signers).to_base64()
