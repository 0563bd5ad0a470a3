"""Client-side Solana signer."""

from solders.keypair import Keypair  # type: ignore
from solders.pubkey import Pubkey  # type: ignore


class KeypairSigner:
    """Holds the fund holder's keypair.

    The holder authorizes transfers, memos and registrations. It is the
    fee payer only on the direct path.
    """

    def __init__(self, keypair: Keypair):
        self._keypair = keypair

    @property
    def keypair(self) -> Keypair:
        return self._keypair

    @property
    def pubkey(self) -> Pubkey:
        return self._keypair.pubkey()

    @property
    def address(self) -> str:
        """Base58 public key of the holder."""
        return str(self._keypair.pubkey())

    @classmethod
    def from_base58(cls, key: str) -> "KeypairSigner":
        return cls(Keypair.from_base58_string(key))

    @classmethod
    def from_bytes(cls, key: bytes) -> "KeypairSigner":
        return cls(Keypair.from_bytes(key))
