"""Environment configuration.

Values come from the process environment, optionally seeded from a
``.env`` file:

    KORA_RPC_URL              Kora server; unset means the direct path
    SOLANA_NETWORK            mainnet-beta | devnet | testnet
    SOLANA_RPC_URL            custom Solana RPC endpoint
    SOLANA_PRIVATE_KEY        base58 keypair of the holder
    KORA_MAX_RETRIES          registration retry budget
    KORA_RETRY_DELAY_SECONDS  base delay between registration retries
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .mechanisms.svm.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY_SECONDS,
    SOLANA_MAINNET,
)
from .mechanisms.svm.kora import KoraClient, create_kora_client
from .mechanisms.svm.registry import RetryPolicy
from .mechanisms.svm.signers import KeypairSigner
from .mechanisms.svm.utils import normalize_network


@dataclass
class KoraX402Config:
    kora_rpc_url: str | None = None
    network: str = SOLANA_MAINNET
    solana_rpc_url: str | None = None
    private_key: str | None = None
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_retries=self.max_retries, base_delay_seconds=self.retry_delay_seconds)

    def create_kora_client(self) -> KoraClient | None:
        return create_kora_client(self.kora_rpc_url)

    def signer(self) -> KeypairSigner:
        if not self.private_key:
            raise ValueError("SOLANA_PRIVATE_KEY is not set")
        return KeypairSigner.from_base58(self.private_key)


def load_config(env_file: str | None = None) -> KoraX402Config:
    """Build the configuration from the environment.

    Raises:
        ValueError: If ``SOLANA_NETWORK`` or a numeric setting is invalid.
    """
    load_dotenv(env_file)

    return KoraX402Config(
        kora_rpc_url=os.getenv("KORA_RPC_URL") or None,
        network=normalize_network(os.getenv("SOLANA_NETWORK", SOLANA_MAINNET)),
        solana_rpc_url=os.getenv("SOLANA_RPC_URL") or None,
        private_key=os.getenv("SOLANA_PRIVATE_KEY") or None,
        max_retries=int(os.getenv("KORA_MAX_RETRIES", DEFAULT_MAX_RETRIES)),
        retry_delay_seconds=float(os.getenv("KORA_RETRY_DELAY_SECONDS", DEFAULT_RETRY_DELAY_SECONDS)),
    )
