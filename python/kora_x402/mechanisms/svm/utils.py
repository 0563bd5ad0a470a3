"""Utility functions for Solana x402 mechanisms."""

import math
from decimal import Decimal

from solders.pubkey import Pubkey  # type: ignore
from spl.token.constants import TOKEN_PROGRAM_ID  # type: ignore
from spl.token.instructions import get_associated_token_address  # type: ignore

from .constants import (
    DEFAULT_SAFE_NETWORK,
    NETWORK_ALIASES,
    RPC_URLS,
    SUPPORTED_NETWORKS,
    USDC_DECIMALS,
    USDC_MINTS,
    X402_NETWORKS,
)


def resolve_cluster(cluster: str) -> str:
    """Normalize a cluster designator to one of the supported networks.

    Unrecognized values resolve to devnet, never to mainnet.
    """
    return NETWORK_ALIASES.get(cluster.strip().lower(), DEFAULT_SAFE_NETWORK)


def normalize_network(network: str) -> str:
    """Strictly normalize a configured network name.

    Raises:
        ValueError: If the name is not a known Solana network.
    """
    resolved = NETWORK_ALIASES.get(network.strip().lower())
    if resolved is None:
        raise ValueError(f"Unsupported network: {network}")
    return resolved


def to_x402_network(cluster: str) -> str:
    """Map a cluster designator to its canonical x402 network string."""
    return X402_NETWORKS[resolve_cluster(cluster)]


def get_rpc_url(network: str, custom_url: str | None = None) -> str:
    """Get the RPC URL for a Solana network."""
    if custom_url:
        return custom_url
    return RPC_URLS.get(network, RPC_URLS[DEFAULT_SAFE_NETWORK])


def get_usdc_mint(network: str) -> str:
    """Get the USDC mint address for a Solana network."""
    mint = USDC_MINTS.get(network)
    if not mint:
        raise ValueError(f"Unsupported network: {network}")
    return mint


def is_supported_network(network: str) -> bool:
    return network in SUPPORTED_NETWORKS


def to_atomic_units(amount: float | int | str | Decimal, decimals: int = USDC_DECIMALS) -> int:
    """Convert a human-readable amount to the smallest integer unit.

    Truncates toward negative infinity rather than rounding, so
    ``0.0000019`` USDC becomes ``1``.
    """
    scaled = Decimal(str(amount)) * (Decimal(10) ** decimals)
    return math.floor(scaled)


def derive_ata(owner: str, mint: str, token_program: Pubkey = TOKEN_PROGRAM_ID) -> str:
    """Derive the associated token account address for an owner and mint."""
    ata = get_associated_token_address(
        Pubkey.from_string(owner),
        Pubkey.from_string(mint),
        token_program,
    )
    return str(ata)


def validate_svm_address(address: str) -> bool:
    """Check that a string is a valid base58 Solana public key."""
    if not isinstance(address, str) or not address:
        return False
    try:
        Pubkey.from_string(address)
    except ValueError:
        return False
    return True
