"""Constants for Solana (SVM) mechanisms."""

from solders.pubkey import Pubkey  # type: ignore

# Cluster names
SOLANA_MAINNET = "mainnet-beta"
SOLANA_DEVNET = "devnet"
SOLANA_TESTNET = "testnet"

SUPPORTED_NETWORKS = (SOLANA_MAINNET, SOLANA_DEVNET, SOLANA_TESTNET)

# Unknown cluster names resolve here, never to mainnet
DEFAULT_SAFE_NETWORK = SOLANA_DEVNET

RPC_URLS = {
    SOLANA_MAINNET: "https://api.mainnet-beta.solana.com",
    SOLANA_DEVNET: "https://api.devnet.solana.com",
    SOLANA_TESTNET: "https://api.testnet.solana.com",
}

# USDC mint addresses
USDC_MINTS = {
    SOLANA_MAINNET: "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
    SOLANA_DEVNET: "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU",
    SOLANA_TESTNET: "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU",
}

USDC_DECIMALS = 6
LAMPORTS_PER_SOL = 1_000_000_000

# Transfers may not move more than this share of the current balance
SAFETY_LIMIT_RATIO = 0.5

# Registry retries (linear backoff: delay * attempt)
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 2.0

# Domain separation string for deterministic asset keypairs
REGISTRY_SEED_DOMAIN = "automaton-registry-v1"

MPL_CORE_PROGRAM_ID = Pubkey.from_string("CoREENxT6tW1HoK8ypY1SxRMZTcVPm7R94rH4PZNhX7d")
SYSTEM_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")

# x402 protocol
X402_VERSION = 1
SCHEME_EXACT = "exact"
X_PAYMENT_HEADER = "X-Payment"
PAYMENT_REQUIRED_STATUS = 402

# Canonical x402 network strings
X402_NETWORKS = {
    SOLANA_MAINNET: "solana-mainnet",
    SOLANA_DEVNET: "solana-devnet",
    SOLANA_TESTNET: "solana-testnet",
}

# Aliases accepted in payment requirements and configuration
NETWORK_ALIASES = {
    "mainnet": SOLANA_MAINNET,
    "mainnet-beta": SOLANA_MAINNET,
    "solana-mainnet": SOLANA_MAINNET,
    "devnet": SOLANA_DEVNET,
    "solana-devnet": SOLANA_DEVNET,
    "testnet": SOLANA_TESTNET,
    "solana-testnet": SOLANA_TESTNET,
}
