"""USDC and SOL balances and transfers on Solana.

With a Kora client, USDC transfers go through Kora's fee abstraction:
the holder pays fees in USDC and needs no SOL. Without one, the holder
signs and pays fees directly.

Every transfer first checks that it moves at most half of the current
balance, on both paths.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.pubkey import Pubkey  # type: ignore
from solders.system_program import TransferParams, transfer  # type: ignore
from spl.token.constants import TOKEN_PROGRAM_ID  # type: ignore
from spl.token.instructions import (  # type: ignore
    TransferCheckedParams,
    create_associated_token_account,
    get_associated_token_address,
    transfer_checked,
)

from ...errors import SafetyLimitExceeded
from .constants import LAMPORTS_PER_SOL, SAFETY_LIMIT_RATIO, SOLANA_MAINNET, USDC_DECIMALS
from .kora import KoraClient
from .signers import KeypairSigner
from .submit import DirectSubmission, TransferIntent, cosign_transfer
from .types import TransferResult, UsdcBalanceResult
from .utils import get_rpc_url, get_usdc_mint, normalize_network, to_atomic_units

logger = logging.getLogger(__name__)

SOL_DECIMALS = 9


def is_positive_amount(amount: float) -> bool:
    """True for finite amounts above zero. NaN and infinities are rejected."""
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and value > 0


def check_safety_limit(amount: float, balance: float, unit: str = "USDC") -> None:
    """Refuse transfers above SAFETY_LIMIT_RATIO of the balance.

    Raises:
        SafetyLimitExceeded: If ``amount`` is more than half of ``balance``.
    """
    if amount > balance * SAFETY_LIMIT_RATIO:
        raise SafetyLimitExceeded(
            f"Safety limit: cannot send more than 50% of balance "
            f"({balance:.4f} {unit}) in one transfer",
            amount=amount,
            balance=balance,
        )


async def fetch_usdc_balance(rpc_client: Any, address: str, network: str) -> UsdcBalanceResult:
    """Read the USDC balance of ``address``'s associated token account.

    Never raises: lookup errors come back as ``ok=False`` with a zero balance.
    """
    try:
        mint = get_usdc_mint(network)
    except ValueError as e:
        return UsdcBalanceResult(balance=0.0, network=network, ok=False, error=str(e))

    try:
        ata = get_associated_token_address(Pubkey.from_string(address), Pubkey.from_string(mint))
        resp = await rpc_client.get_token_account_balance(ata)
        balance = float(resp.value.ui_amount or 0)
        return UsdcBalanceResult(balance=balance, network=network, ok=True)
    except Exception as e:
        # No token account yet means a zero balance
        if "could not find account" in str(e).lower():
            return UsdcBalanceResult(balance=0.0, network=network, ok=True)
        logger.warning("USDC balance lookup failed for %s: %s", address, e)
        return UsdcBalanceResult(balance=0.0, network=network, ok=False, error=str(e))


class SolanaUsdc:
    """USDC operations for one holder on one network.

    Args:
        signer: The fund holder.
        network: Cluster name (``mainnet-beta``, ``devnet``, ``testnet``).
        rpc_url: Custom Solana RPC URL. Defaults per network.
        kora_client: When set, transfers use Kora as fee payer.
        rpc_client: Injectable Solana RPC client (an ``AsyncClient`` by default).
    """

    def __init__(
        self,
        signer: KeypairSigner,
        network: str = SOLANA_MAINNET,
        rpc_url: str | None = None,
        kora_client: KoraClient | None = None,
        rpc_client: Any = None,
    ):
        self._signer = signer
        self._network = normalize_network(network)
        self._rpc_url = get_rpc_url(self._network, rpc_url)
        self._kora = kora_client
        self._rpc_client = rpc_client
        self._owns_rpc_client = rpc_client is None

    @property
    def network(self) -> str:
        return self._network

    def _rpc(self) -> Any:
        if self._rpc_client is None:
            self._rpc_client = AsyncClient(self._rpc_url, commitment=Confirmed)
        return self._rpc_client

    async def close(self) -> None:
        if self._rpc_client is not None and self._owns_rpc_client:
            await self._rpc_client.close()
            self._rpc_client = None

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    async def get_balance_detailed(self, address: str | None = None) -> UsdcBalanceResult:
        """Get the USDC balance of ``address`` (default: the holder)."""
        return await fetch_usdc_balance(self._rpc(), address or self._signer.address, self._network)

    async def get_balance(self, address: str | None = None) -> float:
        result = await self.get_balance_detailed(address)
        return result.balance

    async def get_sol_balance(self, address: str | None = None) -> float:
        """Get the native SOL balance. Errors read as zero."""
        address = address or self._signer.address
        try:
            resp = await self._rpc().get_balance(Pubkey.from_string(address))
            return resp.value / LAMPORTS_PER_SOL
        except Exception as e:
            logger.warning("SOL balance lookup failed for %s: %s", address, e)
            return 0.0

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    async def transfer(self, recipient: str, amount_usdc: float) -> TransferResult:
        """Transfer USDC to ``recipient``.

        Uses Kora when a client is configured, the direct path otherwise.
        A Kora failure is final for this call; there is no fallback to
        the direct path.
        """
        if not is_positive_amount(amount_usdc):
            return TransferResult(success=False, error=f"Invalid transfer amount: {amount_usdc}")

        # Safety check before anything touches the network state
        balance = await self.get_balance()
        try:
            check_safety_limit(amount_usdc, balance)
        except SafetyLimitExceeded as e:
            logger.warning("%s", e)
            return TransferResult(success=False, error=str(e))

        try:
            mint = get_usdc_mint(self._network)
        except ValueError as e:
            return TransferResult(success=False, error=str(e))

        amount_raw = to_atomic_units(amount_usdc, USDC_DECIMALS)
        if amount_raw <= 0:
            return TransferResult(success=False, error=f"Invalid transfer amount: {amount_usdc}")

        if self._kora is not None:
            return await self._transfer_via_kora(recipient, mint, amount_raw)
        return await self._transfer_direct(recipient, mint, amount_raw)

    async def _transfer_via_kora(self, recipient: str, mint: str, amount_raw: int) -> TransferResult:
        intent = TransferIntent(
            amount=amount_raw,
            token=mint,
            source=self._signer.address,
            destination=recipient,
        )
        logger.info("Transferring %s USDC units to %s via Kora", amount_raw, recipient)

        try:
            result = await cosign_transfer(self._kora, self._signer, intent, broadcast=True)
        except Exception as e:
            logger.error("Kora transfer failed: %s", e)
            return TransferResult(success=False, error=f"Kora transfer failed: {e}")

        return TransferResult(success=True, signature=result.signature)

    async def _transfer_direct(self, recipient: str, mint: str, amount_raw: int) -> TransferResult:
        logger.info("Transferring %s USDC units to %s directly", amount_raw, recipient)
        rpc = self._rpc()

        try:
            owner = self._signer.pubkey
            mint_pubkey = Pubkey.from_string(mint)
            recipient_pubkey = Pubkey.from_string(recipient)

            source_ata = get_associated_token_address(owner, mint_pubkey)
            dest_ata = get_associated_token_address(recipient_pubkey, mint_pubkey)

            instructions = []

            # Create the recipient's token account if needed (holder pays)
            account = await rpc.get_account_info(dest_ata)
            if account.value is None:
                instructions.append(
                    create_associated_token_account(owner, recipient_pubkey, mint_pubkey)
                )

            instructions.append(
                transfer_checked(
                    TransferCheckedParams(
                        program_id=TOKEN_PROGRAM_ID,
                        source=source_ata,
                        mint=mint_pubkey,
                        dest=dest_ata,
                        owner=owner,
                        amount=amount_raw,
                        decimals=USDC_DECIMALS,
                    )
                )
            )

            signature = await DirectSubmission().submit(instructions, [self._signer.keypair], rpc)
        except Exception as e:
            logger.error("USDC transfer failed: %s", e)
            return TransferResult(success=False, error=f"USDC transfer failed: {e}")

        return TransferResult(success=True, signature=signature)

    async def transfer_sol(self, recipient: str, amount_sol: float) -> TransferResult:
        """Transfer native SOL. Direct path only; same 50% limit."""
        if not is_positive_amount(amount_sol):
            return TransferResult(success=False, error=f"Invalid transfer amount: {amount_sol}")

        rpc = self._rpc()

        try:
            balance_resp = await rpc.get_balance(self._signer.pubkey)
            balance_lamports = balance_resp.value
            lamports = to_atomic_units(amount_sol, SOL_DECIMALS)

            try:
                check_safety_limit(lamports, balance_lamports, unit="lamports")
            except SafetyLimitExceeded as e:
                logger.warning("%s", e)
                return TransferResult(
                    success=False,
                    error="Safety limit: cannot send more than 50% of SOL balance",
                )

            ix = transfer(
                TransferParams(
                    from_pubkey=self._signer.pubkey,
                    to_pubkey=Pubkey.from_string(recipient),
                    lamports=lamports,
                )
            )
            signature = await DirectSubmission().submit([ix], [self._signer.keypair], rpc)
        except Exception as e:
            logger.error("SOL transfer failed: %s", e)
            return TransferResult(success=False, error=f"SOL transfer failed: {e}")

        return TransferResult(success=True, signature=signature)


async def get_usdc_balance(
    address: str,
    network: str = SOLANA_MAINNET,
    rpc_url: str | None = None,
) -> float:
    """Get the USDC balance for any address."""
    network = normalize_network(network)
    client = AsyncClient(get_rpc_url(network, rpc_url), commitment=Confirmed)
    try:
        result = await fetch_usdc_balance(client, address, network)
        return result.balance
    finally:
        await client.close()


async def transfer_usdc(
    signer: KeypairSigner,
    recipient: str,
    amount_usdc: float,
    network: str = SOLANA_MAINNET,
    rpc_url: str | None = None,
    kora_client: KoraClient | None = None,
) -> TransferResult:
    """Transfer USDC, through Kora when ``kora_client`` is given."""
    usdc = SolanaUsdc(signer, network, rpc_url=rpc_url, kora_client=kora_client)
    try:
        return await usdc.transfer(recipient, amount_usdc)
    finally:
        await usdc.close()
