"""
Solana Devnet Integration Test
Exercises balance lookups and the Kora client against live services.
Run with: pytest -m integration
"""
import os

import pytest
from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair

from kora_x402.mechanisms.svm import KeypairSigner, SolanaUsdc
from kora_x402.mechanisms.svm.constants import RPC_URLS, SOLANA_DEVNET
from kora_x402.mechanisms.svm.kora import KoraClient

pytestmark = pytest.mark.integration


class TestSolanaDevnetConnection:
    """Test basic connectivity to Solana devnet"""

    @pytest.mark.asyncio
    async def test_get_latest_blockhash(self):
        """Verify we can get latest blockhash"""
        async with AsyncClient(RPC_URLS[SOLANA_DEVNET]) as client:
            resp = await client.get_latest_blockhash()
            assert resp.value.blockhash is not None

    @pytest.mark.asyncio
    async def test_fresh_wallet_has_zero_usdc(self):
        """A new keypair has no token account, which reads as an ok zero"""
        usdc = SolanaUsdc(KeypairSigner(Keypair()), network=SOLANA_DEVNET)
        try:
            result = await usdc.get_balance_detailed()
        finally:
            await usdc.close()

        assert result.ok is True
        assert result.balance == 0.0


class TestKoraServer:
    """Test a live Kora server (set KORA_RPC_URL)"""

    @pytest.mark.asyncio
    async def test_kora_reports_payer_and_tokens(self):
        """Verify Kora answers getPayerSigner and getSupportedTokens"""
        kora_url = os.getenv("KORA_RPC_URL")
        if not kora_url:
            pytest.skip("KORA_RPC_URL not set")

        async with KoraClient(kora_url) as kora:
            assert await kora.is_available()
            payer = await kora.get_payer_signer()
            tokens = await kora.get_supported_tokens()

        assert payer.payer_signer
        assert tokens.tokens
