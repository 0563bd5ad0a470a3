"""Unit tests for USDC/SOL balances and the dual-path transfer."""

import pytest
from solders.transaction import Transaction
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID

from kora_x402.errors import RpcProtocolError, SafetyLimitExceeded
from kora_x402.mechanisms.svm.constants import SOLANA_DEVNET, SOLANA_MAINNET
from kora_x402.mechanisms.svm.usdc import SolanaUsdc, check_safety_limit, fetch_usdc_balance

USDC_MAINNET = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


class TestCheckSafetyLimit:
    """Test the 50% rule."""

    def test_half_is_allowed(self):
        """Exactly half of the balance passes."""
        check_safety_limit(5.0, 10.0)

    def test_more_than_half_is_refused(self):
        """Anything above half raises with both figures."""
        with pytest.raises(SafetyLimitExceeded) as exc_info:
            check_safety_limit(6.0, 10.0)

        assert "50%" in str(exc_info.value)
        assert "10.0000 USDC" in str(exc_info.value)
        assert exc_info.value.amount == 6.0
        assert exc_info.value.balance == 10.0

    def test_zero_balance_refuses_any_amount(self):
        """An empty wallet cannot send anything."""
        with pytest.raises(SafetyLimitExceeded):
            check_safety_limit(0.000001, 0.0)


class TestBalances:
    """Test balance lookups."""

    @pytest.mark.asyncio
    async def test_balance_from_token_account(self, fake_rpc, holder):
        """ui_amount of the holder's token account is the balance."""
        fake_rpc.token_balance = 12.5

        result = await fetch_usdc_balance(fake_rpc, holder.address, SOLANA_MAINNET)

        assert result.balance == 12.5
        assert result.ok is True

    @pytest.mark.asyncio
    async def test_missing_token_account_is_zero(self, fake_rpc, holder):
        """No token account yet reads as an ok zero balance."""
        fake_rpc.token_balance = Exception("Invalid param: could not find account")

        result = await fetch_usdc_balance(fake_rpc, holder.address, SOLANA_MAINNET)

        assert result.balance == 0.0
        assert result.ok is True

    @pytest.mark.asyncio
    async def test_other_errors_are_reported(self, fake_rpc, holder):
        """Other lookup errors read as zero but are flagged."""
        fake_rpc.token_balance = Exception("rate limited")

        result = await fetch_usdc_balance(fake_rpc, holder.address, SOLANA_MAINNET)

        assert result.balance == 0.0
        assert result.ok is False
        assert result.error == "rate limited"

    @pytest.mark.asyncio
    async def test_lookup_failure_logs_lazily(self, fake_rpc, holder, caplog):
        """The warning carries its arguments instead of a preformatted string."""
        fake_rpc.token_balance = Exception("rate limited")

        with caplog.at_level("WARNING", logger="kora_x402.mechanisms.svm.usdc"):
            await fetch_usdc_balance(fake_rpc, holder.address, SOLANA_MAINNET)

        record = caplog.records[0]
        assert record.msg == "USDC balance lookup failed for %s: %s"
        assert record.args[0] == holder.address
        assert record.getMessage() == f"USDC balance lookup failed for {holder.address}: rate limited"

    @pytest.mark.asyncio
    async def test_sol_balance_in_sol(self, fake_rpc, holder):
        """Lamports are converted to SOL."""
        fake_rpc.lamports = 2_500_000_000
        usdc = SolanaUsdc(holder, rpc_client=fake_rpc)

        assert await usdc.get_sol_balance() == 2.5


class TestSafetyLimitBeforeMutation:
    """The safety limit holds on both paths with zero mutating calls."""

    @pytest.mark.asyncio
    async def test_kora_path_refuses_without_calling_kora(self, fake_rpc, fake_kora, holder, recipient):
        """Over the limit, Kora is never contacted."""
        fake_rpc.token_balance = 10.0
        usdc = SolanaUsdc(holder, kora_client=fake_kora, rpc_client=fake_rpc)

        result = await usdc.transfer(recipient, 6.0)

        assert result.success is False
        assert "Safety limit" in result.error
        assert fake_kora.calls == []
        assert fake_rpc.sent == []

    @pytest.mark.asyncio
    async def test_direct_path_refuses_without_sending(self, fake_rpc, holder, recipient):
        """Over the limit, nothing is built or sent."""
        fake_rpc.token_balance = 10.0
        usdc = SolanaUsdc(holder, rpc_client=fake_rpc)

        result = await usdc.transfer(recipient, 6.0)

        assert result.success is False
        assert "Safety limit" in result.error
        assert fake_rpc.calls == ["get_token_account_balance"]
        assert fake_rpc.sent == []


class TestInvalidAmounts:
    """Amounts that are not finite and positive never reach the network."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [float("nan"), float("inf"), -1.0, 0.0])
    async def test_kora_path_rejects(self, fake_rpc, fake_kora, holder, recipient, amount):
        """Kora is never asked to build the transfer."""
        usdc = SolanaUsdc(holder, kora_client=fake_kora, rpc_client=fake_rpc)

        result = await usdc.transfer(recipient, amount)

        assert result.success is False
        assert result.error.startswith("Invalid transfer amount")
        assert fake_kora.calls == []
        assert fake_rpc.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [float("nan"), -1.0])
    async def test_direct_path_rejects(self, fake_rpc, holder, recipient, amount):
        """No RPC call is made for the direct path either."""
        usdc = SolanaUsdc(holder, rpc_client=fake_rpc)

        result = await usdc.transfer(recipient, amount)

        assert result.success is False
        assert result.error.startswith("Invalid transfer amount")
        assert fake_rpc.calls == []

    @pytest.mark.asyncio
    async def test_amount_below_one_unit_rejected(self, fake_rpc, fake_kora, holder, recipient):
        """An amount that floors to zero units is not sent."""
        usdc = SolanaUsdc(holder, kora_client=fake_kora, rpc_client=fake_rpc)

        result = await usdc.transfer(recipient, 0.0000001)

        assert result.success is False
        assert fake_kora.calls == []

    @pytest.mark.asyncio
    async def test_sol_transfer_rejects_nan(self, fake_rpc, holder, recipient):
        """SOL transfers apply the same check."""
        usdc = SolanaUsdc(holder, rpc_client=fake_rpc)

        result = await usdc.transfer_sol(recipient, float("nan"))

        assert result.success is False
        assert fake_rpc.calls == []


class TestKoraTransfer:
    """Test the fee-payer path."""

    @pytest.mark.asyncio
    async def test_transfer_goes_through_kora(self, fake_rpc, fake_kora, holder, recipient):
        """Kora builds, the holder signs, Kora signs and sends."""
        usdc = SolanaUsdc(holder, kora_client=fake_kora, rpc_client=fake_rpc)

        result = await usdc.transfer(recipient, 1.5)

        assert result.success is True
        assert fake_kora.calls == ["transferTransaction", "signAndSendTransaction"]
        assert fake_rpc.sent == []

        request = fake_kora.requests[0]
        assert request.amount == 1_500_000
        assert request.token == USDC_MAINNET
        assert request.source == holder.address
        assert request.destination == recipient

    @pytest.mark.asyncio
    async def test_amount_is_floored(self, fake_rpc, fake_kora, holder, recipient):
        """Sub-unit amounts truncate rather than round."""
        usdc = SolanaUsdc(holder, kora_client=fake_kora, rpc_client=fake_rpc)

        await usdc.transfer(recipient, 0.0000019)

        assert fake_kora.requests[0].amount == 1

    @pytest.mark.asyncio
    async def test_devnet_uses_devnet_mint(self, fake_rpc, fake_kora, holder, recipient):
        """The mint follows the network."""
        usdc = SolanaUsdc(holder, network="devnet", kora_client=fake_kora, rpc_client=fake_rpc)

        await usdc.transfer(recipient, 1.0)

        assert usdc.network == SOLANA_DEVNET
        assert fake_kora.requests[0].token == "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"

    @pytest.mark.asyncio
    async def test_kora_failure_has_no_direct_fallback(self, make_kora, fake_rpc, holder, recipient):
        """A Kora error is final and carries the upstream message."""
        kora = make_kora(errors={"signAndSendTransaction": RpcProtocolError(-32002, "insufficient fee token")})
        usdc = SolanaUsdc(holder, kora_client=kora, rpc_client=fake_rpc)

        result = await usdc.transfer(recipient, 1.0)

        assert result.success is False
        assert result.error == "Kora transfer failed: Kora RPC error [-32002]: insufficient fee token"
        assert fake_rpc.sent == []
        assert "get_account_info" not in fake_rpc.calls


class TestDirectTransfer:
    """Test the holder-pays path."""

    @pytest.mark.asyncio
    async def test_existing_token_account_gets_transfer_only(self, fake_rpc, holder, recipient):
        """An existing recipient account means one transfer instruction."""
        usdc = SolanaUsdc(holder, rpc_client=fake_rpc)

        result = await usdc.transfer(recipient, 2.0)

        assert result.success is True
        tx = Transaction.from_bytes(fake_rpc.sent[0])
        assert tx.message.account_keys[0] == holder.pubkey
        assert len(tx.message.instructions) == 1
        program = tx.message.account_keys[tx.message.instructions[0].program_id_index]
        assert program == TOKEN_PROGRAM_ID
        assert result.signature == str(tx.signatures[0])

    @pytest.mark.asyncio
    async def test_missing_token_account_is_created_first(self, fake_rpc, holder, recipient):
        """A missing recipient account is created before the transfer."""
        fake_rpc.account_exists = False
        usdc = SolanaUsdc(holder, rpc_client=fake_rpc)

        result = await usdc.transfer(recipient, 2.0)

        assert result.success is True
        tx = Transaction.from_bytes(fake_rpc.sent[0])
        programs = [tx.message.account_keys[ix.program_id_index] for ix in tx.message.instructions]
        assert programs == [ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID]

    @pytest.mark.asyncio
    async def test_send_failure_is_reported(self, fake_rpc, holder, recipient):
        """RPC errors come back with the direct-path prefix."""
        fake_rpc.send_error = Exception("blockhash not found")
        usdc = SolanaUsdc(holder, rpc_client=fake_rpc)

        result = await usdc.transfer(recipient, 2.0)

        assert result.success is False
        assert result.error == "USDC transfer failed: blockhash not found"


class TestSolTransfer:
    """Test native SOL transfers."""

    @pytest.mark.asyncio
    async def test_sol_transfer_over_limit(self, fake_rpc, holder, recipient):
        """The 50% rule applies to SOL too."""
        fake_rpc.lamports = 1_000_000_000
        usdc = SolanaUsdc(holder, rpc_client=fake_rpc)

        result = await usdc.transfer_sol(recipient, 0.6)

        assert result.success is False
        assert result.error == "Safety limit: cannot send more than 50% of SOL balance"
        assert fake_rpc.sent == []

    @pytest.mark.asyncio
    async def test_sol_transfer_within_limit(self, fake_rpc, holder, recipient):
        """A small SOL transfer is signed and sent by the holder."""
        fake_rpc.lamports = 1_000_000_000
        usdc = SolanaUsdc(holder, rpc_client=fake_rpc)

        result = await usdc.transfer_sol(recipient, 0.1)

        assert result.success is True
        tx = Transaction.from_bytes(fake_rpc.sent[0])
        tx.verify()
