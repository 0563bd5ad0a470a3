"""Shared fakes: a Solana RPC client and a Kora server that really co-sign."""

import base64
from types import SimpleNamespace

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message, MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction, VersionedTransaction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import TransferCheckedParams, get_associated_token_address, transfer_checked

from kora_x402.mechanisms.svm.kora import (
    GetPayerSignerResponse,
    SignAndSendTransactionResponse,
    SignTransactionResponse,
    TransferTransactionResponse,
)
from kora_x402.mechanisms.svm.signers import KeypairSigner
from kora_x402.mechanisms.svm.transactions import decode_transaction

USDC_MAINNET = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


class FakeRpcClient:
    """Stands in for solana-py's AsyncClient."""

    def __init__(self, token_balance=100.0, lamports=10_000_000_000, account_exists=True, send_error=None):
        self.token_balance = token_balance
        self.lamports = lamports
        self.account_exists = account_exists
        self.send_error = send_error
        self.blockhash = Hash.new_unique()
        self.calls: list[str] = []
        self.sent: list[bytes] = []

    async def get_token_account_balance(self, pubkey):
        self.calls.append("get_token_account_balance")
        if isinstance(self.token_balance, Exception):
            raise self.token_balance
        return SimpleNamespace(value=SimpleNamespace(ui_amount=self.token_balance))

    async def get_balance(self, pubkey):
        self.calls.append("get_balance")
        return SimpleNamespace(value=self.lamports)

    async def get_account_info(self, pubkey):
        self.calls.append("get_account_info")
        return SimpleNamespace(value=object() if self.account_exists else None)

    async def get_latest_blockhash(self):
        self.calls.append("get_latest_blockhash")
        return SimpleNamespace(value=SimpleNamespace(blockhash=self.blockhash, last_valid_block_height=100))

    async def send_raw_transaction(self, tx_bytes, opts=None):
        self.calls.append("send_raw_transaction")
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(tx_bytes)
        return SimpleNamespace(value=Transaction.from_bytes(tx_bytes).signatures[0])

    async def confirm_transaction(self, signature, commitment=None):
        self.calls.append("confirm_transaction")
        return SimpleNamespace(value=[SimpleNamespace(err=None)])

    async def close(self):
        pass


def build_transfer_transaction(fee_payer: Pubkey, source: Pubkey, destination: Pubkey, amount: int, versioned: bool) -> str:
    """Build an unsigned USDC transfer the way Kora would."""
    mint = Pubkey.from_string(USDC_MAINNET)
    ix = transfer_checked(
        TransferCheckedParams(
            program_id=TOKEN_PROGRAM_ID,
            source=get_associated_token_address(source, mint),
            mint=mint,
            dest=get_associated_token_address(destination, mint),
            owner=source,
            amount=amount,
            decimals=6,
        )
    )
    blockhash = Hash.new_unique()
    if versioned:
        message = MessageV0.try_compile(fee_payer, [ix], [], blockhash)
        signatures = [Signature.default()] * message.header.num_required_signatures
        tx_bytes = bytes(VersionedTransaction.populate(message, signatures))
    else:
        message = Message.new_with_blockhash([ix], fee_payer, blockhash)
        tx_bytes = bytes(Transaction.new_unsigned(message))
    return base64.b64encode(tx_bytes).decode()


class FakeKora:
    """In-process Kora: builds transfers and co-signs as fee payer."""

    def __init__(self, versioned=False, errors=None):
        self.fee_payer = Keypair()
        self.versioned = versioned
        self.errors = errors or {}
        self.calls: list[str] = []
        self.requests: list = []
        self.received: list[str] = []
        self.broadcast: list[str] = []

    def _maybe_fail(self, method):
        self.calls.append(method)
        if method in self.errors:
            raise self.errors[method]

    def _cosign(self, transaction: str) -> tuple[str, str]:
        signed = decode_transaction(transaction).partial_sign([self.fee_payer])
        return str(signed.tx.signatures[0]), signed.to_base64()

    async def transfer_transaction(self, request):
        self._maybe_fail("transferTransaction")
        self.requests.append(request)
        tx = build_transfer_transaction(
            self.fee_payer.pubkey(),
            Pubkey.from_string(request.source),
            Pubkey.from_string(request.destination),
            request.amount,
            self.versioned,
        )
        return TransferTransactionResponse(transaction=tx, signer_pubkey=request.source)

    async def sign_and_send_transaction(self, transaction):
        self._maybe_fail("signAndSendTransaction")
        self.received.append(transaction)
        signature, signed = self._cosign(transaction)
        self.broadcast.append(signed)
        return SignAndSendTransactionResponse(
            signature=signature,
            signed_transaction=signed,
            signer_pubkey=str(self.fee_payer.pubkey()),
        )

    async def sign_transaction(self, transaction):
        self._maybe_fail("signTransaction")
        self.received.append(transaction)
        signature, signed = self._cosign(transaction)
        return SignTransactionResponse(signature=signature, signed_transaction=signed)

    async def get_payer_signer(self):
        self._maybe_fail("getPayerSigner")
        return GetPayerSignerResponse(
            payer_signer=str(self.fee_payer.pubkey()),
            payment_destination=str(self.fee_payer.pubkey()),
        )


@pytest.fixture
def holder() -> KeypairSigner:
    return KeypairSigner(Keypair())


@pytest.fixture
def recipient() -> str:
    return str(Keypair().pubkey())


@pytest.fixture
def fake_rpc() -> FakeRpcClient:
    return FakeRpcClient()


@pytest.fixture
def fake_kora() -> FakeKora:
    return FakeKora()


@pytest.fixture
def transfer_tx():
    return build_transfer_transaction


@pytest.fixture
def make_kora():
    return FakeKora
