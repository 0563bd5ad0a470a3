"""x402 payment client for Solana.

Implements the HTTP 402 "Payment Required" flow:

1. Request the resource. Anything but 402 is returned as is.
2. Parse the payment requirements from the 402 body.
3. Build a fully signed SPL token transfer paying the server.
4. Retry the request once with an ``X-Payment`` header carrying the
   transaction; the server verifies and broadcasts it.

With a Kora client, Kora is fee payer and co-signs without broadcasting,
so the holder pays zero SOL. Without one, the holder pays the fee.

Example:
    ```python
    signer = KeypairSigner.from_base58(private_key)
    async with X402Client(signer, kora_client=create_kora_client(kora_url)) as client:
        result = await client.fetch("https://api.example.com/paid")
    ```
"""

from __future__ import annotations

import base64
import json
import logging
import math
from dataclasses import dataclass
from typing import Any

import httpx
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.message import Message  # type: ignore
from solders.pubkey import Pubkey  # type: ignore
from solders.transaction import Transaction  # type: ignore
from spl.token.constants import TOKEN_PROGRAM_ID  # type: ignore
from spl.token.instructions import TransferParams, get_associated_token_address, transfer  # type: ignore

from ..errors import TransactionBuildFailure, UnparseablePaymentChallenge
from ..mechanisms.svm.constants import (
    PAYMENT_REQUIRED_STATUS,
    SCHEME_EXACT,
    SOLANA_DEVNET,
    USDC_DECIMALS,
    X402_VERSION,
    X_PAYMENT_HEADER,
)
from ..mechanisms.svm.kora import KoraClient
from ..mechanisms.svm.signers import KeypairSigner
from ..mechanisms.svm.submit import TransferIntent, cosign_transfer, get_latest_blockhash
from ..mechanisms.svm.utils import get_rpc_url, resolve_cluster, to_x402_network

logger = logging.getLogger(__name__)

__all__ = [
    "PaymentRequirements",
    "InvalidPaymentRequirements",
    "X402PaymentPayload",
    "X402PaymentResult",
    "X402Client",
    "parse_payment_requirements",
    "read_payment_challenge",
    "probe_payment_requirements",
    "build_x_payment_header",
    "decode_x_payment_header",
    "x402_fetch",
    "check_x402",
]

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass
class PaymentRequirements:
    """Payment requirements from a 402 body."""

    recipient_wallet: str
    token_account: str  # recipient's associated token account
    mint: str
    amount: int | float  # smallest token units
    amount_usdc: float
    cluster: str
    message: str | None = None


@dataclass
class InvalidPaymentRequirements:
    """A 402 body that does not describe a usable payment."""

    reason: str


def _str_field(obj: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = obj.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _number_field(obj: dict[str, Any], key: str) -> int | float | None:
    value = obj.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def parse_payment_requirements(body: Any) -> PaymentRequirements | InvalidPaymentRequirements:
    """Parse payment requirements from a decoded 402 body.

    Accepts ``{"payment": {...}}`` and the same fields at the top level.
    The result is either complete or ``InvalidPaymentRequirements``;
    ``tokenAccount``, ``mint``, ``amount`` and ``recipientWallet`` (or
    ``recipient``) must all be present.
    """
    if not isinstance(body, dict):
        return InvalidPaymentRequirements("402 body is not a JSON object")

    payment = body.get("payment")
    obj = payment if isinstance(payment, dict) else body

    token_account = _str_field(obj, "tokenAccount")
    mint = _str_field(obj, "mint")
    amount = _number_field(obj, "amount")
    recipient_wallet = _str_field(obj, "recipientWallet", "recipient")

    missing = [
        name
        for name, value in (
            ("tokenAccount", token_account),
            ("mint", mint),
            ("amount", amount),
            ("recipientWallet", recipient_wallet),
        )
        if value is None
    ]
    if missing:
        return InvalidPaymentRequirements(f"missing or invalid fields: {', '.join(missing)}")

    amount_usdc = _number_field(obj, "amountUSDC")
    if amount_usdc is None:
        amount_usdc = amount / 10**USDC_DECIMALS

    message = obj.get("message")

    return PaymentRequirements(
        recipient_wallet=recipient_wallet,
        token_account=token_account,
        mint=mint,
        amount=amount,
        amount_usdc=amount_usdc,
        cluster=_str_field(obj, "cluster", "network") or SOLANA_DEVNET,
        message=message if isinstance(message, str) else None,
    )


@dataclass
class X402PaymentPayload:
    """Decoded ``X-Payment`` header."""

    network: str
    serialized_transaction: str
    x402_version: int = X402_VERSION
    scheme: str = SCHEME_EXACT

    def to_dict(self) -> dict[str, Any]:
        return {
            "x402Version": self.x402_version,
            "scheme": self.scheme,
            "network": self.network,
            "payload": {"serializedTransaction": self.serialized_transaction},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "X402PaymentPayload":
        return cls(
            network=data["network"],
            serialized_transaction=data["payload"]["serializedTransaction"],
            x402_version=int(data["x402Version"]),
            scheme=data["scheme"],
        )


def build_x_payment_header(serialized_transaction: str, cluster: str) -> str:
    """Encode a signed transaction as an ``X-Payment`` header value."""
    payload = X402PaymentPayload(
        network=to_x402_network(cluster),
        serialized_transaction=serialized_transaction,
    )
    return base64.b64encode(json.dumps(payload.to_dict()).encode("utf-8")).decode("ascii")


def decode_x_payment_header(value: str) -> X402PaymentPayload:
    return X402PaymentPayload.from_dict(json.loads(base64.b64decode(value)))


@dataclass
class X402PaymentResult:
    """Result of an x402 request."""

    success: bool
    response: Any = None
    error: str | None = None
    status: int | None = None


def read_payment_challenge(response: httpx.Response) -> PaymentRequirements:
    """Parse the payment requirements out of a 402 response.

    Raises:
        UnparseablePaymentChallenge: If the body is not JSON or the
            requirements are incomplete.
    """
    try:
        body = json.loads(response.text)
    except ValueError:
        raise UnparseablePaymentChallenge(
            "402 response body is not valid JSON",
            status=response.status_code,
        )

    parsed = parse_payment_requirements(body)
    if isinstance(parsed, InvalidPaymentRequirements):
        raise UnparseablePaymentChallenge(
            f"Could not parse x402 payment requirements from 402 response: {parsed.reason}",
            status=response.status_code,
        )
    return parsed


async def probe_payment_requirements(http_client: httpx.AsyncClient, url: str) -> PaymentRequirements | None:
    """GET ``url`` and return its payment requirements, or None.

    "No payment required" and "probe failed" both read as None; failures
    are only logged.
    """
    try:
        response = await http_client.get(url)
        if response.status_code != PAYMENT_REQUIRED_STATUS:
            return None
        return read_payment_challenge(response)
    except Exception as e:
        logger.warning("check_x402 failed for %s: %s", url, e)
        return None


def _raw_amount(amount: int | float) -> int:
    # Round half up, as the server expresses amounts in whole units
    return int(math.floor(amount + 0.5))


def _parse_response(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class X402Client:
    """x402 client paying in SPL tokens on Solana.

    Args:
        signer: The paying wallet.
        rpc_url: Custom Solana RPC URL for the direct path.
        kora_client: When set, Kora is fee payer (sign-only).
        http_client: Injectable httpx client.
        rpc_client: Injectable Solana RPC client for the direct path.
    """

    def __init__(
        self,
        signer: KeypairSigner,
        rpc_url: str | None = None,
        kora_client: KoraClient | None = None,
        http_client: httpx.AsyncClient | None = None,
        rpc_client: Any = None,
    ):
        self._signer = signer
        self._rpc_url = rpc_url
        self._kora = kora_client
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._rpc_client = rpc_client

    async def __aenter__(self) -> X402Client:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_SECONDS)
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def fetch(
        self,
        url: str,
        method: str = "GET",
        body: str | bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> X402PaymentResult:
        """Fetch ``url``, paying once if the server answers 402.

        The paid retry keeps the original method, body and headers and
        only adds ``X-Payment``. Its response is final, even if it is
        another 402.
        """
        request_headers = {"Content-Type": "application/json", **(headers or {})}

        try:
            client = self._get_http_client()

            # Step 1: initial request
            initial = await client.request(method, url, content=body, headers=request_headers)
            if initial.status_code != PAYMENT_REQUIRED_STATUS:
                return X402PaymentResult(
                    success=initial.is_success,
                    response=_parse_response(initial),
                    status=initial.status_code,
                )

            # Step 2: read the challenge
            try:
                requirements = read_payment_challenge(initial)
            except UnparseablePaymentChallenge as e:
                logger.warning("Unusable 402 from %s: %s", url, e)
                return X402PaymentResult(success=False, error=str(e), status=e.status)

            # Step 3: build the payment
            cluster = resolve_cluster(requirements.cluster)
            try:
                serialized = await self.build_payment_transaction(requirements, cluster)
            except TransactionBuildFailure as e:
                logger.error("%s", e)
                return X402PaymentResult(success=False, error=str(e), status=PAYMENT_REQUIRED_STATUS)

            # Step 4: retry with X-Payment
            paid_headers = {**request_headers, X_PAYMENT_HEADER: build_x_payment_header(serialized, cluster)}
            paid = await client.request(method, url, content=body, headers=paid_headers)

            return X402PaymentResult(
                success=paid.is_success,
                response=_parse_response(paid),
                status=paid.status_code,
            )
        except Exception as e:
            logger.error("x402 fetch failed: %s", e)
            return X402PaymentResult(success=False, error=str(e))

    async def build_payment_transaction(self, requirements: PaymentRequirements, cluster: str) -> str:
        """Build the fully signed base64 payment transaction.

        Raises:
            TransactionBuildFailure: If any step of the build fails.
        """
        try:
            if self._kora is not None:
                return await self._build_via_kora(requirements)
            return await self._build_direct(requirements, cluster)
        except Exception as e:
            raise TransactionBuildFailure(f"Failed to build payment transaction: {e}") from e

    async def _build_via_kora(self, requirements: PaymentRequirements) -> str:
        intent = TransferIntent(
            amount=_raw_amount(requirements.amount),
            token=requirements.mint,
            source=self._signer.address,
            destination=requirements.recipient_wallet,
        )
        # The resource server broadcasts, so Kora only signs
        result = await cosign_transfer(self._kora, self._signer, intent, broadcast=False)
        return result.signed_transaction

    async def _build_direct(self, requirements: PaymentRequirements, cluster: str) -> str:
        rpc_client = self._rpc_client
        owns_rpc_client = rpc_client is None
        if owns_rpc_client:
            rpc_client = AsyncClient(get_rpc_url(cluster, self._rpc_url), commitment=Confirmed)

        try:
            owner = self._signer.pubkey
            mint = Pubkey.from_string(requirements.mint)
            source_ata = get_associated_token_address(owner, mint)

            transfer_ix = transfer(
                TransferParams(
                    program_id=TOKEN_PROGRAM_ID,
                    source=source_ata,
                    dest=Pubkey.from_string(requirements.token_account),
                    owner=owner,
                    amount=_raw_amount(requirements.amount),
                )
            )

            blockhash = await get_latest_blockhash(rpc_client)
            message = Message.new_with_blockhash([transfer_ix], owner, blockhash)
            tx = Transaction([self._signer.keypair], message, blockhash)
            return base64.b64encode(bytes(tx)).decode()
        finally:
            if owns_rpc_client:
                await rpc_client.close()

    async def check(self, url: str) -> PaymentRequirements | None:
        """Probe ``url`` for payment requirements without paying.

        Returns None when no payment is required. A failed probe also
        returns None.
        """
        return await probe_payment_requirements(self._get_http_client(), url)


async def x402_fetch(
    url: str,
    signer: KeypairSigner,
    method: str = "GET",
    body: str | bytes | None = None,
    headers: dict[str, str] | None = None,
    rpc_url: str | None = None,
    kora_client: KoraClient | None = None,
) -> X402PaymentResult:
    """Fetch with automatic x402 payment using a temporary client."""
    async with X402Client(signer, rpc_url=rpc_url, kora_client=kora_client) as client:
        return await client.fetch(url, method=method, body=body, headers=headers)


async def check_x402(url: str) -> PaymentRequirements | None:
    """Return the payment requirements of ``url``, or None."""
    async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_SECONDS) as http_client:
        return await probe_payment_requirements(http_client, url)
