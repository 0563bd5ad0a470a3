"""Kora fee-payer JSON-RPC client.

Kora is a signing service that pays Solana transaction fees and takes
its payment in an SPL token (USDC) instead of SOL. The holder's wallet
never needs native SOL.

Example:
    ```python
    async with KoraClient("http://localhost:8080") as kora:
        if await kora.is_available():
            payer = await kora.get_payer_signer()
    ```
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ....errors import RpcHttpError, RpcProtocolError
from .types import (
    EstimateTransactionFeeResponse,
    GetPayerSignerResponse,
    GetSupportedTokensResponse,
    KoraMethod,
    SignAndSendTransactionResponse,
    SignTransactionResponse,
    TransferTransactionRequest,
    TransferTransactionResponse,
)

logger = logging.getLogger(__name__)

__all__ = ["KoraClient", "create_kora_client"]

JSONRPC_VERSION = "2.0"
DEFAULT_TIMEOUT_SECONDS = 30.0


class KoraClient:
    """Async JSON-RPC client for a Kora server.

    Every call POSTs a JSON-RPC 2.0 envelope to ``rpc_url`` and returns the
    ``result`` member. Failures are kept distinguishable:

    - non-2xx status raises :class:`RpcHttpError`
    - an ``error`` member in the body raises :class:`RpcProtocolError`
    - transport exceptions from httpx propagate unchanged
    """

    def __init__(
        self,
        rpc_url: str,
        http_client: httpx.AsyncClient | None = None,
        service_name: str = "Kora",
    ) -> None:
        self._rpc_url = rpc_url
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._service_name = service_name

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def __aenter__(self) -> KoraClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_SECONDS)
        return self._http_client

    async def _rpc(self, method: KoraMethod | str, params: dict[str, Any] | None = None) -> Any:
        """Invoke a Kora JSON-RPC method and return its ``result``."""
        method = KoraMethod(method)
        payload = {
            "jsonrpc": JSONRPC_VERSION,
            "id": 1,
            "method": method.value,
            "params": params or {},
        }

        client = self._get_http_client()
        response = await client.post(
            self._rpc_url,
            json=payload,
            headers={"Content-Type": "application/json"},
        )

        if not response.is_success:
            raise RpcHttpError(response.status_code, response.reason_phrase, self._service_name)

        body = response.json()
        if not isinstance(body, dict):
            raise RpcProtocolError(0, f"Malformed response body: {body!r}", self._service_name)

        error = body.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise RpcProtocolError(
                    error.get("code", 0),
                    error.get("message", ""),
                    self._service_name,
                )
            raise RpcProtocolError(0, str(error), self._service_name)

        if "result" not in body:
            raise RpcProtocolError(0, "Response has neither result nor error", self._service_name)
        return body["result"]

    async def transfer_transaction(
        self,
        request: TransferTransactionRequest,
    ) -> TransferTransactionResponse:
        """Build a token transfer transaction with Kora as fee payer.

        The returned transaction still needs the holder's signature.
        """
        result = await self._rpc(KoraMethod.TRANSFER_TRANSACTION, request.to_params())
        return TransferTransactionResponse.from_dict(result)

    async def sign_and_send_transaction(self, transaction: str) -> SignAndSendTransactionResponse:
        """Co-sign a partially signed transaction as fee payer and broadcast it."""
        result = await self._rpc(
            KoraMethod.SIGN_AND_SEND_TRANSACTION,
            {"transaction": transaction},
        )
        return SignAndSendTransactionResponse.from_dict(result)

    async def sign_transaction(self, transaction: str) -> SignTransactionResponse:
        """Co-sign as fee payer without broadcasting.

        Used when a third party (an x402 server) will broadcast the
        fully signed transaction.
        """
        result = await self._rpc(KoraMethod.SIGN_TRANSACTION, {"transaction": transaction})
        return SignTransactionResponse.from_dict(result)

    async def get_payer_signer(self) -> GetPayerSignerResponse:
        """Get Kora's fee payer address and payment destination."""
        result = await self._rpc(KoraMethod.GET_PAYER_SIGNER)
        return GetPayerSignerResponse.from_dict(result)

    async def get_supported_tokens(self) -> GetSupportedTokensResponse:
        """List tokens Kora accepts for fee payment."""
        result = await self._rpc(KoraMethod.GET_SUPPORTED_TOKENS)
        return GetSupportedTokensResponse.from_dict(result)

    async def estimate_transaction_fee(
        self,
        transaction: str,
        fee_token: str,
    ) -> EstimateTransactionFeeResponse:
        """Estimate a transaction's fee in lamports and in ``fee_token``."""
        result = await self._rpc(
            KoraMethod.ESTIMATE_TRANSACTION_FEE,
            {"transaction": transaction, "fee_token": fee_token},
        )
        return EstimateTransactionFeeResponse.from_dict(result)

    async def is_available(self) -> bool:
        """Check whether the Kora server answers. Never raises."""
        try:
            await self.get_payer_signer()
            return True
        except Exception as e:
            logger.warning("%s server at %s unavailable: %s", self._service_name, self._rpc_url, e)
            return False


def create_kora_client(rpc_url: str | None, **kwargs: Any) -> KoraClient | None:
    """Create a KoraClient, or None when no URL is configured."""
    if not rpc_url:
        return None
    return KoraClient(rpc_url, **kwargs)
