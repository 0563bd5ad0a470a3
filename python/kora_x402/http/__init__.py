"""HTTP 402 payment flow."""

from kora_x402.http.x402_client import (
    InvalidPaymentRequirements,
    PaymentRequirements,
    X402Client,
    X402PaymentPayload,
    X402PaymentResult,
    build_x_payment_header,
    check_x402,
    decode_x_payment_header,
    parse_payment_requirements,
    x402_fetch,
)

__all__ = [
    "X402Client",
    "X402PaymentResult",
    "X402PaymentPayload",
    "PaymentRequirements",
    "InvalidPaymentRequirements",
    "parse_payment_requirements",
    "build_x_payment_header",
    "decode_x_payment_header",
    "x402_fetch",
    "check_x402",
]
