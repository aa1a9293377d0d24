"""Payment escrow guard: amount and expiry ordering checks."""

from __future__ import annotations

import logging

from qwallet.core.exceptions import InvalidPaymentAmount, PaymentExpired

logger = logging.getLogger(__name__)


def validate_payment(amount: int, expires_at: int, now: int) -> bool:
    """
    Check a payment before it is escrowed.

    Returns:
        True when the payment is acceptable.

    Raises:
        InvalidPaymentAmount: ``amount <= 0``.
        PaymentExpired: ``expires_at <= now``.
    """
    if amount <= 0:
        logger.info(
            "Payment rejected",
            extra={"event": "escrow.rejected", "reason": "amount", "amount": amount},
        )
        raise InvalidPaymentAmount(
            f"Payment amount must be positive, got {amount}",
            details={"amount": amount},
        )
    if expires_at <= now:
        logger.info(
            "Payment rejected",
            extra={
                "event": "escrow.rejected",
                "reason": "expired",
                "expires_at": expires_at,
                "now": now,
            },
        )
        raise PaymentExpired(
            f"Payment expired at {expires_at} (now {now})",
            details={"expires_at": expires_at, "now": now},
        )
    return True
