"""Validation of user-confirmed receipt fields before they hit the ledger."""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from dateutil.parser import parse as date_parse

from .errors import ValidationError

logger = logging.getLogger(__name__)

_AMOUNT_STRIP = "$€£₹ "


def parse_amount(value: str | int | float | Decimal | None) -> Decimal:
    """Coerce an amount to a positive, finite Decimal.

    Strings may carry a currency symbol and thousands separators.

    Raises:
        ValidationError: If the amount is missing, not a number, NaN,
            infinite, or not greater than zero.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError("Amount is required")

    if isinstance(value, Decimal):
        amount = value
    else:
        text = str(value).strip().strip(_AMOUNT_STRIP).replace(",", "")
        if not text:
            raise ValidationError("Amount is required")
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise ValidationError(f"Amount must be a number: {value!r}") from None

    if not amount.is_finite():
        raise ValidationError(f"Amount must be a finite number: {value!r}")
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    return amount


def parse_receipt_date(text: str | None, *, dayfirst: bool = False) -> str | None:
    """Parse a receipt date string into ISO format (YYYY-MM-DD).

    Returns None when the text is empty or not a recognizable date.
    """
    if not text or not text.strip():
        return None
    try:
        return date_parse(text.strip(), dayfirst=dayfirst).date().isoformat()
    except (ValueError, OverflowError):
        logger.debug("Unparseable receipt date: %r", text)
        return None


def resolve_transaction_date(
    text: str | None, *, today: date | None = None
) -> str:
    """Return the parsed receipt date, or today when it cannot be parsed."""
    parsed = parse_receipt_date(text)
    if parsed is not None:
        return parsed
    return (today or datetime.now().date()).isoformat()


def require_merchant(merchant: str | None) -> str:
    """Return the stripped merchant name.

    Raises:
        ValidationError: If the merchant is missing or blank.
    """
    if merchant is None or not merchant.strip():
        raise ValidationError("Merchant is required")
    return merchant.strip()
