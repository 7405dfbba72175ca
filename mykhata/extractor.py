"""Heuristic field extraction from raw OCR receipt text."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from .models import ExtractedReceiptData, LineItem

_CURRENCY = r"[$€£₹]"

# Plain or comma-grouped number, e.g. "45", "45.67", "1,234.56"
_NUMBER = r"\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?"

# Rejects a number that is part of a percentage or a longer number
_AMOUNT_END = r"(?![\d.,]*%)(?!\d)"

# Optional tax rate between a keyword and its amount ("TAX 8.25% 3.71")
_RATE = r"(?:\d+(?:\.\d+)?\s*%\s*)?"

_MERCHANT_SCAN_LINES = 5

_NON_MERCHANT_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"^\d+$"),
    re.compile(r"^\d{1,4}[/\-.]\d{1,2}[/\-.]\d{1,4}"),
    # Single-token codes mixing letters and digits: "TRN4821", "A1-77"
    re.compile(r"^(?=\S*\d)(?=\S*[A-Za-z])[A-Za-z0-9\-#/]+$"),
    re.compile(r"^(?:receipt|invoice|bill|total|subtotal|tax|amount)\b", re.I),
    re.compile(rf"^{_CURRENCY}?\s*\d[\d,]*(?:\.\d{{1,2}})?$"),
    re.compile(r"^#\s*\w+$"),
]

_MERCHANT_PATTERNS: list[re.Pattern[str]] = [
    # WALMART SUPERCENTER, BED BATH & BEYOND
    re.compile(r"^[A-Z][A-Z'&.\-]*(?:\s+(?:&\s+)?[A-Z][A-Z'&.\-]*)*$"),
    # Joe's Cafe, Trader Joe's, Barnes & Noble
    re.compile(r"^[A-Z][a-z'’]+(?:\s+(?:&\s+)?[A-Z][a-z'’]*)+$"),
    # CVS, H&M, AT&T
    re.compile(r"^[A-Z][A-Z0-9&.\-]{1,48}$"),
]

_MONTHS = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?"
    r"|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)

_DATE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"(?<!\d)(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})(?!\d)"),
    re.compile(r"(?<!\d)(\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2})(?!\d)"),
    re.compile(
        rf"\b({_MONTHS}\.?\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{4}})\b", re.I
    ),
    re.compile(
        rf"\b(\d{{1,2}}(?:st|nd|rd|th)?\s+{_MONTHS}\.?,?\s+\d{{4}})\b", re.I
    ),
]

_TOTAL_RE = re.compile(
    r"(?<!sub)(?<!sub )(?<!sub-)"
    r"\b(?:grand\s+total|final\s+total|amount\s+due|balance\s+due|total)\b"
    rf"[\s:]*{_CURRENCY}?\s*({_NUMBER}){_AMOUNT_END}",
    re.I,
)
_SUBTOTAL_RE = re.compile(
    rf"\b(?:subtotal|sub[\s-]?total)\b[\s:]*{_CURRENCY}?\s*({_NUMBER}){_AMOUNT_END}",
    re.I,
)
_TAX_RE = re.compile(
    r"\b(?:sales\s+tax|service\s+tax|tax|vat|gst)\b"
    rf"[\s:]*{_RATE}{_CURRENCY}?\s*({_NUMBER}){_AMOUNT_END}",
    re.I,
)

# Currency-shaped token: two decimal places, not part of a date or longer number
_AMOUNT_TOKEN_RE = re.compile(
    rf"(?<![\d.,]){_CURRENCY}?\s?(\d{{1,3}}(?:,\d{{3}})+\.\d{{2}}|\d+\.\d{{2}})(?![\d.])"
)
_TOTAL_FALLBACK_MAX = Decimal("100000")

_TOTAL_LINE_RE = re.compile(
    r"total|\b(?:tax|vat|gst|balance\s+due|amount\s+due)\b", re.I
)
_HEADER_LINE_RE = re.compile(
    r"\b(?:items?|description|qty|quantity|prices?|amount)\b", re.I
)
_PREFIXED_PRICE_RE = re.compile(
    rf"{_CURRENCY}\s?(\d{{1,3}}(?:,\d{{3}})+(?:\.\d{{1,2}})?|\d+(?:\.\d{{1,2}})?)(?![\d.])"
)
# Trailing amount, optionally followed by a one-letter tax flag ("3.99 T")
_TRAILING_PRICE_RE = re.compile(
    r"(?<![\d.,/:\-])(\d{1,3}(?:,\d{3})+\.\d{2}|\d+\.\d{2})(?:\s+[A-Za-z])?\s*$"
)
_ITEM_PRICE_MAX = Decimal("10000")
_DESCRIPTION_STRIP = " \t:-@*#"


def extract_receipt_data(raw_text: str) -> ExtractedReceiptData:
    """Extract merchant, date, totals and line items from OCR text.

    Fields that cannot be found are ``None`` (or an empty item tuple).
    The result is a pure function of ``raw_text``.
    """
    lines = split_lines(raw_text)
    return ExtractedReceiptData(
        merchant=extract_merchant(lines),
        date=extract_date(lines),
        total=extract_total(lines),
        subtotal=_first_amount(lines, _SUBTOTAL_RE),
        tax=_first_amount(lines, _TAX_RE),
        items=tuple(extract_items(lines)),
        raw_text=raw_text,
    )


def split_lines(raw_text: str) -> list[str]:
    """Return the non-empty, stripped lines of ``raw_text``."""
    return [line.strip() for line in raw_text.splitlines() if line.strip()]


def extract_merchant(lines: list[str]) -> str | None:
    """Pick the business name from the top of the receipt.

    Falls back to the first line verbatim when no candidate looks like a name.
    """
    if not lines:
        return None

    for line in lines[:_MERCHANT_SCAN_LINES]:
        if _is_non_merchant(line):
            continue
        if any(p.match(line) for p in _MERCHANT_PATTERNS):
            return line

    return lines[0]


def extract_date(lines: list[str]) -> str | None:
    """Return the first date-shaped substring, unparsed."""
    for line in lines:
        for pattern in _DATE_PATTERNS:
            match = pattern.search(line)
            if match:
                return match.group(1)
    return None


def extract_total(lines: list[str]) -> str | None:
    """Return the keyword-labelled total, else the largest plausible amount."""
    total = _first_amount(lines, _TOTAL_RE)
    if total is not None:
        return total

    best: Decimal | None = None
    best_text: str | None = None
    for line in lines:
        for match in _AMOUNT_TOKEN_RE.finditer(line):
            text = match.group(1).replace(",", "")
            value = _to_decimal(text)
            if value is None or not (0 < value < _TOTAL_FALLBACK_MAX):
                continue
            if best is None or value > best:
                best, best_text = value, text
    return best_text


def extract_items(lines: list[str]) -> list[LineItem]:
    """Parse priced rows into line items.

    Total and column-header lines are ignored. Expect false positives.
    """
    items: list[LineItem] = []
    for line in lines:
        if _TOTAL_LINE_RE.search(line) or _HEADER_LINE_RE.search(line):
            continue

        match = _find_price(line)
        if match is None:
            continue

        price = match.group(1).replace(",", "")
        value = _to_decimal(price)
        if value is None or not (0 < value < _ITEM_PRICE_MAX):
            continue

        start, end = match.span()
        description = " ".join((line[:start] + " " + line[end:]).split())
        description = description.strip(_DESCRIPTION_STRIP)
        if not description:
            continue

        items.append(LineItem(description=description, price=price))
    return items


def _is_non_merchant(line: str) -> bool:
    return any(p.search(line) for p in _NON_MERCHANT_PATTERNS)


def _first_amount(lines: list[str], pattern: re.Pattern[str]) -> str | None:
    for line in lines:
        match = pattern.search(line)
        if match:
            return match.group(1).replace(",", "")
    return None


def _find_price(line: str) -> re.Match[str] | None:
    prefixed = list(_PREFIXED_PRICE_RE.finditer(line))
    if prefixed:
        return prefixed[-1]
    return _TRAILING_PRICE_RE.search(line)


def _to_decimal(text: str) -> Decimal | None:
    try:
        return Decimal(text)
    except InvalidOperation:
        return None
