"""
Heuristic OCR Extractor

On-device parser for text read off a payment screenshot, used when the
structured extractor can't be reached.

Screenshot text is messier than an SMS: phone numbers, UPI reference
numbers, years and account numbers all look like amounts. Those are
removed first, then a ladder of patterns is tried line by line. The
rung that matched sets the confidence:

    95  currency-marked amount (largest one on the screen)
    90  e-commerce button ("Add item 245", "Pay now ₹99")
    85  payment keyword ("Paid 500", "Total: 1,250")
    70  a line holding nothing but a number (UPI apps)
    50  largest plausible number anywhere

No rung matching yields amount 0 with confidence 0, which the capture
screen treats as no-amount with the merchant kept.
"""

import re
from typing import Optional

import structlog

from expense_capture.models.expense import ExtractionResult, TransactionType

logger = structlog.get_logger(__name__)


UNKNOWN_MERCHANT = "Unknown Merchant"
MAX_AMOUNT = 1_000_000
MAX_PRODUCT_NAME_LENGTH = 50

CURRENCY_CONFIDENCE = 95
ECOMMERCE_CONFIDENCE = 90
KEYWORD_CONFIDENCE = 85
STANDALONE_CONFIDENCE = 70
BEST_GUESS_CONFIDENCE = 50

# +91 98765 43210 / 098765-43210 / 9876543210
PHONE_PATTERN = re.compile(r"(?:\+91|0)?[-\s]?[6-9]\d{4}[-\s]?\d{5}")
REFERENCE_PATTERN = re.compile(r"\b\d{12,}\b")
YEAR_PATTERN = re.compile(r"\b202\d\b")
ACCOUNT_PATTERN = re.compile(r"(?:A/c|Account)\s*\d+", re.IGNORECASE)
LONG_DIGITS_PATTERN = re.compile(r"\d{10,}")

_NUMBER = r"([\d,]+\.?\d{0,2})"
CURRENCY_PATTERN = re.compile(
    r"(?:₹|\b(?:rs\.?|inr))\s*" + _NUMBER,
    re.IGNORECASE,
)
ECOMMERCE_PATTERN = re.compile(
    r"(?:add item|add to cart|add|buy now|order now|pay now)\s*(?:₹|rs\.?)?\s*" + _NUMBER,
    re.IGNORECASE,
)
KEYWORD_PATTERN = re.compile(
    r"(?:paid|sent|total|amount|price|subtotal|grand total|pay|debited|credited)"
    r"\s*[:\-]?\s*(?:₹|rs\.?)?\s*" + _NUMBER,
    re.IGNORECASE,
)
STANDALONE_PATTERN = re.compile(r"[\d,]+(?:\.\d{1,2})?")
ANY_NUMBER_PATTERN = re.compile(r"\b(\d{1,6}(?:\.\d{2})?)\b")

PAYEE_LABEL_PATTERN = re.compile(r"(?:^|\bpaid\s+)to\b[:\s]*", re.IGNORECASE)
PAYER_LABEL_PATTERN = re.compile(r"\breceived from\b[:\s]*", re.IGNORECASE)
CAPS_NAME_PATTERN = re.compile(r"[A-Z ]{3,}")
PRODUCT_HINTS = ("add item", "add to cart", "buy now")
PRICE_LINE_PATTERN = re.compile(r"₹.*\d")
CAPS_NAME_EXCLUDES = ("BANK", "UPI", "GOOGLE", "PHONEPE", "PAY")

KNOWN_MERCHANTS = (
    "Swiggy", "Zomato", "Uber", "Ola", "Amazon", "Flipkart",
    "Myntra", "BigBasket", "Dunzo", "Blinkit", "Zepto",
    "Starbucks", "McDonald", "KFC", "Domino", "Pizza Hut",
)

CREDIT_KEYWORDS = ("credited", "received", "refund", "cashback")


def _parse_number(raw: str) -> float:
    try:
        return float(raw.replace(",", ""))
    except ValueError:
        return 0.0


def _plausible(value: float) -> bool:
    return 0 < value < MAX_AMOUNT


def _strip_identifiers(text: str) -> str:
    """Blank out phone numbers, reference numbers, years and account numbers."""
    for pattern in (PHONE_PATTERN, REFERENCE_PATTERN, YEAR_PATTERN, ACCOUNT_PATTERN):
        text = pattern.sub(" ", text)
    return text


def _first_on_a_line(pattern: re.Pattern, lines: list[str]) -> Optional[float]:
    # Only the first match on each line counts
    for line in lines:
        match = pattern.search(line)
        if match is None:
            continue
        value = _parse_number(match.group(1))
        if _plausible(value):
            return value
    return None


def extract_ocr_amount(text: str) -> tuple[float, int]:
    """
    Find the payment amount in screenshot text.

    Returns:
        (amount, confidence). (0.0, 0) when nothing looks like an amount.
    """
    if not text or not isinstance(text, str):
        return 0.0, 0

    lines = _strip_identifiers(text).split("\n")

    # "₹1 +Add item ₹245" means 245: take the largest marked amount
    marked = [
        _parse_number(raw)
        for line in lines
        for raw in CURRENCY_PATTERN.findall(line)
    ]
    marked = [value for value in marked if _plausible(value)]
    if marked:
        return max(marked), CURRENCY_CONFIDENCE

    value = _first_on_a_line(ECOMMERCE_PATTERN, lines)
    if value is not None:
        return value, ECOMMERCE_CONFIDENCE

    value = _first_on_a_line(KEYWORD_PATTERN, lines)
    if value is not None:
        return value, KEYWORD_CONFIDENCE

    for line in lines:
        stripped = line.strip()
        if STANDALONE_PATTERN.fullmatch(stripped):
            value = _parse_number(stripped)
            if _plausible(value):
                return value, STANDALONE_CONFIDENCE

    guesses = [
        _parse_number(raw)
        for line in lines
        for raw in ANY_NUMBER_PATTERN.findall(line)
    ]
    guesses = [value for value in guesses if 10 <= value <= 100_000]
    if guesses:
        return max(guesses), BEST_GUESS_CONFIDENCE

    return 0.0, 0


def _name_after_label(lines: list[str], label: re.Pattern) -> Optional[str]:
    """Name following "Paid to" / "Received from", on the same or next line."""
    for index, line in enumerate(lines):
        match = label.search(line.strip())
        if match is None:
            continue

        name = PHONE_PATTERN.sub("", line.strip()[match.end():]).strip()
        if len(name) > 2 and "..." not in name:
            return name

        if index + 1 < len(lines):
            name = PHONE_PATTERN.sub("", lines[index + 1].strip()).strip()
            if len(name) > 2:
                return name
    return None


def _product_name(lines: list[str]) -> Optional[str]:
    """Line sitting right above an "Add item" button or a price."""
    for line, next_line in zip(lines, lines[1:]):
        below = next_line.lower()
        if not (any(hint in below for hint in PRODUCT_HINTS) or PRICE_LINE_PATTERN.search(below)):
            continue
        candidate = line.strip()
        if (
            3 <= len(candidate) <= MAX_PRODUCT_NAME_LENGTH
            and not LONG_DIGITS_PATTERN.search(candidate)
            and not YEAR_PATTERN.search(candidate)
        ):
            return candidate
    return None


def extract_ocr_merchant(text: str) -> str:
    """
    Find who was paid (or who paid) in screenshot text.

    Tried in order: payee label, payer label, product name above a
    price, an ALL-CAPS name line, a known brand, the first meaningful
    line. Falls back to "Unknown Merchant".
    """
    if not text or not isinstance(text, str):
        return UNKNOWN_MERCHANT

    lines = text.split("\n")

    name = (
        _name_after_label(lines, PAYEE_LABEL_PATTERN)
        or _name_after_label(lines, PAYER_LABEL_PATTERN)
        or _product_name(lines)
    )
    if name:
        return name

    # GPay / PhonePe print the payee in capitals
    for line in lines:
        stripped = line.strip()
        if CAPS_NAME_PATTERN.fullmatch(stripped) and not any(
            word in stripped for word in CAPS_NAME_EXCLUDES
        ):
            return stripped

    for line in lines:
        lowered = line.lower()
        for merchant in KNOWN_MERCHANTS:
            if merchant.lower() in lowered:
                return merchant

    for line in lines:
        stripped = line.strip()
        lowered_line = stripped.lower()
        if (
            len(stripped) >= 3
            and not stripped.isdigit()
            and not LONG_DIGITS_PATTERN.search(stripped)
            and "payment" not in lowered_line
            and "success" not in lowered_line
        ):
            return stripped

    return UNKNOWN_MERCHANT


def determine_transaction_type(text: str) -> TransactionType:
    """Credit when the text mentions money coming in, otherwise debit."""
    lowered = (text or "").lower()
    if any(keyword in lowered for keyword in CREDIT_KEYWORDS):
        return TransactionType.CREDIT
    return TransactionType.DEBIT


class OcrTextHeuristicExtractor:
    """
    Regex ladder over screenshot OCR text, with a confidence score.

    Never raises and never does I/O.
    """

    name = "ocr_heuristic"

    def extract(self, text: str) -> Optional[ExtractionResult]:
        """Returns None only for empty or non-string text."""
        if not text or not isinstance(text, str):
            return None

        amount, confidence = extract_ocr_amount(text)
        result = ExtractionResult(
            amount=amount,
            merchant=extract_ocr_merchant(text),
            transaction_type=determine_transaction_type(text),
            confidence=confidence,
        )
        logger.debug(
            "ocr_heuristic_extracted",
            amount=result.amount,
            merchant=result.merchant,
            confidence=result.confidence,
        )
        return result
