"""
Heuristic SMS Extractor

Regex-based amount/merchant extraction for bank SMS bodies.

DESIGN DECISION: This extractor is a pure function of its input.
It never raises and never does I/O. "No amount marker" is not an
error, it simply means the message is not expense-like, so the
caller gets None and skips the message.

Heuristic results carry no confidence score: they are accepted or
rejected as a whole.
"""

import re
from typing import Iterable, Optional

import structlog

from expense_capture.models.expense import ExtractionResult, TransactionType

logger = structlog.get_logger(__name__)


DEFAULT_DESCRIPTION = "Bank Transaction"
MAX_MERCHANT_LENGTH = 50
MERCHANT_TOKEN_COUNT = 3

# Rs. 500 / Rs500 / INR 1,200.50 / ₹ 99
AMOUNT_PATTERN = re.compile(
    r"(?:\b(?:rs\.?|inr)|₹)\s*(\d[\d,]*(?:\.\d+)?)",
    re.IGNORECASE,
)
SPEND_KEYWORDS = ("debited", "spent")
MERCHANT_SPLIT_PATTERN = re.compile(r"\s(?:to|at)\s", re.IGNORECASE)

# Keyword table for category hints, first match with most hits wins
CATEGORY_KEYWORDS = {
    "Food & Dining": [
        "swiggy", "zomato", "uber eats", "food", "restaurant", "cafe",
        "dominos", "mcdonald", "kfc", "pizza", "burger",
    ],
    "Transportation": [
        "uber", "ola", "rapido", "metro", "bus", "taxi", "fuel",
        "petrol", "diesel", "parking",
    ],
    "Shopping": [
        "amazon", "flipkart", "myntra", "ajio", "shopping", "mall",
        "retail", "store",
    ],
    "Entertainment": [
        "netflix", "amazon prime", "hotstar", "spotify", "movie",
        "cinema", "pvr", "inox", "gaming",
    ],
    "Bills & Utilities": [
        "electricity", "water", "gas", "mobile", "internet", "broadband",
        "bill", "recharge", "airtel", "jio", "vodafone",
    ],
    "Groceries": [
        "grocery", "supermarket", "dmart", "reliance fresh", "big bazaar",
        "milk", "vegetables",
    ],
    "Health": [
        "hospital", "medical", "pharmacy", "medicine", "doctor", "clinic",
        "apollo", "health",
    ],
    "Education": [
        "course", "book", "education", "school", "college", "university",
        "tuition", "udemy", "coursera",
    ],
}
DEFAULT_CATEGORY = "Other"


def _parse_amount(raw: str) -> Optional[float]:
    """Strip thousands separators and parse; None if it isn't a number."""
    try:
        return float(raw.replace(",", ""))
    except ValueError:
        return None


def _derive_merchant(body: str) -> str:
    """
    Pull a merchant name out of a debit-style message.

    "... debited ... to SWIGGY BANGALORE on 12-01" -> "SWIGGY BANGALORE on"
    """
    lowered = body.lower()
    if not any(keyword in lowered for keyword in SPEND_KEYWORDS):
        return DEFAULT_DESCRIPTION

    parts = MERCHANT_SPLIT_PATTERN.split(body, maxsplit=1)
    if len(parts) < 2:
        return DEFAULT_DESCRIPTION

    tokens = parts[1].split()[:MERCHANT_TOKEN_COUNT]
    merchant = " ".join(tokens)[:MAX_MERCHANT_LENGTH].strip()
    return merchant or DEFAULT_DESCRIPTION


class HeuristicTextExtractor:
    """
    Extracts an expense from bank SMS text using regexes.

    Type is always debit (the caller's default) and confidence is None.
    """

    def extract(self, body: str) -> Optional[ExtractionResult]:
        """
        Extract an expense from an SMS body.

        Returns None when no currency-marked amount is found, or the
        first one can't be parsed or is not above zero.
        """
        if not body or not isinstance(body, str):
            return None

        match = AMOUNT_PATTERN.search(body)
        if match is None:
            return None

        amount = _parse_amount(match.group(1))
        if amount is None or amount <= 0:
            return None

        return ExtractionResult(
            amount=amount,
            merchant=_derive_merchant(body),
            transaction_type=TransactionType.DEBIT,
            confidence=None,
        )

    def extract_all(self, bodies: Iterable[str]) -> list[ExtractionResult]:
        """
        Extract from many messages, skipping non-expense ones and
        dropping duplicates of the same (amount, merchant).

        Banks often send the same alert twice (SMS + notification).
        """
        seen: set[tuple[float, str]] = set()
        results = []

        for body in bodies:
            result = self.extract(body)
            if result is None:
                logger.debug("sms_skipped", preview=(body or "")[:40])
                continue

            key = (result.amount, result.merchant)
            if key in seen:
                continue
            seen.add(key)
            results.append(result)

        return results


def suggest_category(body: str, merchant: Optional[str] = None) -> str:
    """
    Suggest a category name from keywords in the message and merchant.

    This is a SUGGESTION only - the user picks the real category.
    """
    text = (body or "").lower()
    merchant_lower = (merchant or "").lower()

    best_match = None
    max_hits = 0
    for category, keywords in CATEGORY_KEYWORDS.items():
        hits = sum(
            1 for keyword in keywords
            if keyword in text or keyword in merchant_lower
        )
        if hits > max_hits:
            max_hits = hits
            best_match = category

    return best_match or DEFAULT_CATEGORY
