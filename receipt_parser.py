"""
receipt_parser.py
-----------------
Turn raw OCR / PDF text into a best-guess transaction draft.

``interpret`` never fails: text without any usable signal simply yields
the default fields.  The guesses are deliberately simple (largest number
is the total, first line is the merchant) and the user is expected to
review them before a transaction is saved.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, asdict
from typing import List, Optional

# Optional dollar sign, digits, optional decimal point and fraction.
AMOUNT_RE = re.compile(r"\$?(\d+\.?\d*)", re.ASCII)

# MM/DD/YYYY or YYYY-MM-DD
STATEMENT_DATE_RE = re.compile(r"(\d{1,2}/\d{1,2}/\d{4}|\d{4}-\d{2}-\d{2})", re.ASCII)

DEFAULT_CATEGORY = "Other"

# Characters trimmed from line ends: ASCII whitespace, Unicode space
# separators, line/paragraph separators and the byte order mark.
WHITESPACE = (
    " \t\n\r\x0b\x0c\xa0\u1680\u2000\u2001\u2002\u2003\u2004\u2005\u2006"
    "\u2007\u2008\u2009\u200a\u2028\u2029\u202f\u205f\u3000\ufeff"
)

# Evaluated in order, first hit wins.
CATEGORY_KEYWORDS = [
    (("restaurant", "food", "cafe"), "Food"),
    (("gas", "fuel", "uber"), "Transportation"),
    (("pharmacy", "medical"), "Healthcare"),
    (("store", "shop"), "Shopping"),
]


@dataclass(frozen=True)
class ExtractedReceiptData:
    """Fields guessed from a receipt."""
    amount: Optional[float] = None
    description: str = ""
    category: str = DEFAULT_CATEGORY

    def to_dict(self):
        return asdict(self)


def find_amount(text: str) -> Optional[float]:
    """Largest number in the text, assumed to be the grand total."""
    values = [float(m) for m in AMOUNT_RE.findall(text)]
    if not values:
        return None
    return max(values)


def split_lines(text: str) -> List[str]:
    """Split on \\n, \\r\\n or \\r only; other control characters stay in the line."""
    return text.replace("\r\n", "\n").replace("\r", "\n").split("\n")


def first_line(text: str) -> str:
    for line in split_lines(text):
        line = line.strip(WHITESPACE)
        if line:
            return line
    return ""


def classify(text: str) -> str:
    lowered = text.lower()
    for keywords, category in CATEGORY_KEYWORDS:
        if any(k in lowered for k in keywords):
            return category
    return DEFAULT_CATEGORY


def interpret(text: str) -> ExtractedReceiptData:
    """Guess amount, description and category from receipt text."""
    text = text or ""
    return ExtractedReceiptData(
        amount=find_amount(text),
        description=first_line(text),
        category=classify(text),
    )


def parse_transaction_history(text: str) -> List[dict]:
    """
    Pull candidate transactions out of a bank statement's text.

    Only lines carrying both a date and an amount are kept.  The amount is
    the first number on the line, which can be part of the date itself;
    the results are meant for review, not for direct import.
    """
    transactions = []
    for line in split_lines(text or ""):
        line = line.strip(WHITESPACE)
        if not line:
            continue

        date_match = STATEMENT_DATE_RE.search(line)
        amount_match = AMOUNT_RE.search(line)
        if not (date_match and amount_match):
            continue

        description = line.split(amount_match.group(0), 1)[0].strip(WHITESPACE)
        transactions.append({
            "date": date_match.group(1),
            "amount": float(amount_match.group(1)),
            "description": description,
            "type": "expense",
            "category": DEFAULT_CATEGORY,
        })
    return transactions
