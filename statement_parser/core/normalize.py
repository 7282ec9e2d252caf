"""
Data normalization and cleaning functions.
"""
import re
from datetime import datetime, date
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence
import logging

logger = logging.getLogger(__name__)

# Matches a money token: optional sign/parentheses, optional currency symbol,
# digits with thousands separators, two decimals, optional CR/DR suffix.
AMOUNT_PATTERN = r"\(?-?(?:[A-Z]{1,2}\$|[$€£])?\s?\d[\d,]*\.\d{2}\)?(?:\s?(?:CR|DR|Cr|Dr))?"

PLACEHOLDER_TOKENS = {"", "-", "--", "—", "–", "nil"}

CURRENCY_SYMBOLS = {
    "AUD": ("AU$", "A$", "$"),
    "NZD": ("NZ$", "$"),
    "USD": ("US$", "$"),
    "SGD": ("S$", "$"),
    "GBP": ("£",),
    "EUR": ("€",),
}

COMMON_DATE_FORMATS = [
    "%d/%m/%Y", "%d-%m-%Y", "%Y-%m-%d",
    "%d %b %Y", "%d %B %Y", "%d/%m/%y",
]


def money_direction(value: str) -> Optional[str]:
    """Return "CR" or "DR" when the token carries a suffix marker."""
    if not value:
        return None
    match = re.search(r'(CR|DR)\s*$', value.strip(), flags=re.IGNORECASE)
    return match.group(1).upper() if match else None


def is_placeholder(value: Optional[str]) -> bool:
    return value is None or value.strip().lower() in PLACEHOLDER_TOKENS


def normalize_money(value: str, currency: str = "AUD") -> Optional[Decimal]:
    """
    Normalize money values by removing symbols, separators and handling CR/DR.

    Args:
        value: Raw money string
        currency: Statement currency, selects which symbols are stripped

    Returns:
        Decimal value (CR positive, DR / parentheses / minus negative),
        or None if the token holds no number
    """
    if is_placeholder(value):
        return None

    cleaned = value.strip()
    direction = money_direction(cleaned)
    if direction:
        cleaned = re.sub(r'(CR|DR)\s*$', '', cleaned, flags=re.IGNORECASE)

    for symbol in CURRENCY_SYMBOLS.get(currency.upper(), ("$",)):
        cleaned = cleaned.replace(symbol, '')

    # Remove thousands separators and spaces
    cleaned = re.sub(r'[,\s]', '', cleaned)

    is_negative = cleaned.startswith('(') and cleaned.endswith(')')
    if is_negative:
        cleaned = cleaned[1:-1]

    match = re.fullmatch(r'-?\d+(?:\.\d+)?', cleaned)
    if not match:
        logger.debug(f"Could not extract numeric value from: {value}")
        return None

    try:
        amount = Decimal(match.group())
    except InvalidOperation:
        logger.debug(f"Invalid decimal: {value}")
        return None

    if direction == "CR":
        return abs(amount)
    if direction == "DR" or is_negative:
        return -abs(amount)
    return amount


def normalize_date(value: str, formats: Sequence[str],
                   statement_year: Optional[int] = None) -> Optional[date]:
    """
    Parse a date string against an ordered list of formats.

    The first format that yields a valid calendar date wins. Formats
    without a year take ``statement_year`` (current year when unknown).

    Args:
        value: Raw date string
        formats: strptime formats, most preferred first
        statement_year: Year to use if not specified in date

    Returns:
        Date object or None if parsing fails
    """
    if not value or not value.strip():
        return None

    cleaned = normalize_text(value)

    for format_str in formats:
        has_year = '%Y' in format_str or '%y' in format_str
        try:
            if has_year:
                return datetime.strptime(cleaned, format_str).date()
            year = statement_year or date.today().year
            # Parse with the year attached so 29 Feb resolves in leap years
            return datetime.strptime(f"{cleaned} {year}", f"{format_str} %Y").date()
        except ValueError:
            continue

    logger.debug(f"Could not parse date: {value}")
    return None


def normalize_text(value: str) -> str:
    """
    Normalize text by trimming and collapsing whitespace.

    Args:
        value: Raw text string

    Returns:
        Cleaned text string
    """
    if not value:
        return ""

    return re.sub(r'\s+', ' ', value.strip())


def normalize_description(value: str) -> str:
    """Lower-case, whitespace-collapsed form used for matching."""
    return normalize_text(value).lower()


def clean_description(description: str) -> str:
    """
    Clean a transaction description for display and comparison.

    Collapses whitespace, drops 4-digit card-ending tokens and squashes
    runs of asterisks.

    Args:
        description: Raw description

    Returns:
        Cleaned description
    """
    if not description:
        return ""

    cleaned = re.sub(r'(?<![\w.])\d{4}(?![\w.])', ' ', description)
    cleaned = re.sub(r'\*+', '*', cleaned)

    return normalize_text(cleaned)


def normalize_account_number(value: str) -> str:
    return re.sub(r'[\s-]', '', value or '')
