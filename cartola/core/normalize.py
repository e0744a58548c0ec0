"""
Date, amount, RUT and text normalization for bank-statement rows.
"""
import re
import unicodedata
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple
import logging

from ..models.schema import AmountConvention, Direction, DEFAULT_DESCRIPTION

logger = logging.getLogger(__name__)


SPANISH_MONTHS = {
    'ene': 1, 'feb': 2, 'mar': 3, 'abr': 4, 'may': 5, 'jun': 6,
    'jul': 7, 'ago': 8, 'sep': 9, 'set': 9, 'oct': 10, 'nov': 11, 'dic': 12,
}

# Tried in order; the first match that validates wins.
DATE_PATTERNS = [
    ('dmy', re.compile(r'(?<!\d)(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})(?!\d)')),
    ('ymd', re.compile(r'(?<!\d)(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})(?!\d)')),
    ('dmy', re.compile(r'(?<!\d)(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2})(?!\d)')),
    ('d_month_y', re.compile(
        r'(?<!\d)(\d{1,2})\s+(?:de\s+)?'
        r'(ene|feb|mar|abr|may|jun|jul|ago|sep|set|oct|nov|dic)[a-záéíóú]*\.?'
        r'\s+(?:de(?:l)?\s+)?(\d{4})(?!\d)',
        re.IGNORECASE,
    )),
]

CURRENCY_RE = re.compile(r'[$€£¥₡\s]|CLP|USD|UF', re.IGNORECASE)

# A monetary token inside free text: "$45.990", "1.234,56", "-50000".
AMOUNT_RE = re.compile(
    r'(?<![\w.,])-?\$?\s?-?(?:\d{1,3}(?:[.,]\d{3})+(?:[.,]\d{1,2})?|\d+(?:[.,]\d{1,2})?)(?!\w)'
)

# A table cell that holds nothing but an amount.
AMOUNT_CELL_RE = re.compile(
    r'\(?\s*[-+]?\s*(?:\$|CLP|USD)?\s*[-+]?\d[\d.,]*\s*\)?-?',
    re.IGNORECASE,
)

RUT_PATTERNS = [
    re.compile(r'RUT\s*:*\s*(\d{1,2}\.\d{3}\.\d{3}-[\dkK])', re.IGNORECASE),
    re.compile(r'RUT\s*:*\s*(\d{7,8}-[\dkK])', re.IGNORECASE),
    re.compile(r'\b(\d{1,2}\.\d{3}\.\d{3}-[\dkK])\b'),
    re.compile(r'\b(\d{7,8}-[\dkK])\b'),
]

RUT_LABEL_RE = re.compile(
    r'(?:RUT\s*:*\s*)?\b\d{1,2}\.?\d{3}\.?\d{3}-[\dkK]\b', re.IGNORECASE
)

CREDIT_KEYWORDS = [
    'abono', 'deposito', 'transferencia recibida', 'ingreso',
    'credito', 'pago recibido', 'reembolso', 'devolucion',
]

DEBIT_KEYWORDS = [
    'cargo', 'pago', 'compra', 'giro', 'retiro',
    'debito', 'transferencia enviada', 'comision', 'mantencion',
]


def fold_accents(value: str) -> str:
    """Lower-case and strip diacritics ("Descripción" -> "descripcion")."""
    decomposed = unicodedata.normalize('NFKD', value or "")
    return ''.join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


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


def match_date(text: str) -> Optional[Tuple[date, str]]:
    """
    Find the first supported date in a piece of text.

    Args:
        text: Cell, line or group of lines

    Returns:
        (date, matched substring) or None if no candidate validates
    """
    if not text:
        return None

    for kind, pattern in DATE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue

        if kind == 'ymd':
            year, month, day = int(match.group(1)), int(match.group(2)), int(match.group(3))
        elif kind == 'd_month_y':
            day = int(match.group(1))
            month = SPANISH_MONTHS.get(match.group(2).lower()[:3], 0)
            year = int(match.group(3))
        else:
            day, month, year = int(match.group(1)), int(match.group(2)), int(match.group(3))

        if year < 100:
            year += 2000 if year < 50 else 1900

        if 1900 <= year <= 2100 and 1 <= month <= 12 and 1 <= day <= 31:
            try:
                return date(year, month, day), match.group(0)
            except ValueError:
                # 31/02 -> last day of February
                for last_day in (30, 29, 28):
                    try:
                        return date(year, month, last_day), match.group(0)
                    except ValueError:
                        continue

    return None


def parse_date(text: str) -> Optional[date]:
    """
    Parse the first supported date in text.

    Supports DD/MM/YYYY (separators / - .), YYYY-MM-DD, DD/MM/YY and
    "DD <mes> YYYY" with Spanish month names or abbreviations.

    Args:
        text: Raw text

    Returns:
        Date object or None
    """
    found = match_date(text)
    return found[0] if found else None


def parse_amount(value: str, convention: AmountConvention = AmountConvention.LATAM) -> Decimal:
    """
    Parse a money value into a signed Decimal.

    Args:
        value: Raw money string ("$ -1.234.567", "(50.000)", "1,234.50")
        convention: Separator convention of the source

    Returns:
        Decimal value, or 0 when nothing numeric is found
    """
    if value is None or not str(value).strip():
        return Decimal('0')

    cleaned = CURRENCY_RE.sub('', str(value).strip())

    # Parentheses or a trailing minus mark negative amounts
    is_negative = cleaned.startswith('(') and cleaned.endswith(')')
    if is_negative:
        cleaned = cleaned[1:-1]
    if cleaned.endswith('-') and len(cleaned) > 1:
        is_negative = True
        cleaned = cleaned[:-1]

    if convention == AmountConvention.LATAM:
        cleaned = cleaned.replace('.', '').replace(',', '.')
    else:
        cleaned = cleaned.replace(',', '')

    match = re.search(r'-?\d+(?:\.\d+)?', cleaned)
    if not match:
        logger.debug(f"Could not extract numeric value from: {value}")
        return Decimal('0')

    try:
        amount = Decimal(match.group())
    except InvalidOperation:
        return Decimal('0')

    if is_negative:
        amount = -abs(amount)

    return amount


def is_amount_cell(value: str) -> bool:
    """True when a table cell holds only a monetary amount."""
    if not value or not value.strip():
        return False
    return AMOUNT_CELL_RE.fullmatch(value.strip()) is not None


def is_text_cell(value: str) -> bool:
    """True when a cell carries words once any date in it is removed."""
    if not value or is_amount_cell(value):
        return False

    found = match_date(value)
    remainder = value.replace(found[1], ' ') if found else value
    return re.search(r'[^\W\d_]', remainder) is not None


def extract_amounts(text: str, convention: AmountConvention = AmountConvention.LATAM) -> List[Decimal]:
    """
    Extract all positive monetary amounts from free text, in order.

    Dates and RUTs are removed first so their digits are not read as money.

    Args:
        text: Line or group of lines
        convention: Separator convention of the source

    Returns:
        List of absolute amounts (zeros dropped)
    """
    if not text:
        return []

    remainder = _remove_dates(text)
    remainder = RUT_LABEL_RE.sub(' ', remainder)

    amounts = []
    for match in AMOUNT_RE.finditer(remainder):
        amount = abs(parse_amount(match.group(0), convention))
        if amount > 0:
            amounts.append(amount)

    return amounts


def detect_direction(text: str) -> Direction:
    """
    Classify a movement by keywords; credit keywords are checked first.

    Args:
        text: Description or full line

    Returns:
        Direction, defaulting to debit when nothing matches
    """
    folded = fold_accents(text)

    for keyword in CREDIT_KEYWORDS:
        if keyword in folded:
            return Direction.CREDIT

    for keyword in DEBIT_KEYWORDS:
        if keyword in folded:
            return Direction.DEBIT

    return Direction.DEBIT


def strip_description(text: str) -> str:
    """
    Build a description from a free-text line by removing dates, RUTs and amounts.

    Args:
        text: Raw line

    Returns:
        Cleaned description or the default placeholder
    """
    description = _remove_dates(text or "")
    description = RUT_LABEL_RE.sub(' ', description)
    description = AMOUNT_RE.sub(' ', description)
    description = normalize_text(description).strip(' -|;,:')

    return description or DEFAULT_DESCRIPTION


def _remove_dates(text: str) -> str:
    for _, pattern in DATE_PATTERNS:
        text = pattern.sub(' ', text)
    return text


def extract_rut(text: str) -> Optional[str]:
    """
    Find a RUT in free text ("RUT: 12.345.678-9", "12345678-K").

    Args:
        text: Description or line

    Returns:
        Normalized RUT or None
    """
    if not text:
        return None

    for pattern in RUT_PATTERNS:
        match = pattern.search(text)
        if match:
            return normalize_rut(match.group(1))

    return None


def normalize_rut(value: str) -> Optional[str]:
    """
    Normalize a RUT to "12345678-9": thousands dots removed, hyphen and
    check digit kept.

    Args:
        value: Raw RUT cell or match

    Returns:
        Normalized RUT or None when the value holds no RUT
    """
    if not value:
        return None

    cleaned = value.strip()
    if not cleaned or cleaned == '-':
        return None

    if re.fullmatch(r'\d{1,2}\.\d{3}\.\d{3}-[\dkK]', cleaned) or re.fullmatch(r'\d{7,8}-[\dkK]', cleaned):
        return cleaned.replace('.', '').upper()

    match = re.search(r'(\d{1,2}\.?\d{3}\.?\d{3})-?([\dkK])\b', cleaned)
    if match:
        return f"{match.group(1).replace('.', '')}-{match.group(2).upper()}"

    return None


def rut_number(rut: str) -> Optional[int]:
    """Numeric body of a RUT without its check digit."""
    if not rut:
        return None

    body = rut.split('-')[0] if '-' in rut else rut[:-1]
    digits = re.sub(r'\D', '', body)
    return int(digits) if digits else None


def is_valid_rut(rut: str) -> bool:
    """Check the modulo-11 verification digit of a normalized RUT."""
    number = rut_number(rut)
    if number is None or '-' not in rut:
        return False

    total = 0
    factor = 2
    for digit in reversed(str(number)):
        total += int(digit) * factor
        factor = 2 if factor == 7 else factor + 1

    remainder = 11 - (total % 11)
    expected = {11: '0', 10: 'K'}.get(remainder, str(remainder))
    return rut.split('-')[1].upper() == expected
