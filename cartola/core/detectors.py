"""
Layout and metadata detection: delimiter, header row, column roles, bank,
account number and statement period.
"""
import csv
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from .config import load_template
from .normalize import fold_accents
from ..models.schema import Transaction

logger = logging.getLogger(__name__)

DELIMITERS = [',', ';', '\t', '|']

HEADER_SCAN_LINES = 10

HEADER_KEYWORDS = [
    'fecha', 'date', 'dia',
    'descripcion', 'description', 'detalle', 'concepto',
    'monto', 'amount', 'valor', 'importe',
    'cargo', 'abono', 'debito', 'credito', 'debit', 'credit',
    'saldo', 'balance',
    'referencia', 'reference', 'ref',
]

ACCOUNT_PATTERNS = [
    re.compile(r'cuenta\s*[:nN°#]?\s*([\d\-]+)', re.IGNORECASE),
    re.compile(r'n[úu]mero\s*[:nN°#]?\s*([\d\-]+)', re.IGNORECASE),
    re.compile(r'account\s*[:nN°#]?\s*([\d\-]+)', re.IGNORECASE),
    re.compile(r'cta\s*[:nN°#]?\s*([\d\-]+)', re.IGNORECASE),
]

ACCOUNT_NOT_FOUND = "Cuenta no identificada"
PERIOD_NOT_FOUND = "Período no determinado"


def detect_delimiter(line: str) -> str:
    """
    Pick the most frequent of comma, semicolon, tab and pipe in a line.

    Args:
        line: First non-blank line of the document

    Returns:
        Delimiter character; comma on ties or when none occurs
    """
    best = DELIMITERS[0]
    best_count = 0

    for delimiter in DELIMITERS:
        count = (line or "").count(delimiter)
        if count > best_count:
            best = delimiter
            best_count = count

    logger.debug(f"Detected delimiter: {best!r} ({best_count} occurrences)")
    return best


def split_line(line: str, delimiter: str) -> List[str]:
    """Split a row on the delimiter, honouring double-quoted cells."""
    try:
        cells = next(csv.reader([line], delimiter=delimiter, quotechar='"'))
    except (csv.Error, StopIteration):
        cells = line.split(delimiter)

    return [cell.strip().strip('"').strip() for cell in cells]


def looks_like_header(cells: Sequence[str]) -> bool:
    """A row is a header when at least two cells contain a header keyword."""
    matches = 0
    for cell in cells:
        folded = fold_accents(cell)
        if any(keyword in folded for keyword in HEADER_KEYWORDS):
            matches += 1

    return matches >= 2


def find_header(lines: Sequence[str], delimiter: str) -> Tuple[int, List[str]]:
    """
    Look for a header row among the first lines.

    Args:
        lines: Non-blank document lines
        delimiter: Field delimiter

    Returns:
        (index, lower-cased header cells), or (-1, []) when there is no header
    """
    for index, line in enumerate(lines[:HEADER_SCAN_LINES]):
        cells = split_line(line, delimiter)
        if looks_like_header(cells):
            headers = [cell.lower().strip() for cell in cells]
            logger.debug(f"Found headers at row {index}: {headers}")
            return index, headers

    return -1, []


class ColumnMap:
    """Index of each semantic column in a structured statement (None if absent)."""

    ROLES = ('date', 'description', 'amount', 'debit', 'credit',
             'balance', 'reference', 'note', 'tax_id')

    def __init__(self, **roles: Optional[int]):
        for role in self.ROLES:
            setattr(self, role, roles.get(role))

    def as_dict(self) -> Dict[str, Optional[int]]:
        return {role: getattr(self, role) for role in self.ROLES}

    def __eq__(self, other):
        return isinstance(other, ColumnMap) and self.as_dict() == other.as_dict()

    def __repr__(self):
        mapped = {k: v for k, v in self.as_dict().items() if v is not None}
        return f"ColumnMap({mapped})"


def identify_columns(headers: Sequence[str], width: int = 0) -> ColumnMap:
    """
    Assign a role to each header cell.

    Specific headers win over generic ones: "nombre destino" over
    "descripcion", "monto $" over "monto", "id transferencia" over
    "referencia" and "mensaje destino" over "glosa".

    Args:
        headers: Header cells
        width: Cell count of the first line, used for the positional layout

    Returns:
        ColumnMap
    """
    columns = ColumnMap()

    if not headers:
        # Positional layout: date, description, amount[, balance]
        columns.date = 0
        columns.description = 1
        columns.amount = 2
        if width > 3:
            columns.balance = 3
        return columns

    for index, header in enumerate(headers):
        h = fold_accents(header)

        if 'fecha' in h or 'date' in h or 'dia' in h:
            if columns.date is None:
                columns.date = index
        elif 'rut' in h and ('origen' in h or 'destino' in h):
            columns.tax_id = index
        elif 'nombre' in h and ('destino' in h or 'origen' in h):
            columns.description = index
        elif columns.description is None and any(k in h for k in ('descripcion', 'description', 'detalle', 'concepto')):
            columns.description = index
        elif ('monto' in h and '$' in h) or 'amount' in h or 'valor' in h or 'importe' in h:
            columns.amount = index
        elif 'cargo' in h or 'debito' in h or 'debit' in h:
            columns.debit = index
        elif 'abono' in h or 'credito' in h or 'credit' in h:
            columns.credit = index
        elif columns.amount is None and 'monto' in h:
            columns.amount = index
        elif 'saldo' in h or 'balance' in h:
            columns.balance = index
        elif 'id' in h and 'transferencia' in h:
            columns.reference = index
        elif columns.reference is None and any(k in h for k in ('referencia', 'reference', 'ref')):
            columns.reference = index
        elif 'mensaje' in h and 'destino' in h:
            columns.note = index
        elif columns.note is None and any(k in h for k in ('mensaje', 'memo', 'glosa')):
            columns.note = index

    logger.debug(f"Column mapping: {columns}")
    return columns


class BankDetector:
    """Detects the issuing bank from aliases listed in banks.yaml."""

    def __init__(self, templates_dir: Path = None):
        self.templates_dir = templates_dir
        self.banks: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
        self.unidentified = "Banco no identificado"
        self._load_banks()

    def _load_banks(self):
        """Load the bank alias table."""
        data = load_template("banks", self.templates_dir)
        self.unidentified = data.get('unidentified', self.unidentified)

        banks = []
        for entry in data.get('banks', []):
            name = entry.get('name') if isinstance(entry, dict) else None
            aliases = entry.get('aliases', []) if isinstance(entry, dict) else []
            if not name:
                logger.warning(f"Skipping bank entry without name: {entry}")
                continue
            banks.append((name, tuple(alias.lower() for alias in aliases)))

        self.banks = tuple(banks)

    def detect(self, text: str) -> str:
        """
        Find the first bank whose alias occurs anywhere in the text.

        Args:
            text: Whole statement content

        Returns:
            Bank name, or the "not identified" sentinel
        """
        content = (text or "").lower()

        for name, aliases in self.banks:
            for alias in aliases:
                if alias in content:
                    logger.debug(f"Bank detected: {name} (alias '{alias}')")
                    return name

        return self.unidentified

    def list_banks(self) -> List[str]:
        return [name for name, _ in self.banks]


def extract_account_number(text: str) -> str:
    """
    Extract the account number and mask all but its last four digits.

    Args:
        text: Whole statement content

    Returns:
        "****1234" or the "not identified" sentinel
    """
    for pattern in ACCOUNT_PATTERNS:
        match = pattern.search(text or "")
        if match and match.group(1):
            digits = re.sub(r'\D', '', match.group(1))
            if len(digits) >= 4:
                return f"****{digits[-4:]}"

    return ACCOUNT_NOT_FOUND


def detect_period(transactions: Sequence[Transaction]) -> str:
    """
    Describe the months covered by the transactions.

    Args:
        transactions: Parsed transactions

    Returns:
        "MM/YYYY" for a single month, "MM/YYYY - MM/YYYY" otherwise
    """
    if not transactions:
        return PERIOD_NOT_FOUND

    dates = sorted(t.date for t in transactions)
    first, last = dates[0], dates[-1]

    if (first.year, first.month) == (last.year, last.month):
        return f"{first.month:02d}/{first.year}"

    return f"{first.month:02d}/{first.year} - {last.month:02d}/{last.year}"


def describe_layout(text: str) -> Dict[str, Any]:
    """Summary of what the detectors see in a document, for CLI/debug output."""
    lines = [line for line in (text or "").splitlines() if line.strip()]
    delimiter = detect_delimiter(lines[0]) if lines else ','
    header_index, headers = find_header(lines, delimiter)

    return {
        'lines': len(lines),
        'delimiter': delimiter,
        'header_row': header_index,
        'headers': headers,
        'columns': identify_columns(headers, len(split_line(lines[0], delimiter)) if lines else 0).as_dict(),
    }
