"""
Three-tier transaction extraction: structured columns, per-line patterns,
and grouped-line heuristics.
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Union
import logging

from .detectors import (
    DELIMITERS,
    ColumnMap,
    detect_delimiter,
    find_header,
    identify_columns,
    split_line,
)
from .normalize import (
    detect_direction,
    extract_amounts,
    extract_rut,
    is_amount_cell,
    is_text_cell,
    normalize_rut,
    parse_amount,
    parse_date,
    match_date,
    strip_description,
)
from ..models.schema import AmountConvention, Direction, Transaction, DEFAULT_DESCRIPTION

logger = logging.getLogger(__name__)

MIN_PATTERN_LINE_LENGTH = 10
MIN_POSITIONAL_CELLS = 3


class Matched:
    """A row that produced a transaction."""
    def __init__(self, transaction: Transaction):
        self.transaction = transaction

    def __repr__(self):
        return f"Matched({self.transaction.date}, {self.transaction.amount})"


class NoMatch:
    """A row that was skipped, with the reason."""
    def __init__(self, reason: str):
        self.reason = reason

    def __repr__(self):
        return f"NoMatch({self.reason!r})"


RowResult = Union[Matched, NoMatch]


class TierResult:
    """Transactions produced by one strategy and the confidence it earns."""
    def __init__(self, strategy: str, transactions: List[Transaction], confidence: int):
        self.strategy = strategy
        self.transactions = transactions
        self.confidence = confidence

    def __repr__(self):
        return f"TierResult({self.strategy}, {len(self.transactions)} transactions, confidence={self.confidence})"


class BaseStrategy(ABC):
    """Extraction strategy over the non-blank lines of a statement."""

    name: str = "base"

    def __init__(self, convention: AmountConvention = AmountConvention.LATAM):
        self.convention = convention

    @abstractmethod
    def parse(self, lines: Sequence[str]) -> TierResult:
        """Extract transactions from the document lines."""

    def parse_text(self, text: str) -> RowResult:
        """
        Build a transaction from free text: a date, at least one amount,
        keyword-based direction and the remaining words as description.
        """
        if not match_date(text):
            return NoMatch("no date")

        amounts = extract_amounts(text, self.convention)
        if not amounts:
            return NoMatch("no amount")

        try:
            transaction = Transaction(
                date=parse_date(text),
                description=strip_description(text),
                amount=amounts[0],
                direction=detect_direction(text),
                counterparty_tax_id=extract_rut(text),
            )
        except ValueError as e:
            return NoMatch(str(e))

        return Matched(transaction)


class StructuredStrategy(BaseStrategy):
    """Delimited rows (CSV/TSV/pipe), with or without a header row."""

    name = "structured"
    HEADER_CONFIDENCE = 90
    POSITIONAL_CONFIDENCE = 70

    def parse(self, lines: Sequence[str]) -> TierResult:
        if not lines:
            return TierResult(self.name, [], 0)

        sample = next((line for line in lines if any(d in line for d in DELIMITERS)), lines[0])
        delimiter = detect_delimiter(sample)

        header_index, headers = find_header(lines, delimiter)
        if header_index >= 0:
            rows = [split_line(line, delimiter) for line in lines[header_index + 1:]]
            columns = identify_columns(headers)
        else:
            rows = self.positional_rows(lines, delimiter)
            if not rows:
                logger.debug("No delimiter-consistent rows, structured parsing skipped")
                return TierResult(self.name, [], 0)
            columns = identify_columns([], len(rows[0]))

        transactions = []
        for cells in rows:
            result = self.parse_row(cells, columns)
            if isinstance(result, Matched):
                transactions.append(result.transaction)
            else:
                logger.debug(f"Structured row skipped ({result.reason}): {delimiter.join(cells)[:80]}")

        if not transactions:
            confidence = 0
        elif header_index >= 0:
            confidence = self.HEADER_CONFIDENCE
        else:
            confidence = self.POSITIONAL_CONFIDENCE

        logger.info(f"Structured parsing found {len(transactions)} transactions (confidence: {confidence}%)")
        return TierResult(self.name, transactions, confidence)

    @staticmethod
    def positional_rows(lines: Sequence[str], delimiter: str) -> List[List[str]]:
        """
        Rows of a headerless table, or an empty list when the lines do not
        form one.

        Candidate rows are the delimited lines whose first cell holds a date.
        All of them must share the width of the first, have at least date,
        description and amount cells, and hold an amount in the amount position.
        """
        rows = [split_line(line, delimiter) for line in lines]
        rows = [cells for cells in rows if len(cells) > 1 and parse_date(cells[0])]
        if not rows or len(rows[0]) < MIN_POSITIONAL_CELLS:
            return []

        width = len(rows[0])
        amount_index = identify_columns([], width).amount
        for cells in rows:
            if len(cells) != width or not is_amount_cell(cells[amount_index]):
                return []

        return rows

    def parse_row(self, cells: Sequence[str], columns: ColumnMap) -> RowResult:
        """
        Convert one delimited row into a transaction.

        Args:
            cells: Row cells
            columns: Column roles

        Returns:
            Matched with the transaction, or NoMatch with the reason
        """
        if len(cells) < 2:
            return NoMatch("single cell")

        try:
            return self._parse_row(cells, columns)
        except (ValueError, ArithmeticError) as e:
            return NoMatch(f"invalid row: {e}")

    def _parse_row(self, cells: Sequence[str], columns: ColumnMap) -> RowResult:
        # Date: mapped column, else the first cell holding one
        date_cell = _cell(cells, columns.date)
        if date_cell:
            tx_date = parse_date(date_cell)
        else:
            tx_date = next((d for d in (parse_date(c) for c in cells) if d), None)
        if not tx_date:
            return NoMatch("no date")

        # Description: mapped column, else the longest text cell
        description = _cell(cells, columns.description)
        if not description:
            text_cells = [c for c in cells if is_text_cell(c)]
            description = max(text_cells, key=len) if text_cells else DEFAULT_DESCRIPTION

        amount, direction = self._extract_amount(cells, columns)
        if not amount:
            return NoMatch("no amount")

        balance_cell = _cell(cells, columns.balance)
        balance = parse_amount(balance_cell, self.convention) if balance_cell else None

        tax_id = normalize_rut(_cell(cells, columns.tax_id))
        if not tax_id:
            tax_id = extract_rut(description)

        transaction = Transaction(
            date=tx_date,
            description=description,
            amount=amount,
            direction=direction,
            balance=balance,
            reference=_cell(cells, columns.reference) or None,
            note=_cell(cells, columns.note) or None,
            counterparty_tax_id=tax_id,
        )
        return Matched(transaction)

    def _extract_amount(self, cells: Sequence[str], columns: ColumnMap):
        # Paired debit/credit columns
        if columns.debit is not None and columns.credit is not None:
            debit = abs(parse_amount(_cell(cells, columns.debit), self.convention))
            credit = abs(parse_amount(_cell(cells, columns.credit), self.convention))
            if debit > 0:
                return debit, Direction.DEBIT
            if credit > 0:
                return credit, Direction.CREDIT
            return None, Direction.DEBIT

        # Single signed amount column
        amount_cell = _cell(cells, columns.amount)
        if amount_cell:
            raw = parse_amount(amount_cell, self.convention)
            return abs(raw), Direction.CREDIT if raw >= 0 else Direction.DEBIT

        # First non-zero numeric cell
        for cell in cells:
            if not is_amount_cell(cell):
                continue
            raw = parse_amount(cell, self.convention)
            if raw != 0:
                return abs(raw), Direction.CREDIT if raw > 0 else Direction.DEBIT

        return None, Direction.DEBIT


class PatternStrategy(BaseStrategy):
    """One transaction per free-text line holding a date and an amount."""

    name = "pattern"
    CONFIDENCE = 60

    def parse(self, lines: Sequence[str]) -> TierResult:
        transactions = []

        for line in lines:
            if len(line.strip()) < MIN_PATTERN_LINE_LENGTH:
                continue

            result = self.parse_text(line)
            if isinstance(result, Matched):
                transactions.append(result.transaction)

        confidence = self.CONFIDENCE if transactions else 0
        logger.info(f"Pattern parsing found {len(transactions)} transactions (confidence: {confidence}%)")
        return TierResult(self.name, transactions, confidence)


class HeuristicStrategy(BaseStrategy):
    """Transactions spread over several lines, each starting at a dated line."""

    name = "heuristic"
    CONFIDENCE = 40
    FALLBACK_CONFIDENCE = 20

    def parse(self, lines: Sequence[str]) -> TierResult:
        transactions = []

        for group in self.group_lines(lines):
            result = self.parse_text(' '.join(group))
            if isinstance(result, Matched):
                transactions.append(result.transaction)

        confidence = self.CONFIDENCE if transactions else self.FALLBACK_CONFIDENCE
        logger.info(f"Heuristic parsing found {len(transactions)} transactions (confidence: {confidence}%)")
        return TierResult(self.name, transactions, confidence)

    @staticmethod
    def group_lines(lines: Sequence[str]) -> List[List[str]]:
        """Group each dated line with the undated lines that follow it."""
        groups = []
        current: List[str] = []

        for line in lines:
            if parse_date(line):
                if current:
                    groups.append(current)
                current = [line]
            elif current:
                current.append(line)

        if current:
            groups.append(current)

        return groups


def run_strategies(lines: Sequence[str],
                   convention: AmountConvention = AmountConvention.LATAM) -> TierResult:
    """
    Apply the strategies in order and stop at the first one that yields
    transactions. The heuristic tier always returns, even when empty.

    Args:
        lines: Non-blank document lines
        convention: Amount separator convention

    Returns:
        TierResult of the winning strategy
    """
    strategies = [
        StructuredStrategy(convention),
        PatternStrategy(convention),
        HeuristicStrategy(convention),
    ]

    result = None
    for strategy in strategies:
        result = strategy.parse(lines)
        if result.transactions:
            return result

    return result


def _cell(cells: Sequence[str], index: Optional[int]) -> str:
    if index is None or index >= len(cells):
        return ""
    return (cells[index] or "").strip()
