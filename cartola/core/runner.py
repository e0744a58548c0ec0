"""
End-to-end parsing orchestration.
"""
import asyncio
from decimal import Decimal
from pathlib import Path
from typing import Optional, Union
import logging

from .accounting import AccountingPolicy
from .config import Settings
from .detectors import BankDetector, detect_period, extract_account_number
from .enrich import Enricher, EntityRegistry, HttpEntityRegistry
from .loader import load_statement_text
from .strategies import run_strategies
from ..models.schema import Direction, ParseResult

logger = logging.getLogger(__name__)


class StatementParser:
    """Main parser class that orchestrates detection, extraction and enrichment."""

    def __init__(self, settings: Optional[Settings] = None,
                 registry: Optional[EntityRegistry] = None,
                 policy: Optional[AccountingPolicy] = None):
        self.settings = settings or Settings()

        if registry is None and self.settings.registry_url:
            registry = HttpEntityRegistry(self.settings.registry_url, self.settings.lookup_timeout)
        self.registry = registry

        self.policy = policy or AccountingPolicy.load(self.settings.templates_dir)
        self.bank_detector = BankDetector(self.settings.templates_dir)

    async def parse_async(self, content: str, company_id: Optional[str] = None) -> ParseResult:
        """
        Parse statement text into transactions with metadata and totals.

        Args:
            content: Whole statement text (CSV, TSV, or text extracted from a PDF)
            company_id: Company used for counterparty lookups

        Returns:
            ParseResult
        """
        content = content or ""
        lines = [line.strip() for line in content.splitlines() if line.strip()]
        logger.info(f"Parsing statement with {len(lines)} non-blank lines")

        tier = run_strategies(lines, self.settings.amount_convention)

        enricher = Enricher(
            self.registry,
            self.policy,
            max_concurrency=self.settings.max_concurrency,
            timeout=self.settings.lookup_timeout,
        )
        transactions = await enricher.enrich(tier.transactions, company_id)

        total_credits = sum(
            (t.amount for t in transactions if t.direction == Direction.CREDIT), Decimal('0')
        )
        total_debits = sum(
            (t.amount for t in transactions if t.direction == Direction.DEBIT), Decimal('0')
        )

        result = ParseResult(
            transactions=transactions,
            bank=self.bank_detector.detect(content),
            account=extract_account_number(content),
            period=detect_period(transactions),
            total_credits=total_credits,
            total_debits=total_debits,
            confidence=tier.confidence,
            strategy=tier.strategy,
        )

        logger.info(
            f"Parsed {len(transactions)} transactions from {result.bank} "
            f"using {tier.strategy} strategy (confidence: {tier.confidence}%)"
        )
        return result

    def parse(self, content: str, company_id: Optional[str] = None) -> ParseResult:
        return asyncio.run(self.parse_async(content, company_id))

    def parse_file(self, path: Union[str, Path], company_id: Optional[str] = None) -> ParseResult:
        """Load a CSV/TXT/PDF file and parse its text."""
        return self.parse(load_statement_text(Path(path)), company_id)


async def parse_statement_async(content: str, company_id: Optional[str] = None,
                                registry: Optional[EntityRegistry] = None,
                                settings: Optional[Settings] = None) -> ParseResult:
    parser = StatementParser(settings, registry)
    return await parser.parse_async(content, company_id)


def parse_statement(content: str, company_id: Optional[str] = None,
                    registry: Optional[EntityRegistry] = None,
                    settings: Optional[Settings] = None) -> ParseResult:
    """
    Parse a Chilean bank statement.

    Args:
        content: Statement text
        company_id: Company used for counterparty lookups
        registry: Entity registry; built from settings.registry_url when omitted
        settings: Parser settings

    Returns:
        ParseResult object
    """
    parser = StatementParser(settings, registry)
    return parser.parse(content, company_id)
