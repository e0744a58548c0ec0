"""
Cartola: Chilean bank statement parser

Turns bank statements ("cartolas") exported as CSV, TSV, plain text or PDF
into typed transactions with bank/account/period metadata, counterparty
enrichment from the RCV entity registry and suggested journal entries.
"""

__version__ = "1.0.0"
__author__ = "Cartola Team"

from .core.runner import StatementParser, parse_statement, parse_statement_async
from .core.detectors import BankDetector
from .core.enrich import Enricher, EntityRegistry, HttpEntityRegistry, StaticEntityRegistry
from .core.accounting import AccountingPolicy
from .core.config import Settings
from .core.loader import StatementLoadError, load_statement_text
from .core.insights import analyze_statement
from .core.journal import build_journal_drafts
from .core.mapping import AccountMapper, map_account, map_accounts
from .models.schema import (
    AccountingSuggestion,
    BankAnalysis,
    Direction,
    EntityInfo,
    EntityKind,
    EntryCategory,
    ParseResult,
    Transaction,
)

__all__ = [
    "StatementParser",
    "parse_statement",
    "parse_statement_async",
    "BankDetector",
    "Enricher",
    "EntityRegistry",
    "HttpEntityRegistry",
    "StaticEntityRegistry",
    "AccountingPolicy",
    "Settings",
    "StatementLoadError",
    "load_statement_text",
    "analyze_statement",
    "build_journal_drafts",
    "AccountMapper",
    "map_account",
    "map_accounts",
    "AccountingSuggestion",
    "BankAnalysis",
    "Direction",
    "EntityInfo",
    "EntityKind",
    "EntryCategory",
    "ParseResult",
    "Transaction",
]
