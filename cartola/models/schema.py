"""
Pydantic models for parsed Chilean bank statements ("cartolas").
"""
import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_DESCRIPTION = "Transacción"


class Direction(str, Enum):
    """Money leaving (debit) or arriving (credit) at the account."""
    DEBIT = "debit"
    CREDIT = "credit"


class EntryCategory(str, Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"
    PAYROLL = "payroll"
    OTHER = "other"


class EntityKind(str, Enum):
    SUPPLIER = "supplier"
    CUSTOMER = "customer"
    BOTH = "both"


class AmountConvention(str, Enum):
    """Thousands/decimal separator convention used by a statement source."""
    LATAM = "latam"        # 1.234.567,89
    ENGLISH = "english"    # 1,234,567.89


class EntityInfo(BaseModel):
    """Counterparty record resolved from the RCV entity registry."""
    kind: Optional[EntityKind] = None
    name: Optional[str] = None
    account_code: Optional[str] = None


class AccountingSuggestion(BaseModel):
    """Double-entry pair suggested for one bank movement."""
    debit_account_code: str
    debit_account_name: str
    credit_account_code: str
    credit_account_name: str
    amount: Decimal
    description: str
    category: EntryCategory


class Transaction(BaseModel):
    """Individual bank-statement movement."""
    date: datetime.date
    description: str = DEFAULT_DESCRIPTION
    amount: Decimal
    direction: Direction
    balance: Optional[Decimal] = None
    reference: Optional[str] = None
    counterparty_tax_id: Optional[str] = None
    note: Optional[str] = None
    suggested_entry: Optional[AccountingSuggestion] = None
    counterparty_info: Optional[EntityInfo] = None

    @field_validator('description')
    @classmethod
    def default_description(cls, v):
        v = (v or "").strip()
        return v or DEFAULT_DESCRIPTION

    @field_validator('amount')
    @classmethod
    def positive_amount(cls, v):
        if v <= 0:
            raise ValueError(f"Transaction amount must be positive, got {v}")
        return v


class ParseResult(BaseModel):
    """Complete result of parsing one statement file."""
    model_config = ConfigDict(frozen=True)

    transactions: List[Transaction]
    bank: str
    account: str
    period: str
    total_credits: Decimal = Decimal('0')
    total_debits: Decimal = Decimal('0')
    confidence: int = Field(ge=0, le=100)
    strategy: str = "none"

    @model_validator(mode='after')
    def validate_totals(self):
        """Totals must equal the transaction amounts split by direction."""
        credits = sum(
            (t.amount for t in self.transactions if t.direction == Direction.CREDIT),
            Decimal('0'),
        )
        debits = sum(
            (t.amount for t in self.transactions if t.direction == Direction.DEBIT),
            Decimal('0'),
        )
        if abs(credits - self.total_credits) > Decimal('0.005'):
            raise ValueError(f"Credit total mismatch: {self.total_credits} != {credits}")
        if abs(debits - self.total_debits) > Decimal('0.005'):
            raise ValueError(f"Debit total mismatch: {self.total_debits} != {debits}")
        return self


class BankAnalysis(BaseModel):
    """Parse result plus the cash-flow summary shown on the review screen."""
    period: str
    bank: str
    account: str
    total_credits: Decimal
    total_debits: Decimal
    net_flow: Decimal
    transaction_count: int
    transactions: List[Transaction]
    insights: List[str]
    confidence: int


class JournalLine(BaseModel):
    line_number: int
    account_code: str
    account_name: str
    description: str
    debit: Decimal = Decimal('0')
    credit: Decimal = Decimal('0')
    entity_rut: Optional[str] = None
    entity_name: Optional[str] = None


class JournalEntryDraft(BaseModel):
    """Draft journal entry produced from a bank movement."""
    company_id: str
    entry_date: datetime.date
    entry_type: str = "bank_reconciliation"
    description: str
    reference: str = ""
    status: str = "draft"
    created_by: str = "bank_import"
    category: EntryCategory
    total_debit: Decimal
    total_credit: Decimal
    notes: str = ""
    lines: List[JournalLine]

    @model_validator(mode='after')
    def validate_balanced(self):
        """A journal entry must balance line by line and against its totals."""
        debit = sum((line.debit for line in self.lines), Decimal('0'))
        credit = sum((line.credit for line in self.lines), Decimal('0'))
        if debit != credit or debit != self.total_debit or credit != self.total_credit:
            raise ValueError(
                f"Unbalanced journal entry: debit {debit}, credit {credit} "
                f"(declared {self.total_debit}/{self.total_credit})"
            )
        return self


class JournalDraftBatch(BaseModel):
    drafts: List[JournalEntryDraft]
    skipped: List[str] = Field(default_factory=list)


class CatalogAccount(BaseModel):
    """Internal chart-of-accounts entry."""
    code: str
    name: str
    account_type: Optional[str] = None


class ExternalAccount(BaseModel):
    """Account line from another system's balance, used for opening entries."""
    code: str
    description: str = ""
    activo: Decimal = Decimal('0')
    pasivo: Decimal = Decimal('0')
    perdida: Decimal = Decimal('0')
    ganancia: Decimal = Decimal('0')


class AccountMapping(BaseModel):
    external_account: str
    external_code: str
    external_description: str
    mapped_code: str
    mapped_name: str
    amount: Decimal
    side: Direction
    confidence: int
    mapping_reason: str


class MappingSummary(BaseModel):
    total_accounts: int
    high_confidence: int
    medium_confidence: int
    low_confidence: int
    average_confidence: int


class MappingReport(BaseModel):
    mappings: List[AccountMapping]
    summary: MappingSummary
