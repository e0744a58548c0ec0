"""
Draft journal entries from enriched bank transactions.
"""
import re
from typing import Optional, Sequence
import logging

from ..models.schema import (
    Direction,
    JournalDraftBatch,
    JournalEntryDraft,
    JournalLine,
    Transaction,
)

logger = logging.getLogger(__name__)

ENTITY_NAME_PATTERNS = [
    re.compile(r'\b(?:Cliente|Proveedor|de|a)\s+([A-Za-z0-9\s]+?)(?:\s+RUT|\s+Ltda|\s+SpA|\s+SA|\s+-|$)', re.IGNORECASE),
    re.compile(r'\bTransferencia\s+(?:de|a)\s+([A-Za-z0-9\s]+?)(?:\s+RUT|\s+-|$)', re.IGNORECASE),
    re.compile(r'\bPago\s+(?:de|a)\s+([A-Za-z0-9\s]+?)(?:\s+RUT|\s+-|$)', re.IGNORECASE),
]


def extract_entity_name(description: str) -> str:
    """
    Guess the counterparty name from a movement description.

    "Transferencia a Comercial Andes SpA" -> "Comercial Andes".
    Falls back to the second hyphen-separated part, then the first 50
    characters.
    """
    for pattern in ENTITY_NAME_PATTERNS:
        match = pattern.search(description or "")
        if match and match.group(1).strip():
            return match.group(1).strip()

    parts = (description or "").split('-')
    if len(parts) > 1:
        return parts[1].strip()

    return (description or "")[:50]


def build_journal_draft(transaction: Transaction, company_id: str) -> Optional[JournalEntryDraft]:
    """
    Two-line balanced draft for one transaction, or None without a suggestion.

    The counterparty RUT and name go on the bank's opposite line: the debit
    line for payments and the credit line for collections.
    """
    entry = transaction.suggested_entry
    if entry is None:
        return None

    rut = transaction.counterparty_tax_id
    name = extract_entity_name(transaction.description)
    is_credit = transaction.direction == Direction.CREDIT

    lines = [
        JournalLine(
            line_number=1,
            account_code=entry.debit_account_code,
            account_name=entry.debit_account_name,
            description=entry.description,
            debit=entry.amount,
            entity_rut=None if is_credit else rut,
            entity_name=None if is_credit else name,
        ),
        JournalLine(
            line_number=2,
            account_code=entry.credit_account_code,
            account_name=entry.credit_account_name,
            description=entry.description,
            credit=entry.amount,
            entity_rut=rut if is_credit else None,
            entity_name=name if is_credit else None,
        ),
    ]

    return JournalEntryDraft(
        company_id=company_id,
        entry_date=transaction.date,
        description=entry.description,
        reference=rut or "",
        category=entry.category,
        total_debit=entry.amount,
        total_credit=entry.amount,
        notes=f"Importado desde cartola bancaria - {transaction.description}",
        lines=lines,
    )


def build_journal_drafts(transactions: Sequence[Transaction], company_id: str) -> JournalDraftBatch:
    """
    Build drafts for every transaction that carries a suggested entry.

    Args:
        transactions: Enriched transactions
        company_id: Owning company

    Returns:
        JournalDraftBatch with the drafts and the descriptions of skipped transactions

    Raises:
        ValueError: If company_id is empty
    """
    if not company_id:
        raise ValueError("Company ID is required")

    batch = JournalDraftBatch(drafts=[])
    for transaction in transactions:
        draft = build_journal_draft(transaction, company_id)
        if draft is None:
            logger.warning(f"No suggested entry for transaction: {transaction.description}")
            batch.skipped.append(transaction.description)
            continue
        batch.drafts.append(draft)

    logger.info(f"Built {len(batch.drafts)} journal drafts ({len(batch.skipped)} skipped)")
    return batch
