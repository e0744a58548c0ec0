"""
Journal-entry suggestions for bank movements.
"""
from pathlib import Path
from typing import List, Optional
import logging

from pydantic import BaseModel

from .config import load_template
from .normalize import fold_accents, rut_number
from ..models.schema import (
    AccountingSuggestion,
    Direction,
    EntityInfo,
    EntityKind,
    EntryCategory,
    Transaction,
)

logger = logging.getLogger(__name__)


class LedgerAccount(BaseModel):
    code: str
    name: str


class AccountingPolicy(BaseModel):
    """Accounts and classification rules, normally loaded from accounting.yaml."""
    bank: LedgerAccount
    customers: LedgerAccount
    suppliers_payable: LedgerAccount
    remunerations: LedgerAccount
    natural_person_threshold: int = 40_000_000
    payroll_keywords: List[str] = []

    @classmethod
    def load(cls, templates_dir: Optional[Path] = None) -> "AccountingPolicy":
        data = load_template("accounting", templates_dir)
        accounts = data.get('accounts') or {}

        return cls(
            bank=accounts.get('bank'),
            customers=accounts.get('customers'),
            suppliers_payable=accounts.get('suppliers_payable'),
            remunerations=accounts.get('remunerations'),
            natural_person_threshold=data.get('natural_person_threshold', 40_000_000),
            payroll_keywords=data.get('payroll_keywords', []),
        )

    def suggest_entry(self, transaction: Transaction, info: Optional[EntityInfo] = None) -> AccountingSuggestion:
        """
        Suggest the debit/credit account pair for a movement.

        Credits are collections: the bank is debited against the customer
        account. Debits are payments: the counterparty account is debited
        against the bank, classified as payroll or supplier by the RUT
        number when the registry has no account for the counterparty.

        Args:
            transaction: Parsed movement
            info: Registry record for the counterparty, if any

        Returns:
            AccountingSuggestion
        """
        if transaction.direction == Direction.CREDIT:
            return self._suggest_credit(transaction, info)
        return self._suggest_debit(transaction, info)

    def _suggest_credit(self, tx: Transaction, info: Optional[EntityInfo]) -> AccountingSuggestion:
        if info and info.kind in (EntityKind.CUSTOMER, EntityKind.BOTH) and info.account_code:
            return self._entry(
                tx, self.bank, LedgerAccount(code=info.account_code, name=info.name or "Cliente Específico"),
                f"Cobro a {info.name or 'cliente'} - {tx.description}",
                EntryCategory.CUSTOMER,
            )

        return self._entry(
            tx, self.bank, self.customers,
            f"Cobro a cliente - {tx.description}",
            EntryCategory.CUSTOMER,
        )

    def _suggest_debit(self, tx: Transaction, info: Optional[EntityInfo]) -> AccountingSuggestion:
        if info and info.account_code:
            counterparty = info.name or (info.kind.value if info.kind else "entidad")
            category = EntryCategory.SUPPLIER if info.kind == EntityKind.SUPPLIER else EntryCategory.OTHER
            return self._entry(
                tx, LedgerAccount(code=info.account_code, name=info.name or "Entidad Específica"), self.bank,
                f"Pago a {counterparty} - {tx.description}",
                category,
            )

        number = rut_number(tx.counterparty_tax_id)
        if number is not None:
            if number < self.natural_person_threshold:
                return self._payroll(tx)
            return self._supplier(tx)

        description = fold_accents(tx.description)
        if any(keyword in description for keyword in self.payroll_keywords):
            return self._payroll(tx)

        return self._supplier(tx)

    def _payroll(self, tx: Transaction) -> AccountingSuggestion:
        return self._entry(
            tx, self.remunerations, self.bank,
            f"Pago de remuneraciones - {tx.description}",
            EntryCategory.PAYROLL,
        )

    def _supplier(self, tx: Transaction) -> AccountingSuggestion:
        return self._entry(
            tx, self.suppliers_payable, self.bank,
            f"Pago a proveedor - {tx.description}",
            EntryCategory.SUPPLIER,
        )

    @staticmethod
    def _entry(tx: Transaction, debit: LedgerAccount, credit: LedgerAccount,
               description: str, category: EntryCategory) -> AccountingSuggestion:
        return AccountingSuggestion(
            debit_account_code=debit.code,
            debit_account_name=debit.name,
            credit_account_code=credit.code,
            credit_account_name=credit.name,
            amount=tx.amount,
            description=description,
            category=category,
        )
