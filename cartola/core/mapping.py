"""
Chart-of-accounts mapping for opening balances imported from another system.
"""
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Sequence
import logging

from rapidfuzz import fuzz

from .config import load_template
from .normalize import fold_accents
from ..models.schema import (
    AccountMapping,
    CatalogAccount,
    Direction,
    ExternalAccount,
    MappingReport,
    MappingSummary,
)

logger = logging.getLogger(__name__)

FUZZY_THRESHOLD = 90
FUZZY_MIN_KEYWORD = 5
FUZZY_CONFIDENCE = 85

HIGH_CONFIDENCE = 90
MEDIUM_CONFIDENCE = 70

NATURE_ORDER = ('activo', 'pasivo', 'perdida', 'ganancia')


class MappingCandidate(NamedTuple):
    code: str
    name: str
    confidence: int
    reason: str


def mapping_amount(account: ExternalAccount) -> Decimal:
    """First positive balance among activo, pasivo, perdida and ganancia."""
    for nature in NATURE_ORDER:
        value = getattr(account, nature)
        if value > 0:
            return value
    return Decimal('0')


def mapping_side(account: ExternalAccount) -> Direction:
    """Assets and losses open on the debit side; liabilities and gains on the credit side."""
    if account.activo > 0 or account.perdida > 0:
        return Direction.DEBIT
    if account.pasivo > 0 or account.ganancia > 0:
        return Direction.CREDIT
    return Direction.DEBIT


class AccountMapper:
    """Maps external accounts onto the internal chart with rules from account_mapping.yaml."""

    def __init__(self, templates_dir: Optional[Path] = None):
        data = load_template("account_mapping", templates_dir)

        code, name, confidence = data['default']
        self.default = MappingCandidate(code, name, confidence, "Sin coincidencia - requiere mapeo manual")

        accept = data.get('accept') or {}
        self.accept_code = accept.get('code', 95)
        self.accept_description = accept.get('description', 85)
        self.accept_nature = accept.get('nature', 70)

        self.exact_codes: Dict[str, MappingCandidate] = {}
        for ext_code, row in (data.get('exact_codes') or {}).items():
            if len(row) != 3:
                logger.warning(f"Skipping malformed exact code rule {ext_code}: {row}")
                continue
            self.exact_codes[str(ext_code).lower()] = MappingCandidate(
                row[0], row[1], row[2], "Mapeo exacto por código"
            )

        self.code_prefixes: Dict[str, MappingCandidate] = {
            str(prefix): MappingCandidate(*row)
            for prefix, row in (data.get('code_prefixes') or {}).items()
        }

        # Longer keywords first so "caja chica" wins over "caja"
        descriptions: Dict[str, MappingCandidate] = {}
        for keyword, row in (data.get('descriptions') or {}).items():
            folded = fold_accents(str(keyword))
            descriptions.setdefault(folded, MappingCandidate(
                row[0], row[1], row[2], f'Mapeo por descripción: "{keyword}"'
            ))
        self.descriptions = dict(sorted(descriptions.items(), key=lambda kv: len(kv[0]), reverse=True))

        self.natures: Dict[str, MappingCandidate] = {
            nature: MappingCandidate(*row)
            for nature, row in (data.get('natures') or {}).items()
        }

    def by_code(self, code: str) -> Optional[MappingCandidate]:
        code = (code or "").strip().lower()
        if code in self.exact_codes:
            return self.exact_codes[code]
        return self.code_prefixes.get(code[:1])

    def by_description(self, description: str) -> Optional[MappingCandidate]:
        """Keyword substring match, falling back to a fuzzy partial match."""
        text = fold_accents(description).strip()
        if not text:
            return None

        for keyword, candidate in self.descriptions.items():
            if keyword in text:
                return candidate

        best = None
        best_score = 0.0
        for keyword, candidate in self.descriptions.items():
            if len(keyword) < FUZZY_MIN_KEYWORD:
                continue
            score = fuzz.partial_ratio(keyword, text)
            if score > best_score and score >= FUZZY_THRESHOLD:
                best_score = score
                best = candidate._replace(
                    confidence=min(candidate.confidence, FUZZY_CONFIDENCE),
                    reason=f'Mapeo aproximado por descripción: "{keyword}" ({score:.0f}%)',
                )

        return best

    def by_nature(self, account: ExternalAccount) -> Optional[MappingCandidate]:
        for nature in NATURE_ORDER:
            if getattr(account, nature) > 0 and nature in self.natures:
                return self.natures[nature]
        return None

    def map_account(self, account: ExternalAccount,
                    catalog: Optional[Sequence[CatalogAccount]] = None) -> MappingCandidate:
        """
        Choose the internal account for one external account.

        Tiers, each accepted only above its threshold: exact code, keyword
        in the description, nature of the balance. A code-prefix match is
        used only when no balance decides the nature; otherwise the result
        is the "to classify" default.

        Args:
            account: External account line
            catalog: Internal chart; when it holds the mapped code its name is used

        Returns:
            MappingCandidate
        """
        code_hit = self.by_code(account.code)
        candidate = None

        if code_hit and code_hit.confidence >= self.accept_code:
            candidate = code_hit

        if candidate is None:
            description_hit = self.by_description(account.description)
            if description_hit and description_hit.confidence >= self.accept_description:
                candidate = description_hit

        if candidate is None:
            nature_hit = self.by_nature(account)
            if nature_hit and nature_hit.confidence >= self.accept_nature:
                candidate = nature_hit

        if candidate is None and code_hit and code_hit.confidence >= self.accept_nature:
            candidate = code_hit

        if candidate is None:
            candidate = self.default

        if catalog:
            names = {entry.code: entry.name for entry in catalog}
            if candidate.code in names:
                candidate = candidate._replace(name=names[candidate.code])

        logger.debug(f"Mapped {account.code} -> {candidate.code} ({candidate.confidence}%, {candidate.reason})")
        return candidate

    def map_accounts(self, accounts: Sequence[ExternalAccount],
                     catalog: Optional[Sequence[CatalogAccount]] = None) -> MappingReport:
        """
        Map every external account that carries a balance.

        Args:
            accounts: External balance lines
            catalog: Internal chart of accounts

        Returns:
            MappingReport with the mappings and a confidence summary
        """
        mappings: List[AccountMapping] = []

        for account in accounts:
            amount = mapping_amount(account)
            if amount <= 0:
                continue

            candidate = self.map_account(account, catalog)
            mappings.append(AccountMapping(
                external_account=f"{account.code} - {account.description}",
                external_code=account.code,
                external_description=account.description,
                mapped_code=candidate.code,
                mapped_name=candidate.name,
                amount=amount,
                side=mapping_side(account),
                confidence=candidate.confidence,
                mapping_reason=candidate.reason,
            ))

        logger.info(f"Mapped {len(mappings)} of {len(accounts)} external accounts")
        return MappingReport(mappings=mappings, summary=summarize(mappings))


def summarize(mappings: Sequence[AccountMapping]) -> MappingSummary:
    confidences = [m.confidence for m in mappings]
    average = round(sum(confidences) / len(confidences)) if confidences else 0

    return MappingSummary(
        total_accounts=len(mappings),
        high_confidence=sum(1 for c in confidences if c >= HIGH_CONFIDENCE),
        medium_confidence=sum(1 for c in confidences if MEDIUM_CONFIDENCE <= c < HIGH_CONFIDENCE),
        low_confidence=sum(1 for c in confidences if c < MEDIUM_CONFIDENCE),
        average_confidence=average,
    )


def map_account(account: ExternalAccount, catalog: Optional[Sequence[CatalogAccount]] = None,
                templates_dir: Optional[Path] = None) -> MappingCandidate:
    return AccountMapper(templates_dir).map_account(account, catalog)


def map_accounts(accounts: Sequence[ExternalAccount], catalog: Optional[Sequence[CatalogAccount]] = None,
                 templates_dir: Optional[Path] = None) -> MappingReport:
    return AccountMapper(templates_dir).map_accounts(accounts, catalog)
