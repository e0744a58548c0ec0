"""
Counterparty enrichment: RCV entity lookups and accounting suggestions.
"""
import asyncio
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple
import logging

import httpx

from .accounting import AccountingPolicy
from .normalize import extract_rut, normalize_rut
from ..models.schema import EntityInfo, EntityKind, Transaction

logger = logging.getLogger(__name__)

SEARCH_PATH = "/api/accounting/rcv-entities/search"


class EntityLookupError(Exception):
    """The registry answered but could not resolve the entity."""


class EntityRegistry(ABC):
    """Source of counterparty records keyed by company and RUT."""

    @abstractmethod
    async def lookup(self, company_id: str, rut: str) -> Optional[EntityInfo]:
        """Return the entity registered for the RUT, or None."""


class HttpEntityRegistry(EntityRegistry):
    """Registry served by the accounting backend over HTTP."""

    def __init__(self, base_url: str, timeout: float = 5.0):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    async def lookup(self, company_id: str, rut: str) -> Optional[EntityInfo]:
        """
        Query the RCV entity search endpoint.

        Returns:
            EntityInfo, or None when the registry has no record

        Raises:
            httpx.HTTPError: On network or HTTP status errors
            EntityLookupError: When the response is not a success payload
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.get(
                f"{self.base_url}{SEARCH_PATH}",
                params={"company_id": company_id, "rut": rut},
            )
            if r.status_code == 404:
                return None
            r.raise_for_status()
            payload = r.json() or {}

        if not isinstance(payload, dict) or not payload.get('success'):
            raise EntityLookupError(f"Registry lookup failed for {rut}: {payload}")

        data = payload.get('data')
        if not data:
            return None

        kind = data.get('entity_type')
        info = EntityInfo(
            kind=EntityKind(kind) if kind in {k.value for k in EntityKind} else None,
            name=data.get('entity_name'),
            account_code=data.get('account_code'),
        )
        logger.debug(f"Entity found for {rut}: {info.name} ({kind})")
        return info


class StaticEntityRegistry(EntityRegistry):
    """In-memory registry, keyed by (company_id, normalized RUT)."""

    def __init__(self, entities: Optional[Dict[Tuple[str, str], EntityInfo]] = None):
        self.entities = {
            (company, normalize_rut(rut) or rut): info
            for (company, rut), info in (entities or {}).items()
        }

    async def lookup(self, company_id: str, rut: str) -> Optional[EntityInfo]:
        return self.entities.get((company_id, normalize_rut(rut) or rut))


class Enricher:
    """Attaches counterparty info and a suggested journal entry to transactions."""

    def __init__(self, registry: Optional[EntityRegistry], policy: AccountingPolicy,
                 max_concurrency: int = 8, timeout: float = 5.0):
        self.registry = registry
        self.policy = policy
        self.max_concurrency = max(1, max_concurrency)
        self.timeout = timeout

    async def enrich(self, transactions: Sequence[Transaction],
                     company_id: Optional[str] = None) -> List[Transaction]:
        """
        Enrich every transaction, running registry lookups concurrently.

        A failed or timed-out lookup leaves the transaction without entity
        info; its suggestion then falls back to the RUT and keyword rules.

        Args:
            transactions: Parsed transactions
            company_id: Company whose registry is queried

        Returns:
            New transactions in the original order
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)
        tasks = [self._enrich_one(tx, company_id, semaphore) for tx in transactions]
        return list(await asyncio.gather(*tasks))

    async def _enrich_one(self, tx: Transaction, company_id: Optional[str],
                          semaphore: asyncio.Semaphore) -> Transaction:
        tax_id = tx.counterparty_tax_id or extract_rut(tx.description)

        info = None
        if tax_id and company_id and self.registry is not None:
            async with semaphore:
                try:
                    info = await asyncio.wait_for(
                        self.registry.lookup(company_id, tax_id), timeout=self.timeout
                    )
                except Exception as e:
                    logger.warning(f"Entity lookup failed for {tax_id}: {type(e).__name__}: {e}")
                    info = None

        enriched = tx.model_copy(update={'counterparty_tax_id': tax_id, 'counterparty_info': info})
        suggestion = self.policy.suggest_entry(enriched, info)
        return enriched.model_copy(update={'suggested_entry': suggestion})
