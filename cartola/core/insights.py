"""
Cash-flow summary and accounting insights for a parsed statement.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Sequence
import logging

from .normalize import rut_number
from ..models.schema import BankAnalysis, ParseResult, Transaction

logger = logging.getLogger(__name__)

HIGH_ACTIVITY = 50
MODERATE_ACTIVITY = 20
COMPANY_RUT_FROM = 50_000_000


def _pct(value: Decimal) -> str:
    return str(value.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def generate_insights(transactions: Sequence[Transaction],
                      total_credits: Decimal, total_debits: Decimal) -> List[str]:
    """
    Describe flow direction, activity level and counterparty mix.

    Args:
        transactions: Parsed transactions
        total_credits: Sum of credit amounts
        total_debits: Sum of debit amounts

    Returns:
        Insight sentences in Spanish
    """
    insights = []

    net_flow = total_credits - total_debits
    if total_credits == 0:
        if total_debits > 0:
            insights.append("Flujo negativo: no se registran ingresos en el periodo")
        else:
            insights.append("Sin flujo: no se registran movimientos en el periodo")
    elif net_flow > 0:
        insights.append(f"Flujo positivo: Ingresan {_pct(net_flow / total_credits * 100)}% mas de lo que sale")
    else:
        insights.append(f"Flujo negativo: Salen {_pct(abs(net_flow) / total_credits * 100)}% mas de lo que ingresa")

    count = len(transactions)
    if count > HIGH_ACTIVITY:
        insights.append(f"Alta actividad: {count} transacciones detectadas")
    elif count > MODERATE_ACTIVITY:
        insights.append(f"Actividad moderada: {count} transacciones en el periodo")
    else:
        insights.append(f"Baja actividad: Solo {count} transacciones en el periodo")

    with_rut = [t for t in transactions if t.counterparty_tax_id]
    if with_rut:
        share = Decimal(len(with_rut)) / Decimal(count) * 100
        insights.append(f"{_pct(share)}% de transacciones incluyen RUT identificado")

        numbers = [rut_number(t.counterparty_tax_id) or 0 for t in with_rut]
        companies = sum(1 for n in numbers if n >= COMPANY_RUT_FROM)
        individuals = sum(1 for n in numbers if 0 < n < COMPANY_RUT_FROM)

        if companies:
            insights.append(f"{companies} transacciones con empresas identificadas")
        if individuals:
            insights.append(f"{individuals} transacciones con personas naturales")

    return insights


def analyze_statement(result: ParseResult) -> BankAnalysis:
    """Build the review-screen analysis from a parse result."""
    insights = generate_insights(result.transactions, result.total_credits, result.total_debits)
    logger.debug(f"Generated {len(insights)} insights for {result.bank}")

    return BankAnalysis(
        period=result.period,
        bank=result.bank,
        account=result.account,
        total_credits=result.total_credits,
        total_debits=result.total_debits,
        net_flow=result.total_credits - result.total_debits,
        transaction_count=len(result.transactions),
        transactions=result.transactions,
        insights=insights,
        confidence=result.confidence,
    )
