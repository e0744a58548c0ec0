"""
Tests for the cash-flow analysis and insights.
"""
import pytest
from datetime import date
from decimal import Decimal

from ..core.insights import analyze_statement, generate_insights
from ..models.schema import Direction, ParseResult, Transaction


def make_result(movements):
    transactions = [
        Transaction(date=date(2024, 3, 1 + i % 28), description=f"Movimiento {i}",
                    amount=Decimal(amount), direction=direction, counterparty_tax_id=rut)
        for i, (amount, direction, rut) in enumerate(movements)
    ]
    credits = sum((t.amount for t in transactions if t.direction == Direction.CREDIT), Decimal("0"))
    debits = sum((t.amount for t in transactions if t.direction == Direction.DEBIT), Decimal("0"))
    return ParseResult(
        transactions=transactions, bank="Banco de Chile", account="****5678", period="03/2024",
        total_credits=credits, total_debits=debits, confidence=90, strategy="structured",
    )


class TestInsights:
    """Insight sentences and the analysis summary."""

    @pytest.fixture
    def result(self):
        return make_result([
            ("150000", Direction.CREDIT, "76543210-3"),
            ("50000", Direction.DEBIT, "12345678-5"),
        ])

    def test_analysis_totals(self, result):
        analysis = analyze_statement(result)

        assert analysis.net_flow == Decimal("100000")
        assert analysis.transaction_count == 2
        assert analysis.bank == "Banco de Chile"
        assert analysis.confidence == 90

    def test_positive_flow_and_counterparties(self, result):
        insights = analyze_statement(result).insights

        assert insights == [
            "Flujo positivo: Ingresan 66.7% mas de lo que sale",
            "Baja actividad: Solo 2 transacciones en el periodo",
            "100.0% de transacciones incluyen RUT identificado",
            "1 transacciones con empresas identificadas",
            "1 transacciones con personas naturales",
        ]

    def test_negative_flow(self):
        insights = generate_insights([], Decimal("100"), Decimal("150"))
        assert insights[0] == "Flujo negativo: Salen 50.0% mas de lo que ingresa"

    def test_no_credits(self):
        insights = generate_insights([], Decimal("0"), Decimal("1000"))
        assert insights[0] == "Flujo negativo: no se registran ingresos en el periodo"

    def test_no_movements(self):
        insights = generate_insights([], Decimal("0"), Decimal("0"))
        assert insights == [
            "Sin flujo: no se registran movimientos en el periodo",
            "Baja actividad: Solo 0 transacciones en el periodo",
        ]

    def test_activity_levels(self):
        moderate = make_result([("1000", Direction.CREDIT, None)] * 21)
        high = make_result([("1000", Direction.CREDIT, None)] * 28 + [("500", Direction.DEBIT, None)] * 23)

        assert analyze_statement(moderate).insights[1] == "Actividad moderada: 21 transacciones en el periodo"
        assert analyze_statement(high).insights[1] == "Alta actividad: 51 transacciones detectadas"
