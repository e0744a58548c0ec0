"""
Tests for the structured, pattern and heuristic extraction tiers.
"""
import pytest
from datetime import date
from decimal import Decimal

from ..core.detectors import ColumnMap
from ..core.strategies import (
    HeuristicStrategy,
    Matched,
    NoMatch,
    PatternStrategy,
    StructuredStrategy,
    run_strategies,
)
from ..models.schema import AmountConvention, Direction


class TestStructuredStrategy:
    """Delimited statements with and without headers."""

    @pytest.fixture
    def strategy(self):
        return StructuredStrategy()

    def test_header_with_paired_columns(self, strategy):
        lines = [
            "Fecha;Detalle;Cargo;Abono;Saldo",
            "01/04/2024;Comision mantencion;5.000;;995.000",
            "02/04/2024;Deposito;;200.000;1.195.000",
        ]
        result = strategy.parse(lines)

        assert result.confidence == 90
        assert result.strategy == "structured"
        first, second = result.transactions
        assert (first.amount, first.direction, first.balance) == (Decimal("5000"), Direction.DEBIT, Decimal("995000"))
        assert (second.amount, second.direction) == (Decimal("200000"), Direction.CREDIT)

    def test_destination_columns(self, strategy):
        lines = [
            "Fecha,Nombre Destino,Rut Destino,Monto $,ID Transferencia,Mensaje Destino",
            "20/03/2024,Comercial Andes SpA,76.543.210-3,-250.000,TRX-991,Factura 123",
        ]
        tx = strategy.parse(lines).transactions[0]

        assert tx.date == date(2024, 3, 20)
        assert tx.description == "Comercial Andes SpA"
        assert tx.counterparty_tax_id == "76543210-3"
        assert tx.amount == Decimal("250000")
        assert tx.direction == Direction.DEBIT
        assert tx.reference == "TRX-991"
        assert tx.note == "Factura 123"

    def test_tax_id_sniffed_from_description(self, strategy):
        lines = ["Fecha,Descripcion,Monto", "15/03/2024,Transferencia a RUT 12.345.678-5,-80000"]
        tx = strategy.parse(lines).transactions[0]
        assert tx.counterparty_tax_id == "12345678-5"

    def test_positional_layout_without_header(self, strategy):
        lines = ["15/03/2024,Compra supermercado,-45990,954010", "16/03/2024,Abono cliente,100000,1054010"]
        result = strategy.parse(lines)

        assert result.confidence == 70
        assert [t.direction for t in result.transactions] == [Direction.DEBIT, Direction.CREDIT]
        assert result.transactions[0].balance == Decimal("954010")

    def test_bad_rows_are_dropped(self, strategy):
        lines = [
            "Fecha,Descripcion,Monto",
            "sin fecha,Compra,-1000",
            "15/03/2024,Monto cero,0",
            "16/03/2024,Compra valida,-2000",
        ]
        result = strategy.parse(lines)
        assert len(result.transactions) == 1
        assert result.transactions[0].description == "Compra valida"

    def test_no_delimited_rows(self, strategy):
        result = strategy.parse(["15/03/2024 Compra supermercado $45.990"])
        assert result.transactions == []
        assert result.confidence == 0

    def test_monto_cargo_and_monto_abono_headers(self, strategy):
        lines = [
            "Fecha;Descripcion;Monto Cargo;Monto Abono;Saldo",
            "15/03/2024;Compra supermercado;45.990;;954.010",
            "16/03/2024;Deposito cliente;;100.000;1.054.010",
        ]
        result = strategy.parse(lines)

        debit, credit = result.transactions
        assert (debit.amount, debit.direction) == (Decimal("45990"), Direction.DEBIT)
        assert (credit.amount, credit.direction) == (Decimal("100000"), Direction.CREDIT)

    def test_decimal_commas_are_not_columns(self, strategy):
        lines = [
            "Cartola de movimientos",
            "15/03/2024 Compra supermercado $45.990,50",
            "16/03/2024 Deposito en efectivo $100.000,00",
        ]
        result = strategy.parse(lines)

        assert result.transactions == []
        assert result.confidence == 0

    def test_positional_rows_must_share_width(self):
        lines = ["15/03/2024,Compra,-45990", "16/03/2024,Abono,100000,1054010"]
        assert StructuredStrategy.positional_rows(lines, ",") == []

    def test_positional_rows_need_amount_position(self):
        lines = ["15/03/2024,Compra,Sucursal centro", "16/03/2024,Abono,Sucursal norte"]
        assert StructuredStrategy.positional_rows(lines, ",") == []

    def test_positional_rows_skip_undated_lines(self):
        lines = ["Cartola, cuenta corriente", "15/03/2024,Compra,-45990", "16/03/2024,Abono,100000"]
        rows = StructuredStrategy.positional_rows(lines, ",")
        assert [row[1] for row in rows] == ["Compra", "Abono"]

    def test_parse_row_results(self, strategy):
        columns = ColumnMap(date=0, description=1, amount=2)

        matched = strategy.parse_row(["15/03/2024", "Compra", "-1.000"], columns)
        assert isinstance(matched, Matched)
        assert matched.transaction.amount == Decimal("1000")

        assert isinstance(strategy.parse_row(["solo una celda"], columns), NoMatch)
        assert strategy.parse_row(["x", "Compra", "-1.000"], columns).reason == "no date"
        assert strategy.parse_row(["15/03/2024", "Compra", ""], columns).reason == "no amount"

    def test_fallback_to_first_numeric_cell(self, strategy):
        columns = ColumnMap(date=0, description=1)
        result = strategy.parse_row(["15/03/2024", "Compra", "Sucursal 3", "-12.500"], columns)
        assert result.transaction.amount == Decimal("12500")
        assert result.transaction.direction == Direction.DEBIT

    def test_description_from_longest_text_cell(self, strategy):
        columns = ColumnMap(date=0, amount=3)
        result = strategy.parse_row(["15/03/2024", "Of", "Pago servicios basicos", "-9.990"], columns)
        assert result.transaction.description == "Pago servicios basicos"

    def test_english_convention(self):
        strategy = StructuredStrategy(AmountConvention.ENGLISH)
        result = strategy.parse(["Fecha;Descripcion;Monto", "15/03/2024;Compra;-1,234.50"])
        assert result.transactions[0].amount == Decimal("1234.50")


class TestPatternStrategy:
    """One transaction per free-text line."""

    def test_unstructured_line(self):
        result = PatternStrategy().parse(["15/03/2024 Compra supermercado $45.990"])

        assert result.confidence == 60
        tx = result.transactions[0]
        assert tx.date == date(2024, 3, 15)
        assert tx.description == "Compra supermercado"
        assert tx.amount == Decimal("45990")
        assert tx.direction == Direction.DEBIT

    def test_credit_keywords_and_rut(self):
        result = PatternStrategy().parse(["16/03/2024 Transferencia recibida RUT 12.345.678-5 $120.000"])
        tx = result.transactions[0]
        assert tx.direction == Direction.CREDIT
        assert tx.counterparty_tax_id == "12345678-5"
        assert tx.amount == Decimal("120000")

    def test_short_and_incomplete_lines_skipped(self):
        lines = ["1/1/24 $5", "Saldo anterior 1.000.000", "17/03/2024 sin monto"]
        result = PatternStrategy().parse(lines)
        assert result.transactions == []
        assert result.confidence == 0


class TestHeuristicStrategy:
    """Transactions spread over several lines."""

    @pytest.fixture
    def lines(self):
        return [
            "Detalle de movimientos",
            "15/03/2024 Transferencia recibida",
            "Cliente Comercial Andes",
            "$150.000",
            "16/03/2024 Compra",
            "$20.000",
        ]

    def test_group_lines(self, lines):
        groups = HeuristicStrategy.group_lines(lines)
        assert len(groups) == 2
        assert groups[0][-1] == "$150.000"

    def test_grouped_transactions(self, lines):
        result = HeuristicStrategy().parse(lines)

        assert result.confidence == 40
        credit, debit = result.transactions
        assert (credit.amount, credit.direction) == (Decimal("150000"), Direction.CREDIT)
        assert (debit.amount, debit.direction) == (Decimal("20000"), Direction.DEBIT)

    def test_empty_fallback(self):
        result = HeuristicStrategy().parse(["nada que leer"])
        assert result.transactions == []
        assert result.confidence == 20


class TestRunStrategies:
    """Ordered fallback across tiers."""

    def test_structured_first(self):
        result = run_strategies(["Fecha,Descripcion,Monto", "15/03/2024,Compra,-1000"])
        assert result.strategy == "structured"

    def test_pattern_when_unstructured(self):
        result = run_strategies(["Cartola", "15/03/2024 Compra supermercado $45.990"])
        assert result.strategy == "pattern"
        assert result.confidence == 60

    def test_heuristic_last(self):
        result = run_strategies(["15/03/2024 Compra", "$20.000"])
        assert result.strategy == "heuristic"
        assert result.confidence == 40

    def test_empty_document(self):
        result = run_strategies([])
        assert result.transactions == []
        assert result.confidence == 20
