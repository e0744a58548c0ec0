#!/usr/bin/env python3
"""
CLI interface for the Chilean bank statement parser.
"""
import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import TypeAdapter
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .core.config import Settings
from .core.detectors import BankDetector, describe_layout, extract_account_number
from .core.insights import analyze_statement
from .core.loader import load_statement_text
from .core.mapping import AccountMapper
from .core.runner import StatementParser
from .models.schema import AmountConvention, CatalogAccount, ExternalAccount, ParseResult

app = typer.Typer(help="Chilean bank statement (cartola) parser")
console = Console()


def _settings(convention: Optional[AmountConvention], registry_url: Optional[str]) -> Settings:
    settings = Settings.from_env()
    updates = {}
    if convention:
        updates['amount_convention'] = convention
    if registry_url:
        updates['registry_url'] = registry_url
    return settings.model_copy(update=updates)


@app.command()
def parse(
    statement_path: Path = typer.Argument(..., help="Path to CSV, TXT or PDF statement"),
    company_id: Optional[str] = typer.Option(None, "--company-id", "-c", help="Company used for RUT lookups"),
    output: Optional[Path] = typer.Option(None, "--out", "-o", help="Output JSON file path"),
    convention: Optional[AmountConvention] = typer.Option(None, "--convention", help="Amount separators: latam or english"),
    registry_url: Optional[str] = typer.Option(None, "--registry-url", help="Base URL of the RCV entity registry"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output")
):
    """Parse a bank statement into structured JSON."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not statement_path.exists():
        console.print(f"[red]Error: statement file not found: {statement_path}[/red]")
        raise typer.Exit(1)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console
        ) as progress:
            task = progress.add_task("Reading statement...", total=None)
            content = load_statement_text(statement_path)

            progress.update(task, description="Extracting transactions...")
            parser = StatementParser(_settings(convention, registry_url))
            result = parser.parse(content, company_id)

            if output:
                progress.update(task, description="Writing output...")
                output.write_text(result.model_dump_json(indent=2))
                console.print(f"[green]✓ Parsed {len(result.transactions)} transactions "
                              f"({result.strategy}, {result.confidence}%). Output written to: {output}[/green]")
            else:
                console.print(result.model_dump_json(indent=2))

    except Exception as e:
        console.print(f"[red]Error parsing statement: {e}[/red]")
        if verbose:
            import traceback
            console.print(traceback.format_exc())
        raise typer.Exit(1)


@app.command()
def detect(
    statement_path: Path = typer.Argument(..., help="Path to CSV, TXT or PDF statement")
):
    """Detect the bank, account and layout of a statement."""
    try:
        content = load_statement_text(statement_path)
        bank = BankDetector().detect(content)
        layout = describe_layout(content)

        console.print(f"Bank: {bank}")
        console.print(f"Account: {extract_account_number(content)}")
        console.print(f"Delimiter: {layout['delimiter']!r}")
        if layout['header_row'] >= 0:
            console.print(f"Header row {layout['header_row']}: {', '.join(layout['headers'])}")
        else:
            console.print("No header row (positional columns)")
    except Exception as e:
        console.print(f"[red]Error detecting statement layout: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def validate(
    json_path: Path = typer.Argument(..., help="Path to JSON file to validate")
):
    """Validate a parse result JSON file against the schema."""
    try:
        data = ParseResult.model_validate_json(json_path.read_text())
        console.print("[green]✓ JSON is valid[/green]")
        console.print(f"Bank: {data.bank}")
        console.print(f"Account: {data.account}")
        console.print(f"Period: {data.period}")
        console.print(f"Transactions: {len(data.transactions)}")
        console.print(f"Credits: {data.total_credits}  Debits: {data.total_debits}")
    except Exception as e:
        console.print(f"[red]Validation failed: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def analyze(
    statement_path: Path = typer.Argument(..., help="Path to CSV, TXT or PDF statement"),
    company_id: Optional[str] = typer.Option(None, "--company-id", "-c", help="Company used for RUT lookups"),
    convention: Optional[AmountConvention] = typer.Option(None, "--convention", help="Amount separators: latam or english"),
):
    """Show cash-flow totals and insights for a statement."""
    try:
        content = load_statement_text(statement_path)
        result = StatementParser(_settings(convention, None)).parse(content, company_id)
        analysis = analyze_statement(result)
    except Exception as e:
        console.print(f"[red]Error analyzing statement: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"{analysis.bank} {analysis.account} ({analysis.period})")
    table.add_column("Concepto")
    table.add_column("Monto", justify="right")
    table.add_row("Abonos", f"{analysis.total_credits:,}")
    table.add_row("Cargos", f"{analysis.total_debits:,}")
    table.add_row("Flujo neto", f"{analysis.net_flow:,}")
    table.add_row("Transacciones", str(analysis.transaction_count))
    console.print(table)

    for insight in analysis.insights:
        console.print(f"• {insight}")
    console.print(f"Confidence: {analysis.confidence}%")


@app.command("map-accounts")
def map_accounts_command(
    json_path: Path = typer.Argument(..., help="JSON list of external accounts"),
    catalog_path: Optional[Path] = typer.Option(None, "--catalog", help="JSON list of internal catalog accounts"),
    output: Optional[Path] = typer.Option(None, "--out", "-o", help="Output JSON file path"),
):
    """Map an external chart of accounts onto the internal one."""
    try:
        accounts = TypeAdapter(List[ExternalAccount]).validate_json(json_path.read_text())
        catalog = None
        if catalog_path:
            catalog = TypeAdapter(List[CatalogAccount]).validate_json(catalog_path.read_text())

        report = AccountMapper().map_accounts(accounts, catalog)
    except Exception as e:
        console.print(f"[red]Error mapping accounts: {e}[/red]")
        raise typer.Exit(1)

    if output:
        output.write_text(report.model_dump_json(indent=2))
        console.print(f"[green]✓ {report.summary.total_accounts} accounts mapped. Output written to: {output}[/green]")
    else:
        console.print(json.dumps(report.model_dump(mode='json'), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    app()
