#!/usr/bin/env python3
"""
CLI interface for the bank statement parser.
"""
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .core.detectors import BankDetector
from .core.export import export_statement, from_json
from .core.loader import load_page_text
from .core.registry import get_registry
from .core.runner import parse_statement
from .core.settings import load_settings
from .core.stats import compute_stats
from .core.validator import StatementValidator
from .models.schema import ExportOptions, ParsedTransaction, ParserProgress, StatementStats

app = typer.Typer(help="Bank Statement Parser")
console = Console(stderr=True)


def _load_prior(prior: Optional[Path]) -> Optional[List[ParsedTransaction]]:
    if prior is None:
        return None
    if not prior.exists():
        console.print(f"[red]Error: prior transactions file not found: {prior}[/red]")
        raise typer.Exit(1)
    return from_json(prior.read_text(encoding="utf-8")).transactions


def _stats_table(stats: StatementStats) -> Table:
    table = Table(title="Statement summary")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Transactions", str(stats.transaction_count))
    table.add_row("Total credits", str(stats.total_credits))
    table.add_row("Total debits", str(stats.total_debits))
    table.add_row("Net change", str(stats.net_change))
    table.add_row("Duplicates", str(stats.duplicate_count))
    table.add_row("Average amount", str(stats.average_transaction_amount))
    return table


@app.command()
def parse(
    path: Path = typer.Argument(..., help="Statement PDF, or text file with form-feed page breaks"),
    output: Optional[Path] = typer.Option(None, "--out", "-o", help="Output file path"),
    bank: Optional[str] = typer.Option(None, "--bank", "-b", help="Bank id to use instead of detection"),
    fmt: str = typer.Option("json", "--format", "-f", help="Output format: json or csv"),
    prior: Optional[Path] = typer.Option(None, "--prior", help="Exported JSON of earlier transactions for duplicate checks"),
    settings_path: Optional[Path] = typer.Option(None, "--settings", help="YAML settings overrides"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output")
):
    """Parse a bank statement into structured JSON or CSV."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)

    if fmt not in ("json", "csv"):
        console.print(f"[red]Error: unsupported format: {fmt}[/red]")
        raise typer.Exit(1)

    if not path.exists():
        console.print(f"[red]Error: statement file not found: {path}[/red]")
        raise typer.Exit(1)

    settings = load_settings(settings_path)
    prior_transactions = _load_prior(prior)

    try:
        pages = load_page_text(path)
    except Exception as e:
        console.print(f"[red]Error reading statement: {e}[/red]")
        raise typer.Exit(1)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console
    ) as progress:
        task = progress.add_task("Parsing statement...", total=100)

        def on_progress(update: ParserProgress):
            progress.update(task, completed=update.progress,
                            description=update.message or update.status.value)

        outcome = parse_statement(
            pages,
            filename=path.name,
            hint=bank,
            on_progress=on_progress,
            prior_transactions=prior_transactions,
            settings=settings
        )

    for warning in outcome.validation.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")

    if not outcome.success:
        for error in outcome.validation.errors:
            console.print(f"[red]Error: {error}[/red]")
        raise typer.Exit(1)

    rendered = export_statement(outcome.statement, ExportOptions(format=fmt), outcome.stats)
    if output:
        output.write_text(rendered, encoding="utf-8")
        console.print(f"[green]✓ Parsed successfully! Output written to: {output}[/green]")
    else:
        typer.echo(rendered)

    console.print(_stats_table(outcome.stats))


@app.command()
def detect(
    path: Path = typer.Argument(..., help="Statement PDF or text file"),
    bank: Optional[str] = typer.Option(None, "--bank", "-b", help="Bank hint")
):
    """Detect which bank format matches a statement."""
    try:
        pages = load_page_text(path)
        result = BankDetector().detect(pages, bank)
    except Exception as e:
        console.print(f"[red]Error detecting bank: {e}[/red]")
        raise typer.Exit(1)

    for candidate in result.candidates:
        console.print(f"  {candidate.bank_id}: {candidate.score:.2f}")

    if not result.bank_id:
        console.print("[red]No matching bank format found[/red]")
        raise typer.Exit(1)

    suffix = " (ambiguous)" if result.ambiguous else ""
    console.print(f"[green]Detected bank: {result.bank_id}{suffix}[/green]")
    typer.echo(result.bank_id)


@app.command()
def banks():
    """List the registered bank formats."""
    table = Table(title="Bank formats")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Currency")
    table.add_column("Detectable")

    for config in get_registry():
        table.add_row(config.bank_id, config.display_name, config.currency,
                      "yes" if config.detectable else "hint only")
        typer.echo(config.bank_id)

    console.print(table)


@app.command()
def validate(
    json_path: Path = typer.Argument(..., help="Path to JSON file to validate")
):
    """Validate an exported statement JSON file."""
    try:
        statement = from_json(json_path.read_text(encoding="utf-8"))
    except Exception as e:
        console.print(f"[red]Validation failed: {e}[/red]")
        raise typer.Exit(1)

    result = StatementValidator().validate(statement, detection=None, meta=None)
    stats = compute_stats(statement)

    console.print(f"Bank: {statement.bank_name}")
    console.print(f"Statement period: {statement.statement_period_start} to {statement.statement_period_end}")
    console.print(f"Transactions: {stats.transaction_count}")
    for warning in result.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")

    if not result.valid:
        for error in result.errors:
            console.print(f"[red]Error: {error}[/red]")
        raise typer.Exit(1)

    console.print("[green]✓ JSON is valid[/green]")


if __name__ == "__main__":
    app()
