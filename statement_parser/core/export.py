"""
CSV and JSON export of parsed statements.
"""
import csv
import io
import json
from typing import Any, Dict, List, Optional
import logging

from ..models.schema import ExportOptions, ParsedStatement, ParsedTransaction, StatementStats

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "date", "description", "normalized_description", "debit", "credit",
    "balance", "type", "is_duplicate", "page", "line",
]


def select_transactions(statement: ParsedStatement, options: ExportOptions) -> List[ParsedTransaction]:
    """Apply the export filters (duplicates, date range, types)."""
    transactions = statement.transactions

    if not options.include_duplicates:
        transactions = [t for t in transactions if not t.is_duplicate]

    if options.date_range:
        start, end = options.date_range
        transactions = [t for t in transactions if start <= t.transaction_date <= end]

    if options.types:
        wanted = set(options.types)
        transactions = [t for t in transactions if t.type in wanted]

    return transactions


def _metadata(statement: ParsedStatement, stats: Optional[StatementStats]) -> Dict[str, Any]:
    metadata = {
        "bank_name": statement.bank_name,
        "filename": statement.filename,
        "currency": statement.currency,
        "account_number": statement.account_number,
        "statement_period_start": statement.statement_period_start.isoformat(),
        "statement_period_end": statement.statement_period_end.isoformat(),
        "page_count": statement.page_count,
        "opening_balance": str(statement.opening_balance) if statement.opening_balance is not None else None,
        "closing_balance": str(statement.closing_balance) if statement.closing_balance is not None else None,
        "parsed_at": statement.parsed_at.isoformat(),
    }
    if stats is not None:
        metadata["stats"] = stats.model_dump(mode="json")
    return metadata


def to_json(statement: ParsedStatement, options: Optional[ExportOptions] = None,
            stats: Optional[StatementStats] = None, indent: int = 2) -> str:
    """
    Export a statement as JSON.

    Args:
        statement: Parsed statement
        options: Export filters; metadata is included unless disabled
        stats: Statistics to embed in the metadata block

    Returns:
        JSON string
    """
    options = options or ExportOptions(format="json")
    transactions = select_transactions(statement, options)

    data: Dict[str, Any] = {
        "transactions": [t.model_dump(mode="json") for t in transactions]
    }
    if options.include_metadata:
        data = {"metadata": _metadata(statement, stats), **data}

    logger.debug(f"Exporting {len(transactions)} transactions as JSON")
    return json.dumps(data, indent=indent)


def to_csv(statement: ParsedStatement, options: Optional[ExportOptions] = None,
           stats: Optional[StatementStats] = None) -> str:
    """
    Export a statement as CSV, one row per transaction.

    With ``include_metadata`` the file starts with ``# key: value`` comment
    lines describing the statement.
    """
    options = options or ExportOptions(format="csv")
    transactions = select_transactions(statement, options)

    buffer = io.StringIO()
    if options.include_metadata:
        for key, value in _metadata(statement, stats).items():
            if key == "stats":
                continue
            buffer.write(f"# {key}: {'' if value is None else value}\n")

    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for txn in transactions:
        writer.writerow([
            txn.transaction_date.isoformat(),
            txn.description,
            txn.normalized_description,
            "" if txn.debit is None else str(txn.debit),
            "" if txn.credit is None else str(txn.credit),
            "" if txn.running_balance is None else str(txn.running_balance),
            txn.type.value,
            "true" if txn.is_duplicate else "false",
            txn.source_page,
            txn.source_line_index,
        ])

    logger.debug(f"Exporting {len(transactions)} transactions as CSV")
    return buffer.getvalue()


def export_statement(statement: ParsedStatement, options: Optional[ExportOptions] = None,
                     stats: Optional[StatementStats] = None) -> str:
    """Export in the format named by ``options.format``."""
    options = options or ExportOptions()
    if options.format == "csv":
        return to_csv(statement, options, stats)
    return to_json(statement, options, stats)


def from_json(text: str) -> ParsedStatement:
    """
    Rebuild a statement from ``to_json`` output or a dumped ParsedStatement.

    Args:
        text: JSON document

    Returns:
        ParsedStatement
    """
    data = json.loads(text)
    if "metadata" not in data:
        return ParsedStatement.model_validate(data)

    metadata = dict(data["metadata"])
    metadata.pop("stats", None)
    return ParsedStatement.model_validate({**metadata, "transactions": data.get("transactions", [])})
