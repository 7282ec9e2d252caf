"""
Summary statistics over a parsed statement.
"""
from decimal import Decimal

from ..models.schema import ParsedStatement, StatementStats, TransactionType


def compute_stats(statement: ParsedStatement) -> StatementStats:
    """
    Compute totals and breakdowns for a statement.

    Duplicates are left out of the money totals but still counted in
    ``transaction_count`` and the per-type tallies.

    Args:
        statement: Parsed statement

    Returns:
        StatementStats
    """
    transactions = statement.transactions

    total_credits = Decimal("0")
    total_debits = Decimal("0")
    counted = 0
    duplicate_count = 0
    transaction_types = {kind: 0 for kind in TransactionType}

    for txn in transactions:
        transaction_types[txn.type] += 1

        if txn.is_duplicate:
            duplicate_count += 1
            continue

        if txn.credit is not None:
            total_credits += txn.credit
        if txn.debit is not None:
            total_debits += txn.debit
        counted += 1

    transaction_count = len(transactions)
    average = (total_credits + total_debits) / counted if counted else Decimal("0")

    return StatementStats(
        total_credits=total_credits,
        total_debits=total_debits,
        net_change=total_credits - total_debits,
        transaction_count=transaction_count,
        transaction_types=transaction_types,
        duplicate_count=duplicate_count,
        duplicate_ratio=duplicate_count / transaction_count if transaction_count else 0.0,
        average_transaction_amount=average.quantize(Decimal("0.01"))
    )
