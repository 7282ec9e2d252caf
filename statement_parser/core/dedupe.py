"""
Near-duplicate detection for parsed transactions.
"""
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple
import logging

from rapidfuzz.distance import Levenshtein

from .normalize import normalize_description
from ..models.schema import ParsedTransaction

logger = logging.getLogger(__name__)

DEFAULT_MAX_DISTANCE = 2

DuplicateKey = Tuple[date, Decimal]


def _key(txn: ParsedTransaction) -> DuplicateKey:
    return txn.transaction_date, txn.signed_amount


def _match_text(txn: ParsedTransaction) -> str:
    return normalize_description(txn.normalized_description or txn.description)


class DeduplicationEngine:
    """
    Flags transactions that likely repeat another one.

    Two rows are duplicates when they share a date and signed amount and
    their normalized descriptions are identical or within ``max_distance``
    Levenshtein edits.
    """

    def __init__(self, max_distance: int = DEFAULT_MAX_DISTANCE):
        if max_distance < 0:
            raise ValueError("max_distance must be >= 0")
        self.max_distance = max_distance

    def descriptions_match(self, a: str, b: str) -> bool:
        if a == b:
            return True
        if self.max_distance == 0:
            return False
        distance = Levenshtein.distance(a, b, score_cutoff=self.max_distance)
        return distance <= self.max_distance

    def is_duplicate_of(self, txn: ParsedTransaction, other: ParsedTransaction) -> bool:
        return _key(txn) == _key(other) and self.descriptions_match(_match_text(txn), _match_text(other))

    def mark(self, transactions: Sequence[ParsedTransaction],
             prior_transactions: Optional[Sequence[ParsedTransaction]] = None) -> List[ParsedTransaction]:
        """
        Return copies of ``transactions`` with ``is_duplicate`` recomputed.

        Within the batch only the second and later members of a duplicate
        group are flagged. Rows matching any prior transaction are flagged
        regardless of position; when such a row is not also a repeat
        within the batch it also gets ``prior_match`` and still counts
        towards the balance reconciliation. Incoming flags are ignored.

        Args:
            transactions: Transactions of one parse batch, in statement order
            prior_transactions: Previously stored transactions to check against

        Returns:
            New list of transactions
        """
        prior_index: Dict[DuplicateKey, List[str]] = defaultdict(list)
        for txn in prior_transactions or ():
            prior_index[_key(txn)].append(_match_text(txn))

        canonical: Dict[DuplicateKey, List[str]] = defaultdict(list)
        result = []
        flagged = 0

        for txn in transactions:
            key = _key(txn)
            text = _match_text(txn)

            repeated = any(self.descriptions_match(text, seen) for seen in canonical.get(key, ()))
            prior_match = not repeated and any(
                self.descriptions_match(text, seen) for seen in prior_index.get(key, ())
            )
            duplicate = repeated or prior_match

            if not repeated:
                canonical[key].append(text)
            if duplicate:
                flagged += 1
                logger.debug(
                    f"Duplicate transaction on {txn.transaction_date}: "
                    f"{txn.description} ({txn.signed_amount})"
                )

            result.append(txn.model_copy(update={"is_duplicate": duplicate, "prior_match": prior_match}))

        if flagged:
            logger.info(f"Flagged {flagged} of {len(result)} transactions as duplicates")

        return result


def mark_duplicates(transactions: Sequence[ParsedTransaction],
                    prior_transactions: Optional[Sequence[ParsedTransaction]] = None,
                    max_distance: int = DEFAULT_MAX_DISTANCE) -> List[ParsedTransaction]:
    """
    Flag likely duplicates in a transaction batch.

    Args:
        transactions: Transactions to check
        prior_transactions: Optional transactions from an earlier statement
        max_distance: Edit-distance threshold for descriptions

    Returns:
        New list with ``is_duplicate`` set
    """
    return DeduplicationEngine(max_distance).mark(transactions, prior_transactions)
