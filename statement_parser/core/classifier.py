"""
Rule-based transaction classification.
"""
import re
from typing import Iterable, List, Optional, Sequence, Tuple

from .normalize import normalize_description
from ..models.schema import ParsedTransaction, TransactionType

# Most specific first; the first matching rule wins.
DEFAULT_RULES: List[Tuple[TransactionType, str]] = [
    (TransactionType.DIRECT_DEBIT,
     r"\bdirect debit\b|\bdd\s*-|\bdd\b|\bautopay\b|\bautomatic payment\b|\brecurring\b"),
    (TransactionType.DIRECT_CREDIT,
     r"\bdirect credit\b|\bsalary\b|\bwages\b|\bpayroll\b|\bpay run\b"),
    (TransactionType.INTEREST,
     r"\binterest\b|\bint paid\b|\bint received\b"),
    (TransactionType.ATM,
     r"\batm\b|\bcash out\b|\bcash withdrawal\b"),
    (TransactionType.FEE,
     r"\bfees?\b|\bcharges?\b|\bcommission\b"),
    (TransactionType.CARD_PURCHASE,
     r"\bpos\b|\beftpos\b|\bvisa\b|\bmastercard\b|\bpaywave\b|\bpaypass\b|\btap\b"
     r"|\bcard\b|\bpurchase\b|\bstore\b|\bshop\b|\bmart\b|\bsupermarket\b|\bgroceries\b"),
    (TransactionType.TRANSFER,
     r"\btransfer\b|\btfr\b|\bxfr\b|\bosko\b|\bbetween accounts\b"),
    (TransactionType.PAYMENT,
     r"\bbpay\b|\bpayment\b|\bpay\b|\bpaid\b|\bbill\b"),
    (TransactionType.DEPOSIT,
     r"\bdeposit\b|\bcredit\b|\brefund\b|\breceived\b|\bincome\b"),
    (TransactionType.WITHDRAWAL,
     r"\bwithdrawal\b|\bdebit\b|\bdeducted\b|\boutgoing\b"),
]

# Types that normally move money into the account
CREDIT_TYPES = frozenset({
    TransactionType.DEPOSIT,
    TransactionType.DIRECT_CREDIT,
    TransactionType.INTEREST,
})


class TransactionClassifier:
    """Maps descriptions onto the TransactionType taxonomy."""

    def __init__(self, rules: Optional[Sequence[Tuple[TransactionType, str]]] = None):
        self.rules = [
            (TransactionType(kind), re.compile(pattern, re.IGNORECASE))
            for kind, pattern in (rules if rules is not None else DEFAULT_RULES)
        ]

    def classify(self, description: str) -> TransactionType:
        """
        Classify a transaction description.

        Args:
            description: Raw or cleaned description

        Returns:
            The type of the first matching rule, or UNKNOWN
        """
        text = normalize_description(description)
        if not text:
            return TransactionType.UNKNOWN

        for kind, pattern in self.rules:
            if pattern.search(text):
                return kind

        return TransactionType.UNKNOWN

    def reclassify(self, transactions: Iterable[ParsedTransaction]) -> List[ParsedTransaction]:
        """Return copies of ``transactions`` re-tagged with this rule set."""
        return [
            txn.model_copy(update={"type": self.classify(txn.description)})
            for txn in transactions
        ]


_default_classifier = TransactionClassifier()


def classify(description: str) -> TransactionType:
    """Classify with the default rule set."""
    return _default_classifier.classify(description)


def reclassify(transactions: Iterable[ParsedTransaction],
               classifier: Optional[TransactionClassifier] = None) -> List[ParsedTransaction]:
    return (classifier or _default_classifier).reclassify(transactions)
