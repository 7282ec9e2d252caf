"""
Tests for rule-based transaction classification.
"""
import pytest

from ..core.classifier import TransactionClassifier, classify, reclassify
from ..models.schema import TransactionType


class TestClassify:

    @pytest.mark.parametrize("description,expected", [
        ("DIRECT DEBIT TELSTRA", TransactionType.DIRECT_DEBIT),
        ("Salary ACME PTY LTD", TransactionType.DIRECT_CREDIT),
        ("CREDIT INTEREST", TransactionType.INTEREST),
        ("ATM WITHDRAWAL 123 GEORGE ST", TransactionType.ATM),
        ("MONTHLY ACCOUNT FEE", TransactionType.FEE),
        ("EFTPOS COLES 4321", TransactionType.CARD_PURCHASE),
        ("TRANSFER TO SAVINGS", TransactionType.TRANSFER),
        ("BPAY ORIGIN ENERGY", TransactionType.PAYMENT),
        ("CASH DEPOSIT BRANCH", TransactionType.DEPOSIT),
        ("WITHDRAWAL BRANCH", TransactionType.WITHDRAWAL),
        ("XYZZY", TransactionType.UNKNOWN),
    ])
    def test_rules(self, description, expected):
        assert classify(description) == expected

    def test_case_and_whitespace_insensitive(self):
        assert classify("  direct    debit   gym ") == classify("DIRECT DEBIT GYM")

    def test_first_rule_wins(self):
        # Matches both direct_debit and payment rules
        assert classify("DIRECT DEBIT CARD PAYMENT") == TransactionType.DIRECT_DEBIT

    def test_empty_description(self):
        assert classify("") == TransactionType.UNKNOWN

    def test_deterministic(self):
        descriptions = ["ATM CASH OUT", "INTEREST PAID", "SOMETHING ELSE"]
        assert [classify(d) for d in descriptions] == [classify(d) for d in descriptions]


class TestCustomRules:

    def test_custom_rule_list(self):
        classifier = TransactionClassifier([(TransactionType.FEE, r"\bnetflix\b")])
        assert classifier.classify("NETFLIX.COM") == TransactionType.FEE
        assert classifier.classify("DIRECT DEBIT") == TransactionType.UNKNOWN

    def test_reclassify_returns_copies(self, make_transaction):
        txn = make_transaction(description="NETFLIX.COM")
        classifier = TransactionClassifier([(TransactionType.FEE, r"\bnetflix\b")])

        updated = reclassify([txn], classifier)
        assert updated[0].type == TransactionType.FEE
        assert txn.type == TransactionType.UNKNOWN
