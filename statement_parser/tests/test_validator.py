"""
Tests for statement validation.
"""
from datetime import date
from decimal import Decimal

import pytest

from ..core.settings import ParserSettings
from ..core.validator import StatementValidator, validate, validation_failure
from ..models.schema import (
    DetectionCandidate, DetectionResult, ParsedStatement, ParseMeta, ValidationIssue
)


@pytest.fixture
def detection():
    return DetectionResult(
        bank_id="commbank",
        confidence=0.9,
        candidates=[DetectionCandidate(bank_id="commbank", score=5.5)]
    )


@pytest.fixture
def meta():
    return ParseMeta(total_lines=2, matched_line_count=2)


@pytest.fixture
def statement(make_transaction):
    return ParsedStatement(
        bank_name="Commonwealth Bank",
        filename="test.pdf",
        statement_period_start=date(2024, 1, 1),
        statement_period_end=date(2024, 1, 31),
        page_count=1,
        opening_balance=Decimal("100.00"),
        closing_balance=Decimal("150.00"),
        transactions=[
            make_transaction(description="SALARY", credit="80.00"),
            make_transaction(description="COFFEE", debit="30.00"),
        ]
    )


class TestFatalChecks:

    def test_valid_statement(self, statement, detection, meta):
        result = validate(statement, detection, meta)
        assert result.valid
        assert result.errors == []
        assert result.warnings == []
        assert result.error_kind is None
        assert result.bank == "commbank"

    def test_no_transactions(self, statement, detection, meta):
        empty = statement.model_copy(update={"transactions": []})
        result = validate(empty, detection, meta)
        assert not result.valid
        assert "NO_TRANSACTIONS" in result.codes("error")
        assert result.error_kind == "NoTransactions"

    def test_period_inverted(self, statement, detection, meta):
        inverted = statement.model_copy(update={
            "statement_period_start": date(2024, 2, 1),
            "statement_period_end": date(2024, 1, 1),
        })
        result = validate(inverted, detection, meta)
        assert not result.valid
        assert "PERIOD_INVERTED" in result.codes("error")

    def test_unknown_bank_without_hint(self, statement, meta):
        result = validate(statement, DetectionResult(bank_id=None), meta)
        assert not result.valid
        assert result.error_kind == "UnsupportedBankFormat"

    def test_unknown_bank_with_hint(self, statement, meta):
        result = validate(statement, DetectionResult(bank_id=None), meta, hint="commbank")
        assert result.valid
        assert result.bank == "commbank"

    def test_bank_prefers_config_id(self, statement, detection, meta):
        assert validate(statement, detection, meta, bank_id="nab").bank == "nab"
        assert validate(statement, detection, meta, hint="NAB").bank == "nab"

    def test_date_fallback_ratio(self, statement, detection):
        over = ParseMeta(total_lines=4, matched_line_count=4, date_fallback_count=3)
        at = ParseMeta(total_lines=4, matched_line_count=4, date_fallback_count=2)
        assert "DATE_FORMAT_UNREADABLE" in validate(statement, detection, over).codes("error")
        assert validate(statement, detection, at).valid


class TestWarnings:

    def test_ambiguous_detection(self, statement, meta):
        ambiguous = DetectionResult(
            bank_id="commbank",
            confidence=0.1,
            ambiguous=True,
            candidates=[DetectionCandidate(bank_id="commbank", score=3),
                        DetectionCandidate(bank_id="ing", score=2.7)]
        )
        result = validate(statement, ambiguous, meta)
        assert result.valid
        assert "AMBIGUOUS_BANK_DETECTION" in result.codes("warning")

    def test_hint_mismatch(self, statement, detection, meta):
        result = validate(statement, detection, meta, hint="nab")
        assert result.valid
        assert result.codes("warning") == ["HINT_MISMATCH"]

    def test_hint_matching_detection(self, statement, detection, meta):
        assert validate(statement, detection, meta, hint="CommBank").warnings == []

    def test_balance_mismatch(self, statement, detection, meta):
        off = statement.model_copy(update={"closing_balance": Decimal("151.00")})
        result = validate(off, detection, meta)
        assert result.valid
        assert "BALANCE_RECONCILIATION_MISMATCH" in result.codes("warning")

    def test_balance_within_tolerance(self, statement, detection, meta):
        off = statement.model_copy(update={"closing_balance": Decimal("150.01")})
        assert validate(off, detection, meta).warnings == []

    def test_reconciliation_skipped_with_unparsed_lines(self, statement, detection):
        off = statement.model_copy(update={"closing_balance": Decimal("999.00")})
        partial = ParseMeta(total_lines=20, matched_line_count=19, unparsed_line_count=1)
        assert "BALANCE_RECONCILIATION_MISMATCH" not in validate(off, detection, partial).codes()

    def test_reconciliation_ignores_duplicates(self, statement, detection, meta, make_transaction):
        duplicate = make_transaction(description="COFFEE", debit="30.00", is_duplicate=True)
        doubled = statement.model_copy(update={"transactions": statement.transactions + [duplicate]})
        assert validate(doubled, detection, meta).warnings == []

    def test_reconciliation_counts_prior_matches(self, statement, detection, meta):
        stored = [t.model_copy(update={"is_duplicate": True, "prior_match": True}) for t in statement.transactions]
        reparsed = statement.model_copy(update={"transactions": stored})
        assert validate(reparsed, detection, meta).warnings == []

    def test_transaction_outside_period(self, statement, detection, meta, make_transaction):
        late = make_transaction(day=date(2024, 2, 3), description="LATE FEE", debit="5.00",
                                source_page=2, source_line_index=7)
        shifted = statement.model_copy(update={
            "transactions": statement.transactions + [late],
            "closing_balance": Decimal("145.00"),
        })
        result = validate(shifted, detection, meta)
        assert result.valid
        assert result.codes("warning") == ["TRANSACTION_OUTSIDE_PERIOD"]
        issue = result.issues[0]
        assert (issue.page, issue.line) == (2, 7)

    def test_period_edges_are_inside(self, statement, detection, meta, make_transaction):
        edges = [
            make_transaction(day=date(2024, 1, 1), description="SALARY", credit="80.00"),
            make_transaction(day=date(2024, 1, 31), description="COFFEE", debit="30.00"),
        ]
        assert validate(statement.model_copy(update={"transactions": edges}), detection, meta).warnings == []

    def test_unparsed_ratio(self, statement, detection):
        noisy = ParseMeta(total_lines=10, matched_line_count=8, unparsed_line_count=2)
        result = validate(statement, detection, noisy)
        assert result.valid
        assert "20% of lines could not be parsed - results may be incomplete" in result.warnings

    def test_unparsed_ratio_threshold_is_configurable(self, statement, detection):
        noisy = ParseMeta(total_lines=10, matched_line_count=8, unparsed_line_count=2)
        validator = StatementValidator(ParserSettings(unparsed_ratio_threshold=0.5))
        assert "UNPARSED_LINE_RATIO_EXCEEDED" not in validator.validate(statement, detection, noisy).codes()

    def test_extra_warnings_passed_through(self, statement, detection, meta):
        row_warning = ValidationIssue(code="ROW_DATE_FALLBACK", message="bad date", line=4, page=2)
        result = validate(statement, detection, meta, extra_warnings=[row_warning])
        assert result.valid
        assert result.issues[-1].line == 4
        assert "bad date" in result.warnings


class TestValidationFailure:

    def test_failure_result(self):
        result = validation_failure("Cancelled", "cancelled")
        assert not result.valid
        assert result.error_kind == "Cancelled"
        assert result.errors == ["cancelled"]
