"""
Statement validation: structural errors (fatal) and warnings (non-fatal).
"""
from decimal import Decimal
from typing import Iterable, List, Optional
import logging

from .settings import ParserSettings
from ..models.schema import (
    DetectionResult, ParsedStatement, ParseMeta, ValidationIssue, ValidationResult
)

logger = logging.getLogger(__name__)

# Fatal issue code -> error kind reported on the ValidationResult
FATAL_KINDS = {
    "UNSUPPORTED_BANK_FORMAT": "UnsupportedBankFormat",
    "NO_TRANSACTIONS": "NoTransactions",
    "PERIOD_INVERTED": "PeriodInverted",
    "DATE_FORMAT_UNREADABLE": "DateFormatUnreadable",
}


class StatementValidator:
    """Runs last over a parsed statement and its detection result."""

    def __init__(self, settings: Optional[ParserSettings] = None):
        self.settings = settings or ParserSettings()

    def validate(self, statement: ParsedStatement, detection: Optional[DetectionResult],
                 meta: Optional[ParseMeta], hint: Optional[str] = None,
                 tolerance: Decimal = Decimal("0.01"),
                 extra_warnings: Iterable[ValidationIssue] = (),
                 bank_id: Optional[str] = None) -> ValidationResult:
        """
        Validate a parsed statement.

        Args:
            statement: Parsed statement
            detection: Detection result for the same input
            meta: Line accounting from the extraction pass
            hint: Bank id supplied by the caller, if any
            tolerance: Allowed balance reconciliation difference
            extra_warnings: Row-level issues raised during extraction
            bank_id: Id of the config the statement was parsed with; defaults
                to the hint, then the detected bank

        Returns:
            ValidationResult
        """
        issues: List[ValidationIssue] = []

        # Fatal checks
        if detection is not None and detection.bank_id is None and not hint:
            issues.append(_error("UNSUPPORTED_BANK_FORMAT", "No bank format recognised and no bank hint supplied"))

        if not statement.transactions:
            issues.append(_error("NO_TRANSACTIONS", "No transactions found in statement"))

        if not statement.period_is_ordered:
            issues.append(_error(
                "PERIOD_INVERTED",
                f"Statement period start {statement.statement_period_start} is after "
                f"end {statement.statement_period_end}"
            ))

        if meta is not None and meta.matched_line_count:
            fallback_ratio = meta.date_fallback_count / meta.matched_line_count
            if fallback_ratio > self.settings.date_fallback_fatal_ratio:
                issues.append(_error(
                    "DATE_FORMAT_UNREADABLE",
                    f"{fallback_ratio:.0%} of transaction dates could not be read"
                ))

        # Warnings
        if detection is not None:
            if detection.ambiguous:
                runner_up = detection.candidates[1].bank_id if len(detection.candidates) > 1 else "?"
                issues.append(_warning(
                    "AMBIGUOUS_BANK_DETECTION",
                    f"Bank detection is ambiguous between {detection.bank_id} and {runner_up} "
                    f"(confidence {detection.confidence:.2f})"
                ))

            if hint and detection.bank_id and detection.bank_id != hint.lower():
                issues.append(_warning(
                    "HINT_MISMATCH",
                    f"Bank hint '{hint}' differs from detected bank '{detection.bank_id}'"
                ))

        reconciliation = self._check_reconciliation(statement, meta, tolerance)
        if reconciliation is not None:
            issues.append(reconciliation)

        issues.extend(self._check_period(statement))

        if meta is not None and meta.unparsed_ratio > self.settings.unparsed_ratio_threshold:
            issues.append(_warning(
                "UNPARSED_LINE_RATIO_EXCEEDED",
                f"{meta.unparsed_ratio:.0%} of lines could not be parsed - results may be incomplete"
            ))

        issues.extend(extra_warnings)

        errors = [i.message for i in issues if i.severity == "error"]
        warnings = [i.message for i in issues if i.severity == "warning"]
        fatal = [i for i in issues if i.severity == "error"]

        result = ValidationResult(
            valid=not fatal,
            bank=bank_id or (hint.lower() if hint else None) or (detection.bank_id if detection else None),
            errors=errors,
            warnings=warnings,
            issues=issues,
            error_kind=FATAL_KINDS.get(fatal[0].code, fatal[0].code) if fatal else None
        )

        if fatal:
            logger.warning(f"Statement failed validation: {', '.join(result.codes('error'))}")
        elif warnings:
            logger.info(f"Statement valid with {len(warnings)} warnings")

        return result

    def _check_reconciliation(self, statement: ParsedStatement, meta: Optional[ParseMeta],
                              tolerance: Decimal) -> Optional[ValidationIssue]:
        """Opening + credits - debits should land on the closing balance."""
        if statement.opening_balance is None or statement.closing_balance is None:
            return None
        if meta is not None and meta.unparsed_line_count:
            return None

        net = Decimal("0")
        for txn in statement.transactions:
            # Rows repeated within the statement were printed twice; rows
            # matching stored transactions are still part of this statement
            if not txn.is_duplicate or txn.prior_match:
                net += txn.signed_amount

        expected = statement.opening_balance + net
        difference = abs(statement.closing_balance - expected)
        if difference <= tolerance:
            return None

        return _warning(
            "BALANCE_RECONCILIATION_MISMATCH",
            f"Closing balance {statement.closing_balance} differs from opening balance plus "
            f"transactions ({expected}) by {difference}"
        )

    @staticmethod
    def _check_period(statement: ParsedStatement) -> List[ValidationIssue]:
        """Warn about rows dated outside the statement period."""
        if not statement.period_is_ordered:
            return []

        issues = []
        for txn in statement.transactions:
            if statement.statement_period_start <= txn.transaction_date <= statement.statement_period_end:
                continue
            issues.append(ValidationIssue(
                code="TRANSACTION_OUTSIDE_PERIOD",
                message=(f"Transaction on {txn.transaction_date} ({txn.description}) is outside "
                         f"the statement period {statement.statement_period_start} to "
                         f"{statement.statement_period_end}"),
                severity="warning",
                line=txn.source_line_index,
                page=txn.source_page
            ))
        return issues


def validation_failure(kind: str, message: str, bank: Optional[str] = None) -> ValidationResult:
    """ValidationResult for a run that ended in a fatal exception."""
    return ValidationResult(
        valid=False,
        bank=bank,
        errors=[message],
        issues=[ValidationIssue(code=kind, message=message, severity="error")],
        error_kind=kind
    )


def validate(statement: ParsedStatement, detection: Optional[DetectionResult],
             meta: Optional[ParseMeta], hint: Optional[str] = None,
             tolerance: Decimal = Decimal("0.01"),
             extra_warnings: Iterable[ValidationIssue] = (),
             settings: Optional[ParserSettings] = None,
             bank_id: Optional[str] = None) -> ValidationResult:
    return StatementValidator(settings).validate(
        statement, detection, meta, hint, tolerance, extra_warnings, bank_id
    )


def _error(code: str, message: str) -> ValidationIssue:
    return ValidationIssue(code=code, message=message, severity="error")


def _warning(code: str, message: str) -> ValidationIssue:
    return ValidationIssue(code=code, message=message, severity="warning")
