"""
Transaction row and header extraction from page-segmented statement text.
"""
import re
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple
import logging

from pydantic import BaseModel, Field

from .classifier import CREDIT_TYPES, TransactionClassifier
from .normalize import (
    AMOUNT_PATTERN, COMMON_DATE_FORMATS, clean_description, is_placeholder,
    money_direction, normalize_account_number, normalize_date, normalize_money,
    normalize_text
)
from .progress import CancellationToken, ProgressReporter
from .settings import ParserSettings
from ..models.schema import (
    BankConfig, ParsedTransaction, ParseMeta, StatementHeader, ValidationIssue
)

logger = logging.getLogger(__name__)

HEADER_FIELDS = ("account_number", "statement_period", "opening_balance", "closing_balance")

LineKey = Tuple[int, int]


class ExtractionResult(BaseModel):
    """Raw output of one pass over the statement text."""
    transactions: List[ParsedTransaction] = Field(default_factory=list)
    header: StatementHeader = Field(default_factory=StatementHeader)
    meta: ParseMeta = Field(default_factory=ParseMeta)
    warnings: List[ValidationIssue] = Field(default_factory=list)


def compile_pattern(pattern: str, flags: int = 0) -> "re.Pattern[str]":
    """Compile a template regex, expanding the ``{AMOUNT}`` placeholder."""
    return re.compile(pattern.replace("{AMOUNT}", AMOUNT_PATTERN), flags)


class StatementParser:
    """Applies one bank config's layout rules to statement text."""

    def __init__(self, config: BankConfig, settings: Optional[ParserSettings] = None,
                 classifier: Optional[TransactionClassifier] = None):
        self.config = config
        self.settings = settings or ParserSettings()
        self.classifier = classifier or TransactionClassifier()

        self._row_patterns = [compile_pattern(p) for p in config.transaction_line_patterns]
        self._skip_prefixes = [s.lower() for s in config.skip_lines]
        self._header_patterns = {
            field: [compile_pattern(p, re.IGNORECASE) for p in getattr(config.header_patterns, field)]
            for field in HEADER_FIELDS
        }
        self._period_formats = list(config.date_formats) + [
            f for f in COMMON_DATE_FORMATS if f not in config.date_formats
        ]

    def extract_header(self, page_text: Sequence[str]) -> Tuple[StatementHeader, Set[LineKey]]:
        """
        Extract statement metadata from designated marker lines.

        Args:
            page_text: Page-segmented statement text

        Returns:
            Tuple of (StatementHeader, set of (page_index, line_index) marker lines)
        """
        found: Dict[str, Any] = {}
        marker_lines: Set[LineKey] = set()

        for page_index, text in enumerate(page_text):
            for line_index, line in enumerate(text.splitlines()):
                stripped = normalize_text(line)
                if not stripped:
                    continue

                for field in HEADER_FIELDS:
                    for pattern in self._header_patterns[field]:
                        match = pattern.search(stripped)
                        if not match:
                            continue
                        marker_lines.add((page_index, line_index))
                        if field not in found:
                            value = self._header_value(field, match)
                            if value is not None:
                                found[field] = value
                        break

        header = StatementHeader(
            account_number=found.get("account_number"),
            opening_balance=found.get("opening_balance"),
            closing_balance=found.get("closing_balance")
        )
        if "statement_period" in found:
            header.period_start, header.period_end = found["statement_period"]

        logger.debug(f"Header fields found: {sorted(found)}")
        return header, marker_lines

    def _header_value(self, field: str, match: "re.Match[str]") -> Any:
        if field == "account_number":
            return normalize_account_number(match.group("value")) or None

        if field == "statement_period":
            start = normalize_date(match.group("start"), self._period_formats)
            end = normalize_date(match.group("end"), self._period_formats)
            if start is None or end is None:
                logger.warning(f"Unreadable statement period: {match.group(0)}")
                return None
            return start, end

        return normalize_money(match.group("value"), self.config.currency)

    def parse(self, page_text: Sequence[str], reporter: Optional[ProgressReporter] = None,
              cancel_token: Optional[CancellationToken] = None) -> ExtractionResult:
        """
        Extract transactions and header metadata from all pages.

        Args:
            page_text: Page-segmented statement text, index 0 is page 1
            reporter: Receives one extracting update per finished page
            cancel_token: Checked before each page

        Returns:
            ExtractionResult
        """
        header, marker_lines = self.extract_header(page_text)
        statement_year = header.period_end.year if header.period_end else None

        rows: List[Dict[str, Any]] = []
        total_lines = 0
        matched = 0
        unparsed = 0
        balance_rows = 0
        previous_balance = header.opening_balance
        total_pages = len(page_text)

        for page_index, text in enumerate(page_text):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            for line_index, line in enumerate(text.splitlines()):
                stripped = normalize_text(line)
                if not stripped or (page_index, line_index) in marker_lines:
                    continue
                if self._is_skipped(stripped):
                    continue

                total_lines += 1
                row = self._parse_line(stripped, previous_balance, statement_year, header)
                if row is None:
                    unparsed += 1
                    logger.debug(f"Unparsed line p{page_index + 1}:{line_index}: {stripped}")
                    continue

                matched += 1
                if row["balance"] is not None:
                    previous_balance = row["balance"]

                if row["debit"] is None and row["credit"] is None:
                    balance_rows += 1
                    continue

                row["page"] = page_index + 1
                row["line"] = line_index
                rows.append(row)

            if reporter is not None:
                reporter.page_progress(page_index + 1, total_pages)

        transactions, warnings = self._build_transactions(rows, header)

        meta = ParseMeta(
            total_lines=total_lines,
            matched_line_count=matched,
            unparsed_line_count=unparsed,
            date_fallback_count=len(warnings),
            balance_row_count=balance_rows
        )
        if meta.unparsed_ratio > self.settings.unparsed_ratio_threshold:
            logger.warning(
                f"{meta.unparsed_ratio:.0%} of lines could not be parsed "
                f"({unparsed}/{total_lines}) with config {self.config.bank_id}"
            )

        logger.info(f"Extracted {len(transactions)} transactions from {total_pages} pages")
        return ExtractionResult(transactions=transactions, header=header, meta=meta, warnings=warnings)

    def _is_skipped(self, line: str) -> bool:
        lowered = line.lower()
        return any(lowered.startswith(prefix) for prefix in self._skip_prefixes)

    def _parse_line(self, line: str, previous_balance: Optional[Decimal],
                    statement_year: Optional[int],
                    header: StatementHeader) -> Optional[Dict[str, Any]]:
        """
        Match the line against the row patterns in order.

        The first matching pattern decides; None when no pattern matches or
        the matched amounts contradict each other.
        """
        for pattern in self._row_patterns:
            match = pattern.match(line)
            if not match:
                continue

            groups = match.groupdict()
            description = normalize_text(groups["description"])
            amounts = self._resolve_amounts(groups, previous_balance, description)
            if amounts is None:
                return None

            debit, credit, balance = amounts
            raw_date = groups["date"]
            return {
                "raw_date": raw_date,
                "date": self._parse_row_date(raw_date, statement_year, header),
                "description": description,
                "debit": debit,
                "credit": credit,
                "balance": balance,
            }

        return None

    def _parse_row_date(self, raw_date: str, statement_year: Optional[int],
                        header: StatementHeader) -> Optional[date]:
        parsed = normalize_date(raw_date, self.config.date_formats, statement_year)
        if parsed is None:
            return None

        # Year-less dates in a period spanning new year belong to the start year
        if (header.period_start and header.period_end and parsed > header.period_end
                and header.period_start.year != header.period_end.year
                and not re.search(r"\d{4}", raw_date)):
            try:
                parsed = parsed.replace(year=header.period_start.year)
            except ValueError:
                pass
        return parsed

    def _resolve_amounts(self, groups: Dict[str, Optional[str]],
                         previous_balance: Optional[Decimal],
                         description: str) -> Optional[Tuple[Optional[Decimal], Optional[Decimal], Optional[Decimal]]]:
        """
        Turn the amount groups of a row into (debit, credit, balance).

        Returns None when the amounts contradict each other.
        """
        currency = self.config.currency
        balance = None
        if not is_placeholder(groups.get("balance")):
            balance = normalize_money(groups["balance"], currency)

        debit_raw = groups.get("debit")
        credit_raw = groups.get("credit")
        if not is_placeholder(debit_raw) or not is_placeholder(credit_raw):
            debit = normalize_money(debit_raw, currency) if not is_placeholder(debit_raw) else None
            credit = normalize_money(credit_raw, currency) if not is_placeholder(credit_raw) else None
            if (debit is None and not is_placeholder(debit_raw)) or \
                    (credit is None and not is_placeholder(credit_raw)):
                logger.debug(f"Unreadable debit/credit amount: {description}")
                return None
            debit = abs(debit) if debit else None
            credit = abs(credit) if credit else None
            if debit and credit:
                logger.debug(f"Row has both debit and credit: {description}")
                return None
            return debit, credit, balance

        amount_raw = groups.get("amount")
        if is_placeholder(amount_raw):
            return None, None, balance

        value = normalize_money(amount_raw, currency)
        if value is None:
            return None
        if value == 0:
            return None, None, balance

        direction = (groups.get("direction") or "").strip().upper() or money_direction(amount_raw)
        if direction == "CR":
            side = "credit"
        elif direction == "DR" or value < 0:
            side = "debit"
        elif self.config.unsigned_amount == "infer":
            side = self._infer_side(abs(value), balance, previous_balance, description)
        else:
            side = self.config.unsigned_amount

        if side == "credit":
            return None, abs(value), balance
        return abs(value), None, balance

    def _infer_side(self, value: Decimal, balance: Optional[Decimal],
                    previous_balance: Optional[Decimal], description: str) -> str:
        """Decide credit/debit from the running balance, else from the description."""
        tolerance = self.config.balance_reconciliation_tolerance
        if balance is not None and previous_balance is not None:
            if abs(previous_balance + value - balance) <= tolerance:
                return "credit"
            if abs(previous_balance - value - balance) <= tolerance:
                return "debit"
            logger.debug(f"Balance delta does not explain {value} for: {description}")

        kind = self.classifier.classify(description)
        return "credit" if kind in CREDIT_TYPES else "debit"

    def _build_transactions(self, rows: List[Dict[str, Any]],
                            header: StatementHeader) -> Tuple[List[ParsedTransaction], List[ValidationIssue]]:
        """Create transaction models, falling back to the period start for bad dates."""
        parsed_dates = [row["date"] for row in rows if row["date"] is not None]
        fallback_date = header.period_start or (min(parsed_dates) if parsed_dates else date.today())

        transactions = []
        warnings = []

        for row in rows:
            date_fallback = row["date"] is None
            if date_fallback:
                warnings.append(ValidationIssue(
                    code="ROW_DATE_FALLBACK",
                    message=(f"Unreadable date '{row['raw_date']}' on page {row['page']} "
                             f"line {row['line']}; using {fallback_date.isoformat()}"),
                    severity="warning",
                    line=row["line"],
                    page=row["page"]
                ))

            transactions.append(ParsedTransaction(
                transaction_date=fallback_date if date_fallback else row["date"],
                description=row["description"],
                normalized_description=clean_description(row["description"]),
                debit=row["debit"],
                credit=row["credit"],
                running_balance=row["balance"],
                type=self.classifier.classify(row["description"]),
                source_page=row["page"],
                source_line_index=row["line"],
                date_fallback=date_fallback
            ))

        return transactions, warnings
