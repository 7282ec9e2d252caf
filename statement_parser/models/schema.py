"""
Pydantic models for parsed bank statement data.
"""
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class TransactionType(str, Enum):
    """Closed taxonomy of transaction kinds."""
    PAYMENT = "payment"
    TRANSFER = "transfer"
    FEE = "fee"
    INTEREST = "interest"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DIRECT_DEBIT = "direct_debit"
    DIRECT_CREDIT = "direct_credit"
    ATM = "atm"
    CARD_PURCHASE = "card_purchase"
    UNKNOWN = "unknown"


class ParserStatus(str, Enum):
    IDLE = "idle"
    READING = "reading"
    PARSING = "parsing"
    EXTRACTING = "extracting"
    SAVING = "saving"
    COMPLETE = "complete"
    ERROR = "error"


class HeaderMarker(BaseModel):
    """A string whose presence near the top of page 1 points at an issuer."""
    model_config = ConfigDict(frozen=True)

    text: str
    weight: float = 1.0


class HeaderPatterns(BaseModel):
    """Regexes for statement-level metadata lines.

    ``account_number``, ``opening_balance`` and ``closing_balance`` patterns
    capture a ``value`` group; ``statement_period`` patterns capture
    ``start`` and ``end``.
    """
    model_config = ConfigDict(frozen=True)

    account_number: Tuple[str, ...] = ()
    statement_period: Tuple[str, ...] = ()
    opening_balance: Tuple[str, ...] = ()
    closing_balance: Tuple[str, ...] = ()


class BankConfig(BaseModel):
    """Layout and format rules for one issuer's statements."""
    model_config = ConfigDict(frozen=True)

    bank_id: str
    display_name: str
    currency: str = "AUD"
    date_formats: Tuple[str, ...]
    transaction_line_patterns: Tuple[str, ...]
    unsigned_amount: Literal["credit", "debit", "infer"] = "credit"
    header_markers: Tuple[HeaderMarker, ...] = ()
    skip_lines: Tuple[str, ...] = ()
    header_patterns: HeaderPatterns = HeaderPatterns()
    balance_reconciliation_tolerance: Decimal = Decimal("0.01")
    detectable: bool = True

    @field_validator("transaction_line_patterns")
    @classmethod
    def check_line_patterns(cls, v):
        """Every row pattern needs a date and a description group."""
        if not v:
            raise ValueError("At least one transaction line pattern is required")
        for pattern in v:
            if "(?P<date>" not in pattern or "(?P<description>" not in pattern:
                raise ValueError(f"Pattern lacks date/description groups: {pattern}")
        return v

    @field_validator("date_formats")
    @classmethod
    def check_date_formats(cls, v):
        if not v:
            raise ValueError("At least one date format is required")
        return v


class DetectionCandidate(BaseModel):
    bank_id: str
    score: float


class DetectionResult(BaseModel):
    """Outcome of scoring page text against the registered bank configs."""
    bank_id: Optional[str] = None
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    candidates: List[DetectionCandidate] = Field(default_factory=list)
    hint: Optional[str] = None
    ambiguous: bool = False


class ParsedTransaction(BaseModel):
    """Individual transaction record."""
    transaction_date: date
    description: str
    normalized_description: str
    debit: Optional[Decimal] = None
    credit: Optional[Decimal] = None
    running_balance: Optional[Decimal] = None
    type: TransactionType = TransactionType.UNKNOWN
    is_duplicate: bool = False
    # Set when the duplicate was found among previously stored transactions
    prior_match: bool = False
    source_page: int
    source_line_index: int
    date_fallback: bool = False

    @model_validator(mode="after")
    def check_single_amount(self):
        """Exactly one of debit/credit is set and positive (or neither, for balance rows)."""
        if self.debit is not None and self.credit is not None:
            raise ValueError(f"Transaction has both debit and credit: {self.description}")
        for amount in (self.debit, self.credit):
            if amount is not None and amount <= 0:
                raise ValueError(f"Transaction amount must be positive: {self.description}")
        return self

    @property
    def signed_amount(self) -> Decimal:
        """Credits positive, debits negative."""
        if self.credit is not None:
            return self.credit
        if self.debit is not None:
            return -self.debit
        return Decimal("0")

    @property
    def amount(self) -> Decimal:
        return abs(self.signed_amount)


class StatementHeader(BaseModel):
    """Statement-level metadata pulled from marker lines."""
    account_number: Optional[str] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    opening_balance: Optional[Decimal] = None
    closing_balance: Optional[Decimal] = None


class ParsedStatement(BaseModel):
    """Complete statement data structure."""
    bank_name: str
    filename: str
    currency: str = "AUD"
    account_number: Optional[str] = None
    statement_period_start: date
    statement_period_end: date
    page_count: int
    opening_balance: Optional[Decimal] = None
    closing_balance: Optional[Decimal] = None
    transactions: List[ParsedTransaction] = Field(default_factory=list)
    parsed_at: datetime = Field(default_factory=datetime.now)

    @property
    def period_is_ordered(self) -> bool:
        return self.statement_period_start <= self.statement_period_end


class ParseMeta(BaseModel):
    """Line accounting for a single parse run."""
    total_lines: int = 0
    matched_line_count: int = 0
    unparsed_line_count: int = 0
    date_fallback_count: int = 0
    balance_row_count: int = 0

    @property
    def unparsed_ratio(self) -> float:
        if not self.total_lines:
            return 0.0
        return self.unparsed_line_count / self.total_lines


class ValidationIssue(BaseModel):
    code: str
    message: str
    severity: Literal["error", "warning"] = "warning"
    line: Optional[int] = None
    page: Optional[int] = None


class ValidationResult(BaseModel):
    """Structural errors (fatal) and warnings (non-fatal) for a statement."""
    valid: bool
    bank: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    issues: List[ValidationIssue] = Field(default_factory=list)
    error_kind: Optional[str] = None

    def codes(self, severity: Optional[str] = None) -> List[str]:
        return [i.code for i in self.issues if severity is None or i.severity == severity]


class ParserProgress(BaseModel):
    status: ParserStatus = ParserStatus.IDLE
    progress: float = Field(0.0, ge=0.0, le=100.0)
    message: Optional[str] = None
    current_page: Optional[int] = None
    total_pages: Optional[int] = None


class StatementStats(BaseModel):
    """Summary figures derived from a statement; never stored."""
    total_credits: Decimal
    total_debits: Decimal
    net_change: Decimal
    transaction_count: int
    transaction_types: Dict[TransactionType, int]
    duplicate_count: int = 0
    duplicate_ratio: float = 0.0
    average_transaction_amount: Decimal = Decimal("0")


class ParseOutcome(BaseModel):
    """Everything a parse run hands back to its caller."""
    statement: Optional[ParsedStatement] = None
    validation: ValidationResult
    detection: Optional[DetectionResult] = None
    meta: Optional[ParseMeta] = None
    stats: Optional[StatementStats] = None
    progress: ParserProgress

    @property
    def success(self) -> bool:
        return self.statement is not None and self.validation.valid


class ExportOptions(BaseModel):
    format: Literal["csv", "json"] = "json"
    include_metadata: bool = True
    include_duplicates: bool = True
    date_range: Optional[Tuple[date, date]] = None
    types: Optional[List[TransactionType]] = None
