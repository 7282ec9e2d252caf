"""
End-to-end parsing orchestration.
"""
import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union
import logging

from pydantic import BaseModel, Field

from .classifier import TransactionClassifier
from .dedupe import mark_duplicates
from .detectors import BankDetector
from .errors import CorruptPageStructure, EmptyInput, StatementParseError, UnsupportedBankFormat
from .extractor import StatementParser
from .loader import load_page_text
from .progress import CancellationToken, ProgressCallback, ProgressChannel, ProgressReporter
from .registry import BankFormatRegistry, get_registry
from .settings import ParserSettings
from .stats import compute_stats
from .validator import StatementValidator, validation_failure
from ..models.schema import (
    BankConfig, DetectionResult, ParsedStatement, ParsedTransaction, ParseOutcome,
    ParserProgress, ParserStatus, StatementHeader
)

logger = logging.getLogger(__name__)


class StatementEngine:
    """Main engine class that orchestrates the entire parsing process."""

    def __init__(self, settings: Optional[ParserSettings] = None,
                 registry: Optional[BankFormatRegistry] = None,
                 classifier: Optional[TransactionClassifier] = None):
        self.settings = settings or ParserSettings()
        self.registry = registry or get_registry(self.settings.templates_dir)
        self.classifier = classifier or TransactionClassifier()
        self.detector = BankDetector(self.registry, self.settings)
        self.validator = StatementValidator(self.settings)

    def parse(self, page_text: Sequence[str], filename: str = "statement.pdf",
              hint: Optional[str] = None, on_progress: Optional[ProgressCallback] = None,
              channel: Optional[ProgressChannel] = None,
              cancel_token: Optional[CancellationToken] = None,
              prior_transactions: Optional[Sequence[ParsedTransaction]] = None,
              page_count: Optional[int] = None, complete: bool = True,
              reporter: Optional[ProgressReporter] = None) -> ParseOutcome:
        """
        Parse page-segmented statement text into a validated statement.

        Fatal conditions never escape as exceptions: they end the run with a
        terminal error progress event and an invalid ValidationResult.

        Args:
            page_text: One string per page, index 0 is page 1
            filename: Source file name recorded on the statement
            hint: Bank id to use instead of (or to confirm) detection
            on_progress: Callback receiving every progress update
            channel: Bounded channel receiving every progress update
            cancel_token: Checked between stages and pages
            prior_transactions: Previously stored rows for duplicate checks
            page_count: Page count declared by the source document
            complete: Finish with saving/complete; False leaves the run at
                extracting so the caller can drive the remaining states
            reporter: Existing reporter to drive instead of a new one

        Returns:
            ParseOutcome

        Raises:
            EmptyInput: ``page_text`` is an empty list
        """
        if not page_text:
            raise EmptyInput("No pages supplied")

        reporter = reporter or ProgressReporter(on_progress, channel)
        total_pages = len(page_text)
        detection: Optional[DetectionResult] = None
        config: Optional[BankConfig] = None

        try:
            reporter.update(ParserStatus.READING, 0, f"Reading {filename}", total_pages=total_pages)
            if page_count is not None and page_count != total_pages:
                raise CorruptPageStructure(
                    f"Document declares {page_count} pages but {total_pages} were supplied"
                )
            if not any(page.strip() for page in page_text):
                raise EmptyInput("Statement text is empty")
            reporter.update(ParserStatus.READING, 10, f"Read {total_pages} pages")

            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            reporter.update(ParserStatus.PARSING, 10, "Detecting bank format")
            detection = self.detector.detect(page_text, hint)
            config = self._select_config(detection, hint)
            reporter.update(ParserStatus.PARSING, 20, f"Using {config.display_name} format")

            reporter.update(ParserStatus.EXTRACTING, 20, "Extracting transactions", total_pages=total_pages)
            extraction = StatementParser(config, self.settings, self.classifier).parse(
                page_text, reporter, cancel_token
            )

            transactions = mark_duplicates(
                extraction.transactions, prior_transactions, self.settings.duplicate_max_distance
            )
            period_start, period_end = self._statement_period(extraction.header, transactions)

            statement = ParsedStatement(
                bank_name=config.display_name,
                filename=filename,
                currency=config.currency,
                account_number=extraction.header.account_number,
                statement_period_start=period_start,
                statement_period_end=period_end,
                page_count=total_pages,
                opening_balance=extraction.header.opening_balance,
                closing_balance=extraction.header.closing_balance,
                transactions=transactions
            )

        except StatementParseError as e:
            logger.error(f"Parse of {filename} failed: {e.kind}: {e.message}")
            reporter.fail(e.message)
            return ParseOutcome(
                statement=None,
                validation=validation_failure(e.kind, e.message, config.bank_id if config else None),
                detection=detection,
                progress=reporter.snapshot()
            )

        validation = self.validator.validate(
            statement, detection, extraction.meta, hint,
            config.balance_reconciliation_tolerance, extraction.warnings, config.bank_id
        )

        if not validation.valid:
            reporter.fail(validation.errors[0])
            return ParseOutcome(
                statement=None,
                validation=validation,
                detection=detection,
                meta=extraction.meta,
                progress=reporter.snapshot()
            )

        stats = compute_stats(statement)
        if complete:
            reporter.update(ParserStatus.SAVING, 80, "Finalising statement")
            reporter.complete(f"Parsed {stats.transaction_count} transactions")

        logger.info(
            f"Parsed {filename}: {stats.transaction_count} transactions, "
            f"{stats.duplicate_count} duplicates, {len(validation.warnings)} warnings"
        )
        return ParseOutcome(
            statement=statement,
            validation=validation,
            detection=detection,
            meta=extraction.meta,
            stats=stats,
            progress=reporter.snapshot()
        )

    def _select_config(self, detection: DetectionResult, hint: Optional[str]) -> BankConfig:
        """An explicit hint wins over detection; otherwise detection must have found a bank."""
        if hint:
            config = self.registry.get(hint)
            if config is None:
                raise UnsupportedBankFormat(f"Unknown bank: {hint}")
            if detection.bank_id and detection.bank_id != config.bank_id:
                logger.warning(f"Bank hint {config.bank_id} overrides detected {detection.bank_id}")
            return config

        if detection.bank_id is None:
            raise UnsupportedBankFormat("Could not recognise the bank format; supply a bank hint")
        return self.registry.get(detection.bank_id)

    @staticmethod
    def _statement_period(header: StatementHeader,
                          transactions: Sequence[ParsedTransaction]) -> Tuple[date, date]:
        """Header period, else the span of transaction dates, else today."""
        if header.period_start and header.period_end:
            return header.period_start, header.period_end

        dates = [txn.transaction_date for txn in transactions if not txn.date_fallback]
        if dates:
            logger.info("No statement period found; using the span of transaction dates")
            return min(dates), max(dates)

        today = date.today()
        return today, today


def parse_statement(page_text: Sequence[str], filename: str = "statement.pdf",
                    hint: Optional[str] = None, on_progress: Optional[ProgressCallback] = None,
                    channel: Optional[ProgressChannel] = None,
                    cancel_token: Optional[CancellationToken] = None,
                    prior_transactions: Optional[Sequence[ParsedTransaction]] = None,
                    page_count: Optional[int] = None, complete: bool = True,
                    settings: Optional[ParserSettings] = None,
                    reporter: Optional[ProgressReporter] = None) -> ParseOutcome:
    """
    Parse a bank statement from page-segmented text.

    Args:
        page_text: One string per page
        filename: Source file name
        hint: Optional bank id
        on_progress: Optional progress callback
        settings: Engine settings

    Returns:
        ParseOutcome
    """
    engine = StatementEngine(settings)
    return engine.parse(
        page_text, filename=filename, hint=hint, on_progress=on_progress, channel=channel,
        cancel_token=cancel_token, prior_transactions=prior_transactions,
        page_count=page_count, complete=complete, reporter=reporter
    )


async def parse_statement_async(page_text: Sequence[str], **kwargs: Any) -> ParseOutcome:
    """Run ``parse_statement`` on a worker thread for event-loop callers."""
    return await asyncio.to_thread(parse_statement, page_text, **kwargs)


def parse_file(path: Union[str, Path], **kwargs: Any) -> ParseOutcome:
    """
    Parse a statement file (.pdf via pdfplumber, anything else as text pages).

    Args:
        path: Statement file
        **kwargs: Passed through to ``parse_statement``

    Returns:
        ParseOutcome
    """
    path = Path(path)
    pages = load_page_text(path)
    kwargs.setdefault("filename", path.name)
    return parse_statement(pages, **kwargs)


class BatchItem(BaseModel):
    filename: str
    outcome: ParseOutcome


class BatchResult(BaseModel):
    """Outcomes of a batch, in input order."""
    items: List[BatchItem] = Field(default_factory=list)

    @property
    def succeeded(self) -> List[BatchItem]:
        return [item for item in self.items if item.outcome.success]

    @property
    def failed(self) -> List[BatchItem]:
        return [item for item in self.items if not item.outcome.success]


def _parse_batch_item(engine: StatementEngine, filename: str, pages: Sequence[str],
                      kwargs: dict) -> BatchItem:
    try:
        outcome = engine.parse(pages, filename=filename, **kwargs)
    except EmptyInput as e:
        outcome = ParseOutcome(
            validation=validation_failure(e.kind, e.message),
            progress=ParserProgress(status=ParserStatus.ERROR, message=e.message)
        )
    return BatchItem(filename=filename, outcome=outcome)


def parse_statements(batch: Sequence[Tuple[str, Sequence[str]]], max_workers: int = 4,
                     settings: Optional[ParserSettings] = None, **kwargs: Any) -> BatchResult:
    """
    Parse several statements concurrently.

    Each statement gets its own reporter and scratch state; only the
    read-only registry is shared between workers.

    Args:
        batch: (filename, page_text) pairs
        max_workers: Thread pool size
        settings: Engine settings shared by every run
        **kwargs: Passed through to ``StatementEngine.parse``

    Returns:
        BatchResult
    """
    engine = StatementEngine(settings)
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [
            pool.submit(_parse_batch_item, engine, filename, pages, kwargs)
            for filename, pages in batch
        ]
        items = [future.result() for future in futures]

    result = BatchResult(items=items)
    logger.info(f"Batch finished: {len(result.succeeded)} succeeded, {len(result.failed)} failed")
    return result
