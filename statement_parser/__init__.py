"""
Bank Statement Parser

A deterministic engine that turns page-segmented bank statement text into
validated, classified and de-duplicated transactions, using YAML bank
templates, fuzzy header-marker detection and running-balance reconciliation.
"""

__version__ = "1.0.0"
__author__ = "statement-parser contributors"

from .core.runner import parse_file, parse_statement, parse_statement_async, parse_statements
from .core.detectors import detect_bank
from .core.stats import compute_stats
from .core.dedupe import mark_duplicates
from .core.classifier import classify, reclassify
from .core.export import to_csv, to_json
from .core.errors import (
    CorruptPageStructure, EmptyInput, InvalidProgressTransition, ParseCancelled,
    StatementParseError, UnsupportedBankFormat
)
from .core.progress import CancellationToken, ProgressChannel
from .core.settings import ParserSettings, load_settings
from .models.schema import (
    DetectionResult, ExportOptions, ParsedStatement, ParsedTransaction, ParseOutcome,
    ParserProgress, ParserStatus, StatementStats, TransactionType, ValidationResult
)

__all__ = [
    "parse_statement",
    "parse_statement_async",
    "parse_statements",
    "parse_file",
    "detect_bank",
    "compute_stats",
    "mark_duplicates",
    "classify",
    "reclassify",
    "to_csv",
    "to_json",
    "StatementParseError",
    "UnsupportedBankFormat",
    "EmptyInput",
    "CorruptPageStructure",
    "ParseCancelled",
    "InvalidProgressTransition",
    "CancellationToken",
    "ProgressChannel",
    "ParserSettings",
    "load_settings",
    "DetectionResult",
    "ExportOptions",
    "ParsedStatement",
    "ParsedTransaction",
    "ParseOutcome",
    "ParserProgress",
    "ParserStatus",
    "StatementStats",
    "TransactionType",
    "ValidationResult"
]
