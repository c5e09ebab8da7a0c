"""Error handling and logging system for synchronization runs."""

import itertools
import json
import logging
import sys
import traceback
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Any

import sentry_sdk

from ..exceptions import RecordError, SyncAbort


class ErrorSeverity(Enum):
    """Error severity levels"""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification"""
    AUTHENTICATION = "authentication"
    NETWORK = "network"
    DATA_PARSING = "data_parsing"
    LEDGER = "ledger"
    CONFIGURATION = "configuration"
    SYSTEM = "system"


@dataclass
class ErrorDetail:
    """Detailed error information"""
    timestamp: str
    severity: str
    category: str
    error_code: str
    message: str
    settlement_no: Optional[str] = None
    field_name: Optional[str] = None
    raw_value: Optional[str] = None
    stack_trace: Optional[str] = None
    context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return asdict(self)


@dataclass
class SyncProgress:
    """Progress tracking over the fetched wallet transactions"""
    total_transactions: int
    processed: int = 0
    created: int = 0
    existing: int = 0
    failed: int = 0
    start_time: Optional[datetime] = None

    @property
    def completion_percentage(self) -> float:
        if self.total_transactions == 0:
            return 0.0
        return (self.processed / self.total_transactions) * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_transactions': self.total_transactions,
            'processed': self.processed,
            'created': self.created,
            'existing': self.existing,
            'failed': self.failed,
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'completion_percentage': self.completion_percentage,
        }


# Categories for the error types raised by the sync engine
ERROR_CATEGORIES = {
    "AUTHENTICATION_FAILED": ErrorCategory.AUTHENTICATION,
    "NETWORK_ERROR": ErrorCategory.NETWORK,
    "DATE_PARSE_ERROR": ErrorCategory.DATA_PARSING,
    "AMOUNT_PARSE_ERROR": ErrorCategory.DATA_PARSING,
    "BALANCE_PARSE_ERROR": ErrorCategory.DATA_PARSING,
    "MISSING_SETTLEMENT_NO": ErrorCategory.DATA_PARSING,
    "DEDUP_LOOKUP_ERROR": ErrorCategory.LEDGER,
    "ENTRY_CREATION_ERROR": ErrorCategory.LEDGER,
    "ACCOUNT_BOOTSTRAP_ERROR": ErrorCategory.LEDGER,
    "BALANCE_UPDATE_ERROR": ErrorCategory.LEDGER,
    "INVALID_CONFIG_VALUE": ErrorCategory.CONFIGURATION,
}

_logger_ids = itertools.count(1)


class ErrorHandler:
    """Structured error logging for a synchronization run.

    Keeps every error and warning as an ErrorDetail for the run summary,
    writes a human-readable console log and, when a log directory is given,
    JSONL logs next to it. Errors carrying an exception are also reported to
    Sentry (a no-op unless Sentry was initialized).
    """

    def __init__(self, log_directory: Optional[str] = None, enable_console: bool = True):
        self.log_directory = Path(log_directory) if log_directory else None
        if self.log_directory:
            self.log_directory.mkdir(parents=True, exist_ok=True)

        self.errors: List[ErrorDetail] = []
        self.warnings: List[ErrorDetail] = []
        self.progress: Optional[SyncProgress] = None

        self._setup_logging(enable_console)

        self.error_codes = {
            # Authentication and transport
            "AUTHENTICATION_FAILED": "A001",
            "NETWORK_ERROR": "A002",

            # Record parsing
            "DATE_PARSE_ERROR": "D001",
            "AMOUNT_PARSE_ERROR": "D002",
            "BALANCE_PARSE_ERROR": "D003",
            "MISSING_SETTLEMENT_NO": "D004",

            # Ledger operations
            "DEDUP_LOOKUP_ERROR": "L001",
            "ENTRY_CREATION_ERROR": "L002",
            "ACCOUNT_BOOTSTRAP_ERROR": "L003",
            "BALANCE_UPDATE_ERROR": "L004",

            # Configuration
            "CONFIG_FILE_NOT_FOUND": "C001",
            "INVALID_CONFIG_FORMAT": "C002",
            "INVALID_CONFIG_VALUE": "C004",

            "UNEXPECTED_ERROR": "S999"
        }

    def _setup_logging(self, enable_console: bool):
        """Set up console and JSON logging on a logger owned by this handler"""
        self.logger = logging.getLogger(f'anapay_sync.run.{next(_logger_ids)}')
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False

        class JSONFormatter(logging.Formatter):
            def format(self, record):
                log_entry = {
                    'timestamp': datetime.fromtimestamp(record.created).isoformat(),
                    'level': record.levelname,
                    'logger': record.name,
                    'message': record.getMessage(),
                    'module': record.module,
                    'function': record.funcName,
                    'line': record.lineno
                }

                if hasattr(record, 'error_code'):
                    log_entry['error_code'] = record.error_code
                if hasattr(record, 'settlement_no'):
                    log_entry['settlement_no'] = record.settlement_no
                if hasattr(record, 'category'):
                    log_entry['category'] = record.category
                if hasattr(record, 'context'):
                    log_entry['context'] = record.context

                return json.dumps(log_entry, default=str)

        if self.log_directory:
            log_file = self.log_directory / f"sync_{datetime.now().strftime('%Y%m%d')}.jsonl"
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(JSONFormatter())
            self.logger.addHandler(file_handler)

            error_file = self.log_directory / f"errors_{datetime.now().strftime('%Y%m%d')}.jsonl"
            error_handler = logging.FileHandler(error_file)
            error_handler.setLevel(logging.ERROR)
            error_handler.setFormatter(JSONFormatter())
            self.logger.addHandler(error_handler)

        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(logging.INFO)
            console_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(levelname)s - %(message)s'
            ))
            self.logger.addHandler(console_handler)

    def log_error(self,
                  message: str,
                  error_type: str,
                  category: Optional[ErrorCategory] = None,
                  settlement_no: Optional[str] = None,
                  field_name: Optional[str] = None,
                  raw_value: Optional[str] = None,
                  exception: Optional[Exception] = None,
                  context: Optional[Dict[str, Any]] = None,
                  severity: ErrorSeverity = ErrorSeverity.ERROR) -> ErrorDetail:
        """Log an error with detailed information"""
        category = category or ERROR_CATEGORIES.get(error_type, ErrorCategory.SYSTEM)
        error_code = self.error_codes.get(error_type, "S999")
        stack_trace = None

        if exception:
            stack_trace = ''.join(traceback.format_exception(
                type(exception), exception, exception.__traceback__
            ))
            sentry_sdk.capture_exception(exception)

        error_detail = ErrorDetail(
            timestamp=datetime.now().isoformat(),
            severity=severity.value,
            category=category.value,
            error_code=error_code,
            message=message,
            settlement_no=settlement_no,
            field_name=field_name,
            raw_value=raw_value,
            stack_trace=stack_trace,
            context=context or {}
        )

        self.errors.append(error_detail)

        log = self.logger.critical if severity == ErrorSeverity.CRITICAL else self.logger.error
        log(
            message,
            extra={
                'error_code': error_code,
                'category': category.value,
                'settlement_no': settlement_no,
                'context': context or {}
            }
        )

        return error_detail

    def log_warning(self,
                    message: str,
                    warning_type: str,
                    category: ErrorCategory = ErrorCategory.SYSTEM,
                    settlement_no: Optional[str] = None,
                    context: Optional[Dict[str, Any]] = None) -> ErrorDetail:
        """Log a warning with detailed information"""
        warning_code = self.error_codes.get(warning_type, "W999")

        warning_detail = ErrorDetail(
            timestamp=datetime.now().isoformat(),
            severity=ErrorSeverity.WARNING.value,
            category=category.value,
            error_code=warning_code,
            message=message,
            settlement_no=settlement_no,
            context=context or {}
        )

        self.warnings.append(warning_detail)

        self.logger.warning(
            message,
            extra={
                'error_code': warning_code,
                'category': category.value,
                'settlement_no': settlement_no,
                'context': context or {}
            }
        )

        return warning_detail

    def log_info(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.logger.info(message, extra={'context': context or {}})

    def log_debug(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.logger.debug(message, extra={'context': context or {}})

    def start_progress_tracking(self, total_transactions: int) -> SyncProgress:
        """Start tracking progress over the fetched transactions"""
        self.progress = SyncProgress(
            total_transactions=total_transactions,
            start_time=datetime.now()
        )
        self.log_info(f"Found {total_transactions} transactions")
        return self.progress

    def update_progress(self, outcome: str):
        """Record the outcome of one transaction: 'created', 'existing' or 'failed'"""
        if not self.progress:
            return

        self.progress.processed += 1
        if outcome == 'created':
            self.progress.created += 1
        elif outcome == 'existing':
            self.progress.existing += 1
        else:
            self.progress.failed += 1

        if self.progress.processed % 50 == 0:
            self.log_info(
                f"Progress: {self.progress.completion_percentage:.1f}% "
                f"({self.progress.processed}/{self.progress.total_transactions})",
                context={'progress': self.progress.to_dict()}
            )

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of all errors and warnings"""
        errors_by_category: Dict[str, int] = {}
        warnings_by_category: Dict[str, int] = {}

        for error in self.errors:
            errors_by_category[error.category] = errors_by_category.get(error.category, 0) + 1
        for warning in self.warnings:
            warnings_by_category[warning.category] = warnings_by_category.get(warning.category, 0) + 1

        return {
            'total_errors': len(self.errors),
            'total_warnings': len(self.warnings),
            'errors_by_category': errors_by_category,
            'warnings_by_category': warnings_by_category,
            'failed_settlements': sorted({e.settlement_no for e in self.errors if e.settlement_no}),
            'progress': self.progress.to_dict() if self.progress else None
        }

    def generate_error_report(self, output_file: Optional[str] = None) -> str:
        """Write all errors and warnings to a JSON report and return its path"""
        if output_file is None:
            directory = self.log_directory or Path('.')
            output_file = str(directory / f"error_report_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json")

        report = {
            'report_timestamp': datetime.now().isoformat(),
            'summary': self.get_error_summary(),
            'all_errors': [error.to_dict() for error in self.errors],
            'all_warnings': [warning.to_dict() for warning in self.warnings]
        }

        with open(output_file, 'w') as f:
            json.dump(report, f, indent=2, default=str)

        self.log_info(f"Error report generated: {output_file}")
        return output_file

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def has_warnings(self) -> bool:
        return len(self.warnings) > 0


def handle_record_error(error_handler: ErrorHandler, error: RecordError) -> ErrorDetail:
    """Log a per-record failure; the run continues"""
    return error_handler.log_error(
        str(error),
        error.error_type,
        settlement_no=error.settlement_no,
        field_name=error.field,
        raw_value=error.raw_value,
        exception=error
    )


def handle_fatal_error(error_handler: ErrorHandler, error: SyncAbort) -> ErrorDetail:
    """Log an error that aborts the run"""
    return error_handler.log_error(
        f"Aborting sync: {error}",
        error.error_type,
        settlement_no=error.settlement_no,
        exception=error,
        context=error.details,
        severity=ErrorSeverity.CRITICAL
    )
