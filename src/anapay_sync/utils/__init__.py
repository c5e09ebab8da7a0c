"""Utility functions and helpers"""

from .classifier import TransactionClassifier, sanitize_payee
from .config_manager import ConfigManager
from .error_handler import ErrorHandler, ErrorCategory, ErrorSeverity, handle_record_error, handle_fatal_error
from .reconciler import Reconciler, parse_balance
from .telemetry import init_sentry

__all__ = [
    'TransactionClassifier',
    'sanitize_payee',
    'ConfigManager',
    'ErrorHandler',
    'ErrorCategory',
    'ErrorSeverity',
    'handle_record_error',
    'handle_fatal_error',
    'Reconciler',
    'parse_balance',
    'init_sentry',
]
