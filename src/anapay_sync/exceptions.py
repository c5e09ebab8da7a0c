"""Exception hierarchy for synchronization runs.

Errors fall into two groups:
- RecordError: a single wallet transaction could not be synchronized. The run
  logs it and moves on to the next record.
- SyncAbort: the run cannot continue. The caller decides how to exit.
"""

from typing import Any, Dict, Optional


class SyncError(Exception):
    """Base exception for all synchronization errors.

    Carries optional context such as the settlement number or HTTP status
    so log lines and error reports can point at the failing record.
    """

    def __init__(
        self,
        message: str,
        settlement_no: Optional[str] = None,
        field: Optional[str] = None,
        raw_value: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.settlement_no = settlement_no
        self.field = field
        self.raw_value = raw_value
        self.details = details or {}

        context_parts = []
        if settlement_no:
            context_parts.append(f"settlement: {settlement_no}")
        if field:
            context_parts.append(f"field: {field}")

        context = f" ({', '.join(context_parts)})" if context_parts else ""
        super().__init__(f"{message}{context}")


class RecordError(SyncError):
    """A single record failed; the run continues"""
    error_type = "UNEXPECTED_ERROR"


class DateParseError(RecordError):
    """Sale timestamp is not in YYYYMMDDHHMMSS layout"""
    error_type = "DATE_PARSE_ERROR"


class DedupLookupError(RecordError):
    """Searching the ledger for an existing entry failed"""
    error_type = "DEDUP_LOOKUP_ERROR"


class EntryCreationError(RecordError):
    """Creating the ledger entry failed"""
    error_type = "ENTRY_CREATION_ERROR"


class SyncAbort(SyncError):
    """Fatal condition; the run stops immediately"""
    error_type = "UNEXPECTED_ERROR"


class ConfigurationError(SyncAbort):
    """Configuration is missing or invalid"""
    error_type = "INVALID_CONFIG_VALUE"


class AuthenticationError(SyncAbort):
    """Authentication against the wallet provider or the ledger failed"""
    error_type = "AUTHENTICATION_FAILED"


class AccountBootstrapError(SyncAbort):
    """Ledger account could not be found or created"""
    error_type = "ACCOUNT_BOOTSTRAP_ERROR"


class BalanceParseError(SyncAbort):
    """Wallet balance is not a decimal number"""
    error_type = "BALANCE_PARSE_ERROR"


class TransportError(SyncAbort):
    """Unrecoverable network or API error"""
    error_type = "NETWORK_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class WalletAPIError(TransportError):
    """Wallet provider request failed"""


class LedgerAPIError(TransportError):
    """Ledger service request failed"""
