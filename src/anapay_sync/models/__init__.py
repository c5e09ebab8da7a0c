"""Data models and structures"""

from .core import (
    LedgerAccount,
    LedgerEntry,
    LedgerEntryCandidate,
    LedgerInstitution,
    LedgerTransactionAccount,
    LedgerUser,
    RunReport,
    SyncConfig,
    WalletAccount,
    WalletSession,
    WalletTransaction,
)

__all__ = [
    'LedgerAccount',
    'LedgerEntry',
    'LedgerEntryCandidate',
    'LedgerInstitution',
    'LedgerTransactionAccount',
    'LedgerUser',
    'RunReport',
    'SyncConfig',
    'WalletAccount',
    'WalletSession',
    'WalletTransaction',
]
