"""Abstract interfaces for the wallet provider and the ledger service."""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import List

from ..models.core import (
    LedgerAccount,
    LedgerEntry,
    LedgerEntryCandidate,
    LedgerTransactionAccount,
    LedgerUser,
    WalletAccount,
    WalletSession,
    WalletTransaction,
)


class WalletClient(ABC):
    """Read-only access to the wallet provider"""

    @abstractmethod
    def authenticate(self, username: str, password: str) -> WalletSession:
        """Log in and return a session"""
        pass

    @abstractmethod
    def fetch_account(self, session: WalletSession) -> WalletAccount:
        """Return the wallet account summary including its balance"""
        pass

    @abstractmethod
    def fetch_transaction_page(self, session: WalletSession, page_number: int,
                               page_size: int) -> List[WalletTransaction]:
        """Return one page of transaction history. An empty page ends the history."""
        pass


class LedgerClient(ABC):
    """Access to the personal-finance ledger, the system of record for dedup"""

    @abstractmethod
    def get_current_user(self) -> LedgerUser:
        pass

    @abstractmethod
    def find_or_create_account(self, user_id: int, account_name: str,
                               institution_name: str, currency_code: str) -> LedgerAccount:
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> LedgerAccount:
        pass

    @abstractmethod
    def search_transactions(self, transaction_account_id: int, on_date: date,
                            search: str) -> List[LedgerEntry]:
        """Return entries on the given date whose text matches the search term"""
        pass

    @abstractmethod
    def create_transaction(self, transaction_account_id: int,
                           candidate: LedgerEntryCandidate) -> LedgerEntry:
        pass

    @abstractmethod
    def update_starting_balance(self, transaction_account_id: int, institution_id: int,
                                balance: Decimal, as_of: date) -> LedgerTransactionAccount:
        pass
