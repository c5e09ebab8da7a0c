"""Clients for the wallet provider and the ledger service"""

from .base import WalletClient, LedgerClient
from .anapay import AnaPayClient
from .pocketsmith import PocketSmithClient

__all__ = ['WalletClient', 'LedgerClient', 'AnaPayClient', 'PocketSmithClient']
