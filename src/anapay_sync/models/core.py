"""Core data models for the wallet to ledger synchronizer."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Dict, Any, Optional


@dataclass(frozen=True)
class WalletTransaction:
    """Raw transaction record as returned by the wallet provider.

    All fields are kept as the provider's strings. Example payload:

        {
          "saleDatetime": "20241223011207",
          "settlementType": "",
          "dealType": "05",
          "delKbn": "01",
          "descriptionType": "3009",
          "shopName": "",
          "amount": "5000",
          "walletSettlementNo": "23123401120741221241",
          "walletSettlementSubNo": "01",
          "pointConversionAmount": ""
        }
    """
    sale_datetime: str
    deal_type: str = ""
    del_kbn: str = ""
    description_type: str = ""
    shop_name: str = ""
    amount: str = ""
    wallet_settlement_no: str = ""
    wallet_settlement_sub_no: str = ""
    settlement_type: str = ""
    point_conversion_amount: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'WalletTransaction':
        """Build a transaction from the provider's camelCase JSON object"""
        return cls(
            sale_datetime=data.get('saleDatetime') or '',
            deal_type=data.get('dealType') or '',
            del_kbn=data.get('delKbn') or '',
            description_type=data.get('descriptionType') or '',
            shop_name=data.get('shopName') or '',
            amount=data.get('amount') or '',
            wallet_settlement_no=data.get('walletSettlementNo') or '',
            wallet_settlement_sub_no=data.get('walletSettlementSubNo') or '',
            settlement_type=data.get('settlementType') or '',
            point_conversion_amount=data.get('pointConversionAmount') or '',
        )


@dataclass
class WalletSession:
    """Authenticated session with the wallet provider"""
    access_token: str
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    expires_in: Optional[str] = None


@dataclass
class WalletAccount:
    """Wallet account summary. Balance stays a raw string until reconciliation."""
    balance: str
    reference_number: Optional[str] = None
    account_status: Optional[str] = None


@dataclass(frozen=True)
class LedgerEntryCandidate:
    """Normalized ledger entry derived from exactly one wallet transaction.

    Attributes:
        amount: Signed amount, positive for money entering the wallet
        payee: Display name of the counterparty
        is_transfer: True when money moves between the wallet and its funding source
        date: Calendar date in YYYY-MM-DD format
        memo: Free text memo carrying the settlement number
        dedup_key: Settlement number of the source transaction
        settlement_sub_no: Settlement sub-number of the source transaction
        category_text: Classified display text for the transaction type
    """
    amount: Decimal
    payee: str
    is_transfer: bool
    date: str
    memo: str
    dedup_key: str
    settlement_sub_no: str = ""
    category_text: str = ""

    @property
    def reference_number(self) -> str:
        """Reference stored on the ledger entry, scoped by sub-number when present"""
        if self.settlement_sub_no:
            return f"{self.dedup_key}-{self.settlement_sub_no}"
        return self.dedup_key


@dataclass
class LedgerUser:
    """Authenticated ledger user"""
    id: int
    login: Optional[str] = None


@dataclass
class LedgerInstitution:
    """Institution grouping ledger accounts"""
    id: int
    title: str
    currency_code: Optional[str] = None


@dataclass
class LedgerTransactionAccount:
    """Transaction account holding the entries and the starting balance"""
    id: int
    name: str = ""
    institution_id: Optional[int] = None
    starting_balance: Optional[Decimal] = None
    starting_balance_date: Optional[str] = None
    current_balance: Optional[Decimal] = None


@dataclass
class LedgerAccount:
    """Ledger account as seen by the synchronizer"""
    id: int
    title: str
    current_balance: Decimal
    primary_transaction_account: LedgerTransactionAccount
    transaction_accounts: List[LedgerTransactionAccount] = field(default_factory=list)
    currency_code: Optional[str] = None

    @property
    def entry_account(self) -> LedgerTransactionAccount:
        """Transaction account new entries are written to"""
        if self.transaction_accounts:
            return self.transaction_accounts[0]
        return self.primary_transaction_account


@dataclass
class LedgerEntry:
    """Existing ledger entry returned by a search"""
    id: int
    payee: str
    amount: Decimal
    date: str
    memo: str = ""
    cheque_number: Optional[str] = None
    is_transfer: bool = False


@dataclass
class SyncConfig:
    """Explicit configuration for one synchronization run"""
    anapay_username: str = ""
    anapay_password: str = ""
    pocketsmith_token: str = ""
    num_transactions: int = 100
    page_size: int = 999
    repeat_threshold: int = 10
    dedup_strategy: str = "reference"
    account_name: str = "ANA Pay"
    institution_name: str = "ANA Pay"
    currency_code: str = "jpy"
    request_timeout: int = 30
    sentry_dsn: Optional[str] = None
    log_directory: Optional[str] = None


@dataclass
class RunReport:
    """Outcome of a synchronization run"""
    fetched: int = 0
    pages_fetched: int = 0
    created: int = 0
    already_existing: int = 0
    skipped: int = 0
    failed: int = 0
    early_exit: bool = False
    wallet_balance: Optional[Decimal] = None
    ledger_balance: Optional[Decimal] = None
    balance_corrected: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.created + self.already_existing + self.skipped + self.failed

    @property
    def success(self) -> bool:
        return self.failed == 0 and self.skipped == 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            'fetched': self.fetched,
            'pages_fetched': self.pages_fetched,
            'created': self.created,
            'already_existing': self.already_existing,
            'skipped': self.skipped,
            'failed': self.failed,
            'early_exit': self.early_exit,
            'wallet_balance': str(self.wallet_balance) if self.wallet_balance is not None else None,
            'ledger_balance': str(self.ledger_balance) if self.ledger_balance is not None else None,
            'balance_corrected': self.balance_corrected,
            'errors': list(self.errors),
        }
