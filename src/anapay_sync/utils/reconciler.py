"""Wallet to ledger reconciliation.

A run has three phases:
1. Fetch: page through the wallet history into memory.
2. Reconcile: classify each record, look it up in the ledger and create the
   entry when it is missing.
3. Balance correction: reset the ledger's starting balance when the wallet
   balance is lower than the ledger's current balance.

The ledger is the only source of truth for deduplication; nothing is cached
between runs.
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional

from ..clients.base import LedgerClient, WalletClient
from ..exceptions import (
    AccountBootstrapError,
    BalanceParseError,
    DedupLookupError,
    EntryCreationError,
    LedgerAPIError,
    RecordError,
    TransportError,
)
from ..models.core import (
    LedgerAccount,
    LedgerEntry,
    LedgerEntryCandidate,
    RunReport,
    SyncConfig,
    WalletAccount,
    WalletSession,
    WalletTransaction,
)
from .classifier import TransactionClassifier
from .error_handler import ErrorCategory, ErrorHandler, handle_record_error


logger = logging.getLogger(__name__)


class Reconciler:
    """Synchronizes one wallet account into one ledger account."""

    def __init__(self,
                 wallet: WalletClient,
                 ledger: LedgerClient,
                 config: SyncConfig,
                 error_handler: Optional[ErrorHandler] = None,
                 classifier: Optional[TransactionClassifier] = None,
                 today: Callable[[], date] = date.today):
        self.wallet = wallet
        self.ledger = ledger
        self.config = config
        self.error_handler = error_handler or ErrorHandler(enable_console=False)
        self.classifier = classifier or TransactionClassifier(self.error_handler)
        self.today = today

    def run(self) -> RunReport:
        """Run a full synchronization.

        Returns:
            RunReport describing what was created, skipped and corrected

        Raises:
            SyncAbort: On authentication, account bootstrap, transport or
                balance parsing failures
        """
        report = RunReport()

        user = self.ledger.get_current_user()
        account = self.ledger.find_or_create_account(
            user.id, self.config.account_name,
            self.config.institution_name, self.config.currency_code
        )
        self.error_handler.log_info(f"Using ledger account '{account.title}' ({account.id})")

        session = self.wallet.authenticate(self.config.anapay_username, self.config.anapay_password)
        wallet_account = self.wallet.fetch_account(session)

        transactions = self.fetch_transactions(session, report)
        self.reconcile_transactions(transactions, account, report)
        self.correct_balance(wallet_account, account, report)

        self.error_handler.log_info(
            f"Sync finished: {report.created} created, {report.already_existing} already existing, "
            f"{report.skipped} skipped, {report.failed} failed",
            context={'report': report.to_dict()}
        )
        return report

    def fetch_transactions(self, session: WalletSession,
                           report: Optional[RunReport] = None) -> List[WalletTransaction]:
        """Page through the wallet history, starting at page 1.

        Stops at the first empty page or once more than num_transactions
        records are held. The early-exit rule in reconcile_transactions
        relies on the provider returning pages in a stable order (newest
        first); if that ever stops holding, every record must be checked
        against the ledger instead.
        """
        transactions: List[WalletTransaction] = []
        page_number = 1

        while True:
            page = self.wallet.fetch_transaction_page(session, page_number, self.config.page_size)
            if report is not None:
                report.pages_fetched += 1

            if not page:
                break

            transactions.extend(page)
            self.error_handler.log_debug(f"Fetched page {page_number} ({len(page)} transactions)")
            if len(transactions) > self.config.num_transactions:
                break

            page_number += 1

        if report is not None:
            report.fetched = len(transactions)
        return transactions

    def reconcile_transactions(self, transactions: List[WalletTransaction],
                               account: LedgerAccount, report: RunReport) -> RunReport:
        """Create ledger entries for transactions the ledger does not have yet.

        Records are visited in fetch order. Per-record failures are logged
        and skipped. Once more than repeat_threshold records are found to
        exist already, the remaining records are not examined.
        """
        target = account.entry_account
        total = len(transactions)
        self.error_handler.start_progress_tracking(total)

        for index, tx in enumerate(transactions, 1):
            try:
                candidate = self.classifier.classify(tx)
            except RecordError as e:
                handle_record_error(self.error_handler, e)
                report.skipped += 1
                report.errors.append(str(e))
                self.error_handler.update_progress('failed')
                continue

            try:
                existing = self.find_existing(target.id, candidate)
            except DedupLookupError as e:
                handle_record_error(self.error_handler, e)
                report.failed += 1
                report.errors.append(str(e))
                self.error_handler.update_progress('failed')
                continue

            if existing is not None:
                self.error_handler.log_info(
                    f"Found transaction already, won't add it again: {candidate.payee}"
                )
                report.already_existing += 1
                self.error_handler.update_progress('existing')
                if report.already_existing > self.config.repeat_threshold:
                    self.error_handler.log_info("Too many repeated existing transactions, stopping")
                    report.early_exit = True
                    break
                continue

            self.error_handler.log_info(
                f"[{index}/{total}] Creating transaction: {candidate.payee} {candidate.amount} "
                f"{candidate.date} transfer={candidate.is_transfer}"
            )
            try:
                self.create_entry(target.id, candidate)
            except EntryCreationError as e:
                handle_record_error(self.error_handler, e)
                report.failed += 1
                report.errors.append(str(e))
                self.error_handler.update_progress('failed')
                continue

            report.created += 1
            self.error_handler.update_progress('created')

        return report

    def find_existing(self, transaction_account_id: int,
                      candidate: LedgerEntryCandidate) -> Optional[LedgerEntry]:
        """Return the ledger entry already recording this candidate, if any

        Records without a settlement number cannot be identified and are
        always treated as new.

        Raises:
            DedupLookupError: If the ledger search fails or returns malformed data
        """
        if not candidate.dedup_key:
            self.error_handler.log_warning(
                f"No settlement number for {candidate.payee} on {candidate.date}, skipping dedup",
                "MISSING_SETTLEMENT_NO",
                category=ErrorCategory.DATA_PARSING
            )
            return None

        try:
            entries = self.ledger.search_transactions(
                transaction_account_id, date.fromisoformat(candidate.date), candidate.dedup_key
            )
        except TransportError as e:
            raise DedupLookupError(
                f"Error searching for transaction: {e.message}",
                settlement_no=candidate.dedup_key
            ) from e
        except (KeyError, TypeError, ValueError) as e:
            raise DedupLookupError(
                f"Malformed search result from ledger: {e!r}",
                settlement_no=candidate.dedup_key
            ) from e

        for entry in entries:
            if self.matches(entry, candidate):
                return entry
        return None

    def matches(self, entry: LedgerEntry, candidate: LedgerEntryCandidate) -> bool:
        """Decide whether an existing entry records the candidate.

        'reference' compares the entry's reference number and date; a bare
        settlement number is accepted for entries written by memo-based runs.
        'memo' only requires the settlement number in the memo.
        """
        if not candidate.dedup_key:
            return False

        if self.config.dedup_strategy == 'memo':
            return candidate.dedup_key in (entry.memo or '')

        if entry.date and entry.date != candidate.date:
            return False
        return entry.cheque_number in (candidate.reference_number, candidate.dedup_key)

    def create_entry(self, transaction_account_id: int,
                     candidate: LedgerEntryCandidate) -> LedgerEntry:
        """Raises EntryCreationError if the ledger rejects the entry"""
        try:
            return self.ledger.create_transaction(transaction_account_id, candidate)
        except TransportError as e:
            raise EntryCreationError(
                f"Error creating transaction: {e.message}",
                settlement_no=candidate.dedup_key
            ) from e
        except (KeyError, TypeError, ValueError) as e:
            raise EntryCreationError(
                f"Malformed response creating transaction: {e!r}",
                settlement_no=candidate.dedup_key
            ) from e

    def correct_balance(self, wallet_account: WalletAccount, account: LedgerAccount,
                        report: RunReport) -> RunReport:
        """Reset the ledger starting balance when the wallet balance is lower.

        Raises:
            BalanceParseError: If the wallet balance is not a number
            AccountBootstrapError: If the ledger account cannot be re-read
        """
        self.error_handler.log_info("Checking balance...")
        wallet_balance = parse_balance(wallet_account.balance)

        try:
            account = self.ledger.get_account(account.id)
        except (LedgerAPIError, KeyError) as e:
            raise AccountBootstrapError(f"Could not refresh ledger account {account.id}: {e}") from e

        report.wallet_balance = wallet_balance
        report.ledger_balance = account.current_balance
        self.error_handler.log_info(f"Wallet balance {wallet_balance}")
        self.error_handler.log_info(f"Ledger balance {account.current_balance}")

        if wallet_balance >= account.current_balance:
            self.error_handler.log_info("No balance update needed at this time.")
            return report

        self.error_handler.log_info(
            "Wallet balance is less than ledger account balance, updating starting balance"
        )
        primary = account.primary_transaction_account
        updated = self.ledger.update_starting_balance(
            primary.id, primary.institution_id, wallet_balance, self.today()
        )
        report.balance_corrected = True
        self.error_handler.log_info(f"Updated account starting balance: {updated.starting_balance}")
        return report


def parse_balance(raw: str) -> Decimal:
    """Parse the wallet's balance string

    Raises:
        BalanceParseError: If the value is empty or not a finite decimal
    """
    try:
        balance = Decimal(raw.strip())
    except (InvalidOperation, AttributeError) as e:
        raise BalanceParseError(f"Invalid wallet balance: '{raw}'", field='balance',
                                raw_value=raw) from e
    if not balance.is_finite():
        raise BalanceParseError(f"Invalid wallet balance: '{raw}'", field='balance', raw_value=raw)
    return balance
