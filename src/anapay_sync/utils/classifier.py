"""Wallet transaction classification.

Maps one raw wallet record to a ledger entry candidate. Sign convention:
- Purchases (money leaving the wallet) are negative
- Top-ups, cashback and refunds (money entering the wallet) are positive
- Wallet charges from the funding source are flagged as transfers
"""

import logging
import re
import unicodedata
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple

from ..exceptions import DateParseError
from ..models.core import LedgerEntryCandidate, WalletTransaction
from .error_handler import ErrorCategory, ErrorHandler


logger = logging.getLogger(__name__)

SALE_DATETIME_FORMAT = "%Y%m%d%H%M%S"

TOP_UP = "top-up"
CASHBACK = "cashback"
UNKNOWN_TYPE = "unknown transaction type"


class TransactionClassifier:
    """Classifies wallet transactions and derives their ledger representation."""

    # dealType codes whose amount enters the wallet
    INCOMING_DEAL_TYPES = {'05', '06'}

    # delKbn codes whose amount enters the wallet (refunds, cancellations)
    INCOMING_DEL_KBNS = {'02', '07', '08'}

    # dealType -> (display text, transfer flag); checked before description types
    DEAL_TYPES = {
        '05': (TOP_UP, True),
        '06': (CASHBACK, False),
    }

    # descriptionType -> (display text, transfer flag)
    DESCRIPTION_TYPES = {
        '3001': ("credit card", False),
        '3006': ("mobile-wallet tap-to-pay", False),
        '3007': (CASHBACK, False),
        '3009': ("auto top-up", True),
        '1017': ("virtual prepaid card", False),
        '1018': ("contactless card payment", False),
        '1019': ("contactless ID payment", False),
    }

    def __init__(self, error_handler: Optional[ErrorHandler] = None):
        self.error_handler = error_handler

    def classify(self, tx: WalletTransaction) -> LedgerEntryCandidate:
        """Build the ledger entry candidate for a wallet transaction.

        Args:
            tx: Raw wallet transaction

        Returns:
            LedgerEntryCandidate with signed amount, payee, memo and dedup key

        Raises:
            DateParseError: If the sale timestamp is malformed
        """
        date = self.parse_sale_date(tx)
        amount = self.signed_amount(tx)
        category_text, is_transfer = self.classify_type(tx)
        name = self.resolve_payee(tx, category_text)

        return LedgerEntryCandidate(
            amount=amount,
            payee=sanitize_payee(name),
            is_transfer=is_transfer,
            date=date,
            memo=self.build_memo(name, tx.wallet_settlement_no, category_text),
            dedup_key=tx.wallet_settlement_no,
            settlement_sub_no=tx.wallet_settlement_sub_no,
            category_text=category_text,
        )

    def signed_amount(self, tx: WalletTransaction) -> Decimal:
        """Return the amount with the ledger sign applied.

        Empty amounts are zero. Unparseable amounts are logged as a warning
        and also treated as zero, so the record is still synchronized.
        """
        raw = tx.amount.strip()
        if not raw:
            return Decimal('0')

        try:
            magnitude = Decimal(raw)
        except InvalidOperation:
            magnitude = None

        if magnitude is None or not magnitude.is_finite():
            self._warn_invalid_amount(tx)
            return Decimal('0')

        if self.is_incoming(tx):
            return magnitude
        return -magnitude

    def _warn_invalid_amount(self, tx: WalletTransaction):
        message = f"Invalid amount '{tx.amount}', recording 0"
        if self.error_handler is None:
            logger.warning(f"{message} (settlement: {tx.wallet_settlement_no})")
            return
        self.error_handler.log_warning(
            message,
            "AMOUNT_PARSE_ERROR",
            category=ErrorCategory.DATA_PARSING,
            settlement_no=tx.wallet_settlement_no,
            context={'field': 'amount', 'raw_value': tx.amount}
        )

    def is_incoming(self, tx: WalletTransaction) -> bool:
        """True when the transaction increases the wallet balance"""
        return (tx.deal_type in self.INCOMING_DEAL_TYPES
                or tx.del_kbn in self.INCOMING_DEL_KBNS)

    def classify_type(self, tx: WalletTransaction) -> Tuple[str, bool]:
        """Return (display text, transfer flag). First match wins, deal types first."""
        if tx.deal_type in self.DEAL_TYPES:
            return self.DEAL_TYPES[tx.deal_type]

        if tx.description_type in self.DESCRIPTION_TYPES:
            return self.DESCRIPTION_TYPES[tx.description_type]

        logger.debug(f"Unknown transaction type: dealType={tx.deal_type!r} "
                     f"descriptionType={tx.description_type!r}")
        return UNKNOWN_TYPE, False

    def resolve_payee(self, tx: WalletTransaction, category_text: str) -> str:
        """Use the shop name when present, otherwise the display text"""
        name = tx.shop_name.strip()
        return name or category_text

    def parse_sale_date(self, tx: WalletTransaction) -> str:
        """Convert a YYYYMMDDHHMMSS timestamp to a YYYY-MM-DD date"""
        try:
            # strptime alone accepts single-digit fields
            if len(tx.sale_datetime) != 14 or not tx.sale_datetime.isdigit():
                raise ValueError("expected 14 digits")
            parsed = datetime.strptime(tx.sale_datetime, SALE_DATETIME_FORMAT)
        except (TypeError, ValueError) as e:
            raise DateParseError(
                f"Unable to parse sale date: '{tx.sale_datetime}'",
                settlement_no=tx.wallet_settlement_no,
                field='saleDatetime',
                raw_value=tx.sale_datetime
            ) from e
        return parsed.strftime('%Y-%m-%d')

    def build_memo(self, name: str, settlement_no: str, category_text: str) -> str:
        return f"{name.strip()} {settlement_no} {category_text}"


def sanitize_payee(name: str) -> str:
    """Normalize a payee name for the ledger.

    Full-width letters, digits and spaces fold into their ASCII forms and
    whitespace runs collapse into a single space.
    """
    normalized = unicodedata.normalize('NFKC', name)
    return re.sub(r'\s+', ' ', normalized).strip()
