"""HTTP client for the PocketSmith REST API (v2)."""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import requests

from ..exceptions import AccountBootstrapError, AuthenticationError, LedgerAPIError
from ..models.core import (
    LedgerAccount,
    LedgerEntry,
    LedgerEntryCandidate,
    LedgerInstitution,
    LedgerTransactionAccount,
    LedgerUser,
)
from .base import LedgerClient


logger = logging.getLogger(__name__)

BASE_URL = "https://api.pocketsmith.com/v2"

ACCOUNT_TYPE_CREDITS = "credits"


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        logger.warning(f"Ignoring non-numeric amount from ledger: {value!r}")
        return None


def _parse_transaction_account(data: Dict[str, Any]) -> LedgerTransactionAccount:
    institution = data.get('institution') or {}
    return LedgerTransactionAccount(
        id=data['id'],
        name=data.get('name') or '',
        institution_id=institution.get('id'),
        starting_balance=_to_decimal(data.get('starting_balance')),
        starting_balance_date=data.get('starting_balance_date'),
        current_balance=_to_decimal(data.get('current_balance')),
    )


def _parse_account(data: Dict[str, Any]) -> LedgerAccount:
    return LedgerAccount(
        id=data['id'],
        title=data.get('title') or '',
        current_balance=_to_decimal(data.get('current_balance')) or Decimal('0'),
        primary_transaction_account=_parse_transaction_account(
            data.get('primary_transaction_account') or {}
        ),
        transaction_accounts=[
            _parse_transaction_account(item)
            for item in data.get('transaction_accounts') or []
        ],
        currency_code=data.get('currency_code'),
    )


def _parse_entry(data: Dict[str, Any]) -> LedgerEntry:
    return LedgerEntry(
        id=data['id'],
        payee=data.get('payee') or '',
        amount=_to_decimal(data.get('amount')) or Decimal('0'),
        date=data.get('date') or '',
        memo=data.get('memo') or '',
        cheque_number=data.get('cheque_number'),
        is_transfer=bool(data.get('is_transfer')),
    )


class PocketSmithClient(LedgerClient):
    """Ledger client backed by the PocketSmith API"""

    def __init__(self, token: str, base_url: str = BASE_URL, timeout: int = 30,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'X-Developer-Key': token,
            'Accept': 'application/json',
            'Content-Type': 'application/json',
        })

    def get_current_user(self) -> LedgerUser:
        try:
            data = self._request('GET', '/me')
        except LedgerAPIError as e:
            if e.status_code in (401, 403):
                raise AuthenticationError(f"Ledger token rejected: {e.message}") from e
            raise
        return LedgerUser(id=data['id'], login=data.get('login'))

    # Account bootstrap

    def find_account_by_name(self, user_id: int, name: str) -> Optional[LedgerAccount]:
        for item in self._request('GET', f'/users/{user_id}/accounts') or []:
            if item.get('title') == name:
                return _parse_account(item)
        return None

    def find_institution_by_name(self, user_id: int, name: str) -> Optional[LedgerInstitution]:
        for item in self._request('GET', f'/users/{user_id}/institutions') or []:
            if item.get('title') == name:
                return LedgerInstitution(
                    id=item['id'],
                    title=item['title'],
                    currency_code=item.get('currency_code'),
                )
        return None

    def create_institution(self, user_id: int, name: str, currency_code: str) -> LedgerInstitution:
        data = self._request('POST', f'/users/{user_id}/institutions',
                             json={'title': name, 'currency_code': currency_code})
        logger.info(f"Created institution '{name}'")
        return LedgerInstitution(id=data['id'], title=data.get('title') or name,
                                 currency_code=data.get('currency_code'))

    def create_account(self, user_id: int, institution_id: int, name: str,
                       currency_code: str, account_type: str = ACCOUNT_TYPE_CREDITS) -> LedgerAccount:
        data = self._request('POST', f'/users/{user_id}/accounts', json={
            'institution_id': institution_id,
            'title': name,
            'currency_code': currency_code,
            'type': account_type,
        })
        logger.info(f"Created account '{name}'")
        return _parse_account(data)

    def find_or_create_account(self, user_id: int, account_name: str,
                               institution_name: str, currency_code: str) -> LedgerAccount:
        """Return the named account, creating it (and its institution) if missing.

        Raises:
            AccountBootstrapError: If any lookup or creation request fails
        """
        try:
            account = self.find_account_by_name(user_id, account_name)
            if account is not None:
                return account

            institution = self.find_institution_by_name(user_id, institution_name)
            if institution is None:
                institution = self.create_institution(user_id, institution_name, currency_code)

            return self.create_account(user_id, institution.id, account_name, currency_code)
        except (LedgerAPIError, KeyError) as e:
            raise AccountBootstrapError(
                f"Could not find or create account '{account_name}': {e}"
            ) from e

    def get_account(self, account_id: int) -> LedgerAccount:
        return _parse_account(self._request('GET', f'/accounts/{account_id}'))

    # Transactions

    def search_transactions(self, transaction_account_id: int, on_date: date,
                            search: str) -> List[LedgerEntry]:
        day = on_date.isoformat()
        path = f'/transaction_accounts/{transaction_account_id}/transactions'
        data = self._request('GET', path,
                             params={'start_date': day, 'end_date': day, 'search': search})
        try:
            return [_parse_entry(item) for item in data or []]
        except (KeyError, TypeError, AttributeError) as e:
            raise LedgerAPIError(f"GET {path} returned a malformed transaction: {e!r}") from e

    def create_transaction(self, transaction_account_id: int,
                           candidate: LedgerEntryCandidate) -> LedgerEntry:
        path = f'/transaction_accounts/{transaction_account_id}/transactions'
        data = self._request(
            'POST', path,
            json={
                'payee': candidate.payee,
                'amount': float(candidate.amount),
                'date': candidate.date,
                'is_transfer': candidate.is_transfer,
                'note': '',
                'memo': candidate.memo,
                'cheque_number': candidate.reference_number,
            }
        )
        try:
            return _parse_entry(data)
        except (KeyError, TypeError, AttributeError) as e:
            raise LedgerAPIError(f"POST {path} returned a malformed transaction: {e!r}") from e

    def update_starting_balance(self, transaction_account_id: int, institution_id: int,
                                balance: Decimal, as_of: date) -> LedgerTransactionAccount:
        data = self._request(
            'PUT', f'/transaction_accounts/{transaction_account_id}',
            json={
                'institution_id': institution_id,
                'starting_balance': float(balance),
                'starting_balance_date': as_of.isoformat(),
            }
        )
        return _parse_transaction_account(data)

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """Send a request and decode the JSON body.

        Raises:
            LedgerAPIError: On transport errors, non-2xx responses or invalid JSON
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise LedgerAPIError(f"{method} {path} failed: {e}", status_code=status) from e
        except requests.RequestException as e:
            raise LedgerAPIError(f"{method} {path} failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise LedgerAPIError(f"{method} {path} returned invalid JSON",
                                 status_code=response.status_code) from e
