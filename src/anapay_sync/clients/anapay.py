"""HTTP client for the ANA Pay wallet API."""

import logging
from typing import Any, Dict, List, Optional

import requests

from ..exceptions import AuthenticationError, WalletAPIError
from ..models.core import WalletAccount, WalletSession, WalletTransaction
from .base import WalletClient


logger = logging.getLogger(__name__)

BASE_URL = "https://teikei1.api.mkpst.com"

# The API only answers requests that look like the mobile app
DEFAULT_HEADERS = {
    "Host": "teikei1.api.mkpst.com",
    "Accept": "application/json",
    "User-Agent": "ANAMileage/4.31.0 (jp.co.ana.anamile; build:4; iOS 18.1.0) Alamofire/5.9.1",
    "Accept-Language": "ja-JP;q=1.0, en-AU;q=0.9, de-JP;q=0.8",
    "Content-Type": "application/json",
}


class AnaPayClient(WalletClient):
    """Wallet client backed by the ANA Pay mobile API"""

    def __init__(self, base_url: str = BASE_URL, timeout: int = 30,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(DEFAULT_HEADERS)

    def authenticate(self, username: str, password: str) -> WalletSession:
        """Log in with the wallet ID and device ID.

        Raises:
            AuthenticationError: If the provider rejects the credentials or
                returns no access token
        """
        try:
            data = self._request(
                'POST', '/ana/accounts/login',
                json={'anaWalletId': username, 'deviceId': password}
            )
        except WalletAPIError as e:
            raise AuthenticationError(f"Wallet login failed: {e.message}") from e

        access_token = data.get('accessToken') if isinstance(data, dict) else None
        if not access_token:
            raise AuthenticationError("Wallet login returned no access token")

        logger.info("Authenticated with wallet provider")
        return WalletSession(
            access_token=access_token,
            token_type=data.get('tokenType') or 'Bearer',
            refresh_token=data.get('refreshToken'),
            expires_in=data.get('expiresIn'),
        )

    def fetch_account(self, session: WalletSession) -> WalletAccount:
        data = self._request(
            'GET', '/accounts',
            session=session,
            params={'balanceReferenceFlag': 1, 'nfcStatusReferenceFlag': 1}
        )
        logger.debug(f"Wallet account response: {data}")

        return WalletAccount(
            balance=data.get('balance') or '',
            reference_number=data.get('referenceNumber'),
            account_status=data.get('accountStatus'),
        )

    def fetch_transaction_page(self, session: WalletSession, page_number: int = 1,
                               page_size: int = 999) -> List[WalletTransaction]:
        data = self._request(
            'GET', '/salesDetails',
            session=session,
            params={
                'pageSize': page_size,
                'pageNumber': page_number,
                'historyType': '',
                'settlementType': '',
            }
        )
        history = data.get('history') or []
        return [WalletTransaction.from_api(item) for item in history]

    def _request(self, method: str, path: str, session: Optional[WalletSession] = None,
                 **kwargs) -> Dict[str, Any]:
        """Send a request and decode the JSON body.

        Raises:
            WalletAPIError: On transport errors, non-2xx responses or invalid JSON
        """
        headers = {}
        if session is not None:
            headers['Authorization'] = f"Bearer {session.access_token}"

        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, headers=headers,
                                            timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise WalletAPIError(f"{method} {path} failed: {e}", status_code=status) from e
        except requests.RequestException as e:
            raise WalletAPIError(f"{method} {path} failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise WalletAPIError(f"{method} {path} returned invalid JSON",
                                 status_code=response.status_code) from e
