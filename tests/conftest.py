"""
Pytest configuration and fixtures for WalletCards tests.
"""
from __future__ import annotations

import logging
from typing import Optional
from unittest.mock import AsyncMock

import pytest

from walletcards.auth import Authenticator, AuthUser
from walletcards.client import AsyncWalletCardsClient
from walletcards.exceptions import AuthenticationError
from walletcards.models import CardDetailResponse, CardListResponse, ThreeDSResponse

BASE_URL = "https://api.test/api/"
USER_EMAIL = "jane@example.com"


@pytest.fixture(autouse=True)
def reset_walletcards_logger():
    """Undo setup_logging() so caplog keeps working across tests."""
    yield
    logger = logging.getLogger("walletcards")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def base_url():
    return BASE_URL


@pytest.fixture
def user_email():
    return USER_EMAIL


@pytest.fixture
async def client(base_url):
    """Real gateway client; pair with the httpx_mock fixture."""
    client = AsyncWalletCardsClient(
        public_key="pk_test",
        secret_key="sk_test",
        base_url=base_url,
    )
    yield client
    await client.close()


@pytest.fixture
def fake_client():
    """Gateway double for workflow tests."""
    return AsyncMock(spec=AsyncWalletCardsClient)


# ==================== Payloads ====================


@pytest.fixture
def card_list_payload():
    return {
        "code": 200,
        "status": "success",
        "message": "Cards fetched",
        "subuserfee": 20,
        "data": [
            {
                "cardid": "card_123",
                "nameoncard": "JANE DOE",
                "useremail": USER_EMAIL,
                "lastfour": "1234",
                "brand": "VISA",
                "type": "virtual",
                "paidcard": 1,
            },
            {
                "cardid": None,
                "nameoncard": "JANE DOE",
                "useremail": USER_EMAIL,
                "lastfour": "",
                "brand": "VISA",
                "paidcard": 0,
                "depositaddress": "0xpending",
            },
        ],
    }


@pytest.fixture
def card_detail_payload():
    return {
        "code": 200,
        "status": "success",
        "message": "Card fetched",
        "data": {
            "card_number": 4111111111111234,
            "expiry_month": "08",
            "expiry_year": "2029",
            "cvv": "987",
            "nameoncard": "JANE DOE",
            "address1": "1 High Street",
            "postalcode": "SW1A 1AA",
            "city": "London",
            "state": None,
            "country": "GB",
            "balance": "125.5",
            "status": "active",
            "transactions": {
                "response": {
                    "items": [
                        {
                            "id": 1,
                            "amount": 12.5,
                            "currency": "USD",
                            "status": "completed",
                            "paymentDateTime": "2024-03-05T14:30:00Z",
                            "merchant": {"name": "Coffee Shop", "city": "London", "country": "GB"},
                            "type": "PAYMENT",
                        },
                        {
                            "id": 2,
                            "amount": 3,
                            "currency": "USD",
                            "status": "completed",
                            "paymentDateTime": "2024-03-04T09:00:00Z",
                            "merchant": {"name": "Book Store", "city": "Leeds", "country": "GB"},
                            "type": "refund",
                        },
                    ]
                }
            },
            "deposits": [
                {"transactionHash": "0xdeadbeef", "amount": 5000000, "createdAt": "2024-03-01T10:00:00Z"}
            ],
            "depositaddress": "USDC-POLYGON-0xabc123",
            "btcdepositaddress": "BTC-1A2b3C",
            "ethdepositaddress": "",
            "usdtdepositaddress": "USDT-BSC|BEP20-TXyz",
            "soldepositaddress": None,
        },
    }


@pytest.fixture
def challenge_payload():
    return {
        "status": "success",
        "code": "200",
        "data": {
            "id": 7,
            "eventId": "evt_42",
            "cardId": "card_123",
            "merchantName": "Online Store",
            "maskedPan": "411111******1234",
            "merchantAmount": "49.99",
            "merchantCurrency": "USD",
            "eventName": "3ds.challenge",
            "status": "pending",
            "json": {"acs": "x"},
            "created_at": "2024-03-05T14:30:00Z",
            "updated_at": "2024-03-05T14:30:00Z",
            "deleted_at": None,
        },
    }


@pytest.fixture
def card_list_response(card_list_payload):
    return CardListResponse.model_validate(card_list_payload)


@pytest.fixture
def card_detail_response(card_detail_payload):
    return CardDetailResponse.model_validate(card_detail_payload)


@pytest.fixture
def pending_challenge_response(challenge_payload):
    return ThreeDSResponse.model_validate(challenge_payload)


# ==================== Identity provider ====================


class FakeAuthenticator(Authenticator):
    """In-memory identity provider."""

    def __init__(self):
        self.accounts: dict[str, tuple[str, AuthUser]] = {}
        self.sign_up_error: Optional[str] = None
        self.reset_error: Optional[str] = None
        self.reset_requests: list[str] = []
        self._current: Optional[AuthUser] = None

    @property
    def current_user(self) -> Optional[AuthUser]:
        return self._current

    async def sign_up(self, email: str, secret: str) -> AuthUser:
        if self.sign_up_error:
            raise AuthenticationError(self.sign_up_error)
        user = AuthUser(uid=f"uid-{len(self.accounts) + 1}", email=email)
        self.accounts[email] = (secret, user)
        self._current = user
        return user

    async def sign_in(self, email: str, secret: str) -> AuthUser:
        entry = self.accounts.get(email)
        if entry is None or entry[0] != secret:
            raise AuthenticationError("The email or password is incorrect")
        self._current = entry[1]
        return entry[1]

    async def sign_out(self) -> None:
        self._current = None

    async def send_password_reset(self, email: str) -> None:
        if self.reset_error:
            raise AuthenticationError(self.reset_error)
        self.reset_requests.append(email)


@pytest.fixture
def fake_auth():
    return FakeAuthenticator()
