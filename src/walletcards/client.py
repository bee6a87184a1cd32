"""
WalletCards API gateway client.

Typed access to the card-issuing backend. Every action is a JSON POST that
carries the two platform credential headers.

Example usage:
    ```python
    from walletcards import AsyncWalletCardsClient

    async with AsyncWalletCardsClient(
        public_key="pk_live_...",
        secret_key="sk_live_...",
    ) as client:
        cards = await client.list_cards("jane@example.com")
        if cards is None:
            ...  # transport or parse failure, ask the user to retry
    ```

Failures never raise: a network error, timeout, empty or malformed body
collapses to ``None`` (``False`` for ``approve_3ds``). ``None`` means "no
result", never "no cards". The client does not retry; that is the caller's
decision.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Type, TypeVar

import httpx

from .exceptions import ConfigurationError
from .logging_config import redact
from .models.application import ApplyCardRequest, ApplyCardResponse, SubUserRequest
from .models.base import WalletCardsModel
from .models.card import CardDetailResponse, CardListResponse
from .models.three_ds import ThreeDSResponse

logger = logging.getLogger(__name__)

USER_AGENT = "walletcards-python/0.1.0"

M = TypeVar("M", bound=WalletCardsModel)


@dataclass(frozen=True)
class TimeoutConfig:
    """Per-phase timeouts in seconds."""

    connect: float = 15.0
    read: float = 30.0
    write: float = 15.0
    pool: float = 30.0

    def to_httpx(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self.connect,
            read=self.read,
            write=self.write,
            pool=self.pool,
        )


class AsyncWalletCardsClient:
    """
    Async client for the card-issuing backend.

    Args:
        public_key: Platform public key, sent as the ``publickey`` header
        secret_key: Platform secret key, sent as the ``secretkey`` header
        base_url: Backend base URL; endpoint names are joined onto it
        timeout: Per-phase timeouts (default: connect/write 15s, read 30s)
        transport: Optional httpx transport, mainly for tests
    """

    DEFAULT_BASE_URL = "https://api.walletcards.app/api/"

    LIST_CARDS = "getsubuseralldigital"
    CARD_DETAIL = "getsubuserdigitalcard"
    APPLY_CARD = "digitalnewsubusercard"
    ADD_SUB_USER = "subuseradd"
    CHECK_3DS = "subusercheck3ds"
    APPROVE_3DS = "subuserapprove3ds"
    BLOCK_CARD = "subuserblockdigital"
    UNBLOCK_CARD = "subuserunblockdigital"

    def __init__(
        self,
        public_key: str,
        secret_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: Optional[TimeoutConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not public_key or not secret_key:
            raise ValueError("Public and secret keys are required")

        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._public_key = public_key
        self._secret_key = secret_key
        self._timeout = timeout or TimeoutConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout(self) -> TimeoutConfig:
        return self._timeout

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={
                    "publickey": self._public_key,
                    "secretkey": self._secret_key,
                    "Content-Type": "application/json",
                    "User-Agent": USER_AGENT,
                },
                timeout=self._timeout.to_httpx(),
                transport=self._transport,
            )
        return self._client

    async def _send(self, path: str, payload: dict[str, Any]) -> Optional[httpx.Response]:
        """POST ``payload`` to ``path``; ``None`` on any transport failure."""
        client = await self._get_client()
        logger.debug("%s request: %s", path, json.dumps(redact(payload)))
        try:
            return await client.post(path, json=payload)
        except httpx.TimeoutException as exc:
            logger.warning("%s timed out: %r", path, exc)
        except httpx.HTTPError as exc:
            logger.warning("%s failed: %r", path, exc)
        return None

    async def _post(
        self,
        path: str,
        payload: dict[str, Any],
        model: Type[M],
    ) -> Optional[M]:
        """POST and parse the body into ``model``.

        The HTTP status is not checked: the backend reports outcomes such as
        "no challenge pending" in the body, sometimes with a non-2xx status.
        """
        response = await self._send(path, payload)
        if response is None:
            return None
        if not response.content:
            logger.warning("%s returned an empty body (HTTP %s)", path, response.status_code)
            return None
        try:
            body = response.json()
            logger.debug("%s response: %s", path, json.dumps(redact(body)))
            return model.model_validate(body)
        except ValueError as exc:
            # json.JSONDecodeError and pydantic.ValidationError are ValueErrors
            logger.warning(
                "%s returned an unusable body (HTTP %s): %s",
                path,
                response.status_code,
                exc,
            )
            return None

    # ==================== Cards ====================

    async def list_cards(self, user_email: str) -> Optional[CardListResponse]:
        """List the user's cards, including payment-pending placeholders."""
        return await self._post(
            self.LIST_CARDS,
            {"useremail": user_email},
            CardListResponse,
        )

    async def get_card_detail(
        self,
        user_email: str,
        card_id: str,
    ) -> Optional[CardDetailResponse]:
        """Get balance, secrets, transactions and deposits for one card."""
        return await self._post(
            self.CARD_DETAIL,
            {"useremail": user_email, "cardid": card_id},
            CardDetailResponse,
        )

    async def apply_for_card(self, request: ApplyCardRequest) -> Optional[ApplyCardResponse]:
        """Submit a new virtual card application."""
        return await self._post(self.APPLY_CARD, request.to_dict(), ApplyCardResponse)

    async def add_sub_user(self, request: SubUserRequest) -> Optional[ApplyCardResponse]:
        """Register a signed-up user with the card platform."""
        return await self._post(self.ADD_SUB_USER, request.to_dict(), ApplyCardResponse)

    async def block_card(self, user_email: str, card_id: str) -> Optional[ApplyCardResponse]:
        return await self._post(
            self.BLOCK_CARD,
            {"useremail": user_email, "cardid": card_id},
            ApplyCardResponse,
        )

    async def unblock_card(self, user_email: str, card_id: str) -> Optional[ApplyCardResponse]:
        return await self._post(
            self.UNBLOCK_CARD,
            {"useremail": user_email, "cardid": card_id},
            ApplyCardResponse,
        )

    # ==================== 3-D Secure ====================

    async def check_3ds(self, user_email: str, card_id: str) -> Optional[ThreeDSResponse]:
        """Fetch the pending step-up challenge for a card, if any."""
        return await self._post(
            self.CHECK_3DS,
            {"useremail": user_email, "cardid": card_id},
            ThreeDSResponse,
        )

    async def approve_3ds(self, user_email: str, card_id: str, event_id: str) -> bool:
        """Approve a challenge. True only when the backend answered 2xx."""
        response = await self._send(
            self.APPROVE_3DS,
            {"useremail": user_email, "cardid": card_id, "eventId": event_id},
        )
        if response is None:
            return False
        logger.debug("%s response: HTTP %s", self.APPROVE_3DS, response.status_code)
        return response.is_success

    # ==================== Lifecycle ====================

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AsyncWalletCardsClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def create_client(settings=None, transport: Optional[httpx.AsyncBaseTransport] = None) -> AsyncWalletCardsClient:
    """Build a client from settings (the cached environment settings by default).

    Raises:
        ConfigurationError: If the platform keys are not configured
    """
    if settings is None:
        from .config import get_settings

        settings = get_settings()
    if not settings.has_credentials:
        raise ConfigurationError(
            "WALLETCARDS_PUBLIC_KEY and WALLETCARDS_SECRET_KEY must be set",
            details={"api_base_url": settings.api_base_url},
        )
    return AsyncWalletCardsClient(
        public_key=settings.public_key.get_secret_value(),
        secret_key=settings.secret_key.get_secret_value(),
        base_url=settings.api_base_url,
        timeout=settings.timeouts(),
        transport=transport,
    )
