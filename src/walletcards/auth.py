"""Identity provider boundary.

The card backend never sees passwords except as the sub-user PIN; accounts
live with an external identity provider consumed through ``Authenticator``.
``FirebaseAuthenticator`` talks to the Firebase Identity Toolkit REST API.

Example usage:
    ```python
    async with FirebaseAuthenticator(api_key="AIza...") as auth:
        user = await auth.sign_in("jane@example.com", "abc123")
        print(user.uid)
    ```
"""
from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from .exceptions import AuthenticationError, ValidationError
from .logging_config import redact

logger = logging.getLogger(__name__)

PASSWORD_RULE_MESSAGE = "Password must be 6 alphanumeric characters. Please try again."
PIN_RULE_MESSAGE = "PIN must be exactly 6 digits."

_PIN = re.compile(r"^\d{6}$")


def validate_pin(pin: str) -> str:
    """Check a legacy 6-digit PIN."""
    if not _PIN.match(pin or ""):
        raise ValidationError(PIN_RULE_MESSAGE, field="pin")
    return pin


def validate_password(password: str) -> str:
    """Check a 6-character alphanumeric password."""
    if len(password or "") != 6 or not password.isalnum() or not password.isascii():
        raise ValidationError(PASSWORD_RULE_MESSAGE, field="password")
    return password


@dataclass(frozen=True)
class AuthUser:
    """A signed-in account."""

    uid: str
    email: str
    id_token: str = ""
    refresh_token: str = ""

    def __repr__(self) -> str:
        return f"AuthUser(uid={self.uid!r}, email={self.email!r})"


class Authenticator(ABC):
    """Account operations the onboarding flows depend on.

    Every failure raises ``AuthenticationError`` with a message fit for the user.
    """

    @abstractmethod
    async def sign_up(self, email: str, secret: str) -> AuthUser:
        ...

    @abstractmethod
    async def sign_in(self, email: str, secret: str) -> AuthUser:
        ...

    @abstractmethod
    async def sign_out(self) -> None:
        ...

    @abstractmethod
    async def send_password_reset(self, email: str) -> None:
        ...

    @property
    @abstractmethod
    def current_user(self) -> Optional[AuthUser]:
        ...

    async def close(self) -> None:
        """Release any connection held by the adapter."""


# Identity Toolkit error codes and what to tell the user
FIREBASE_ERROR_MESSAGES: dict[str, str] = {
    "EMAIL_EXISTS": "The email address is already in use by another account",
    "INVALID_EMAIL": "The email address is badly formatted",
    "MISSING_EMAIL": "An email address is required",
    "MISSING_PASSWORD": "A password is required",
    "WEAK_PASSWORD": "The password is too weak",
    "EMAIL_NOT_FOUND": "There is no account for this email address",
    "INVALID_PASSWORD": "The password is incorrect",
    "INVALID_LOGIN_CREDENTIALS": "The email or password is incorrect",
    "USER_DISABLED": "This account has been disabled",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts, try again later",
    "OPERATION_NOT_ALLOWED": "Email sign-in is not enabled for this app",
}


def describe_firebase_error(raw: str) -> str:
    """Turn ``"WEAK_PASSWORD : Password should be..."`` into a readable message."""
    code, _, detail = (raw or "").partition(" : ")
    code = code.strip()
    if code in FIREBASE_ERROR_MESSAGES:
        return FIREBASE_ERROR_MESSAGES[code]
    if detail:
        return detail.strip()
    return code.replace("_", " ").capitalize() if code else "Authentication failed"


class FirebaseAuthenticator(Authenticator):
    """
    Authenticator backed by the Firebase Identity Toolkit REST API.

    Args:
        api_key: Web API key of the Firebase project
        base_url: Identity Toolkit base URL
        timeout: Request timeout in seconds
        transport: Optional httpx transport, mainly for tests
    """

    DEFAULT_BASE_URL = "https://identitytoolkit.googleapis.com/v1/"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ValueError("Firebase API key is required")
        self._api_key = api_key
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._current_user: Optional[AuthUser] = None

    @property
    def current_user(self) -> Optional[AuthUser]:
        return self._current_user

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                params={"key": self._api_key},
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def _call(self, action: str, payload: dict[str, Any]) -> dict[str, Any]:
        client = await self._get_client()
        logger.debug("accounts:%s request: %s", action, redact(payload))
        try:
            # absolute URL: a relative "accounts:x" would parse as a URL scheme
            response = await client.post(f"{self._base_url}accounts:{action}", json=payload)
        except httpx.HTTPError as exc:
            logger.warning("accounts:%s failed: %r", action, exc)
            raise AuthenticationError(
                "Could not reach the sign-in service",
                error_code="AUTH_UNAVAILABLE",
            ) from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error:
            raw = ""
            if isinstance(body, dict):
                raw = (body.get("error") or {}).get("message", "")
            logger.info("accounts:%s refused (HTTP %s): %s", action, response.status_code, raw)
            raise AuthenticationError(
                describe_firebase_error(raw),
                details={"provider_code": raw.partition(" : ")[0].strip()} if raw else None,
            )
        return body if isinstance(body, dict) else {}

    def _user_from(self, body: dict[str, Any], email: str) -> AuthUser:
        return AuthUser(
            uid=body.get("localId", ""),
            email=body.get("email") or email,
            id_token=body.get("idToken", ""),
            refresh_token=body.get("refreshToken", ""),
        )

    async def sign_up(self, email: str, secret: str) -> AuthUser:
        body = await self._call(
            "signUp",
            {"email": email, "password": secret, "returnSecureToken": True},
        )
        self._current_user = self._user_from(body, email)
        logger.info("Created account %s", self._current_user.uid)
        return self._current_user

    async def sign_in(self, email: str, secret: str) -> AuthUser:
        body = await self._call(
            "signInWithPassword",
            {"email": email, "password": secret, "returnSecureToken": True},
        )
        self._current_user = self._user_from(body, email)
        logger.info("Signed in %s", self._current_user.uid)
        return self._current_user

    async def sign_out(self) -> None:
        # the REST API has no sign-out call; forgetting the tokens is enough
        self._current_user = None

    async def send_password_reset(self, email: str) -> None:
        await self._call("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})
        logger.info("Password reset email requested")

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "FirebaseAuthenticator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
