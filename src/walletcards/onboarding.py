"""Conversational registration and login.

Both flows ask one question at a time and keep a transcript. Password
answers are marked sensitive so a rendered transcript masks them.

Registration Steps:
    EMAIL → PASSWORD → DONE
      ↑________|  (provider or platform failure)

Login Steps:
    REGISTERED? → EMAIL → PASSWORD → DONE
         ↓→ REGISTER (hand over to registration)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .auth import PASSWORD_RULE_MESSAGE, Authenticator, AuthUser, validate_password
from .client import AsyncWalletCardsClient
from .exceptions import AuthenticationError, ValidationError
from .logging_config import LogContext
from .models.application import SubUserRequest

logger = logging.getLogger(__name__)

REGISTER_EMAIL_QUESTION = "Let's create your account! Please enter your email address."
REGISTER_PASSWORD_QUESTION = "Great! Now, please choose a password (6 alphanumeric characters)."
LOGIN_REGISTERED_QUESTION = "Welcome! Are you already registered?"
LOGIN_EMAIL_QUESTION = "Great! Please enter your email address."
LOGIN_PASSWORD_QUESTION = "Now, please enter your password."

DEFAULT_PLATFORM_ERROR = "Backend registration failed"
DEFAULT_LOGIN_ERROR = "Invalid credentials"


@dataclass(frozen=True)
class ChatMessage:
    """One line of an onboarding transcript."""

    text: str
    is_question: bool
    field: Optional[str] = None
    sensitive: bool = False

    @property
    def display_text(self) -> str:
        return "*" * len(self.text) if self.sensitive else self.text


class OnboardingStep(str, Enum):
    REGISTERED = "registered"
    EMAIL = "email"
    PASSWORD = "password"
    REGISTER = "register"
    DONE = "done"


class _ConversationFlow:
    """Transcript and step bookkeeping shared by both flows."""

    def __init__(self, authenticator: Authenticator):
        self._auth = authenticator
        self.transcript: list[ChatMessage] = []
        self.step = OnboardingStep.EMAIL
        self.email = ""
        self.user: Optional[AuthUser] = None
        self.message: Optional[str] = None

    @property
    def prompt(self) -> str:
        """The question currently awaiting an answer."""
        for message in reversed(self.transcript):
            if message.is_question:
                return message.text
        return ""

    @property
    def expects_secret(self) -> bool:
        return self.step is OnboardingStep.PASSWORD

    @property
    def is_finished(self) -> bool:
        return self.step in (OnboardingStep.DONE, OnboardingStep.REGISTER)

    def _ask(self, text: str, step: OnboardingStep) -> None:
        self.step = step
        self.transcript.append(ChatMessage(text, is_question=True, field=step.value))

    def _record_answer(self, answer: str) -> None:
        self.transcript.append(
            ChatMessage(answer, is_question=False, sensitive=self.expects_secret)
        )


class RegistrationFlow(_ConversationFlow):
    """
    Creates an identity-provider account, then registers it with the card
    platform as a sub-user.

    Args:
        authenticator: Identity provider
        client: Card platform gateway
    """

    def __init__(self, authenticator: Authenticator, client: AsyncWalletCardsClient):
        super().__init__(authenticator)
        self._client = client
        self._ask(REGISTER_EMAIL_QUESTION, OnboardingStep.EMAIL)

    async def handle(self, answer: str) -> None:
        """Feed one answer. Blank answers are ignored."""
        if self.is_finished or not answer.strip():
            return
        self._record_answer(answer)

        if self.step is OnboardingStep.EMAIL:
            self.email = answer.strip()
            self._ask(REGISTER_PASSWORD_QUESTION, OnboardingStep.PASSWORD)
            return

        try:
            password = validate_password(answer)
        except ValidationError:
            self._ask(PASSWORD_RULE_MESSAGE, OnboardingStep.PASSWORD)
            return

        with LogContext(user_email=self.email):
            try:
                user = await self._auth.sign_up(self.email, password)
            except AuthenticationError as exc:
                logger.info("Sign-up refused: %s", exc.message)
                self._ask(
                    f"Registration failed: {exc.message}. Let's try your email again.",
                    OnboardingStep.EMAIL,
                )
                return

            response = await self._client.add_sub_user(
                SubUserRequest(useremail=self.email, pin=password, firebaseuid=user.uid)
            )

        if response is None or not response.is_success:
            reason = (response.message if response else "") or DEFAULT_PLATFORM_ERROR
            logger.warning("Sub-user registration failed: %s", reason)
            self._ask(f"Oops! {reason}. Let's try your email again.", OnboardingStep.EMAIL)
            return

        self.user = user
        self.message = response.message
        self.step = OnboardingStep.DONE
        logger.info("Registration complete for %s", user.uid)


class LoginFlow(_ConversationFlow):
    """
    Signs an existing account in.

    Any answer other than "yes" to the first question ends the flow in
    REGISTER so the caller can start a ``RegistrationFlow`` instead.
    """

    def __init__(self, authenticator: Authenticator):
        super().__init__(authenticator)
        self._ask(LOGIN_REGISTERED_QUESTION, OnboardingStep.REGISTERED)

    async def handle(self, answer: str) -> None:
        """Feed one answer. Blank answers are ignored except for the first question."""
        if self.is_finished:
            return
        if not answer.strip() and self.step is not OnboardingStep.REGISTERED:
            return
        self._record_answer(answer)

        if self.step is OnboardingStep.REGISTERED:
            if answer.strip().lower() == "yes":
                self._ask(LOGIN_EMAIL_QUESTION, OnboardingStep.EMAIL)
            else:
                self.step = OnboardingStep.REGISTER
            return

        if self.step is OnboardingStep.EMAIL:
            self.email = answer.strip()
            self._ask(LOGIN_PASSWORD_QUESTION, OnboardingStep.PASSWORD)
            return

        try:
            password = validate_password(answer)
        except ValidationError:
            self._ask(PASSWORD_RULE_MESSAGE, OnboardingStep.PASSWORD)
            return

        with LogContext(user_email=self.email):
            try:
                self.user = await self._auth.sign_in(self.email, password)
            except AuthenticationError as exc:
                reason = exc.message or DEFAULT_LOGIN_ERROR
                logger.info("Sign-in refused: %s", reason)
                self._ask(
                    f"Login failed: {reason}. Let's try your email again.",
                    OnboardingStep.EMAIL,
                )
                return

        self.step = OnboardingStep.DONE
        logger.info("Signed in %s", self.user.uid)
