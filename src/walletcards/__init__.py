"""
WalletCards Python client

Async access to the WalletCards virtual card platform: card applications,
balances and transactions, block/unblock and 3-D Secure approvals.
"""

from .application import (
    ApplicationOutcome,
    ApplicationState,
    ApplicationWorkflow,
    PaymentInstruction,
)
from .auth import Authenticator, AuthUser, FirebaseAuthenticator, validate_password, validate_pin
from .card_control import CardControl, StatusSwitch, SwitchPhase
from .client import AsyncWalletCardsClient, TimeoutConfig, create_client
from .config import WalletCardsSettings, get_settings
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    InvalidTransitionError,
    ValidationError,
    WalletCardsError,
)
from .ledger import CardCollection, CardLedger
from .logging_config import LogContext, setup_logging
from .models import (
    ApplyCardRequest,
    ApplyCardResponse,
    CardDetail,
    CardState,
    CardStatus,
    CardSummary,
    DepositRecord,
    SubUserRequest,
    ThreeDSChallenge,
    ThreeDSResponse,
    TransactionRecord,
)
from .onboarding import LoginFlow, RegistrationFlow
from .three_ds import ChallengeKind, ChallengeOutcome, ChallengeSession, ThreeDSChallengeHandler

__version__ = "0.1.0"

__all__ = [
    # Client
    "AsyncWalletCardsClient",
    "TimeoutConfig",
    "create_client",
    # Configuration
    "WalletCardsSettings",
    "get_settings",
    "setup_logging",
    "LogContext",
    # Errors
    "WalletCardsError",
    "ValidationError",
    "AuthenticationError",
    "InvalidTransitionError",
    "ConfigurationError",
    # Workflows
    "CardLedger",
    "CardCollection",
    "ApplicationWorkflow",
    "ApplicationState",
    "ApplicationOutcome",
    "PaymentInstruction",
    "ThreeDSChallengeHandler",
    "ChallengeKind",
    "ChallengeOutcome",
    "ChallengeSession",
    "CardControl",
    "StatusSwitch",
    "SwitchPhase",
    # Identity
    "Authenticator",
    "AuthUser",
    "FirebaseAuthenticator",
    "validate_password",
    "validate_pin",
    "LoginFlow",
    "RegistrationFlow",
    # Models
    "CardSummary",
    "CardDetail",
    "CardState",
    "CardStatus",
    "TransactionRecord",
    "DepositRecord",
    "ApplyCardRequest",
    "ApplyCardResponse",
    "SubUserRequest",
    "ThreeDSChallenge",
    "ThreeDSResponse",
]
