"""WalletCards wire models."""
from .base import WalletCardsModel
from .card import (
    DEPOSIT_ADDRESS_FIELDS,
    CardDetail,
    CardDetailResponse,
    CardListResponse,
    CardState,
    CardStatus,
    CardSummary,
    DepositRecord,
    Merchant,
    TransactionRecord,
)
from .application import ApplyCardRequest, ApplyCardResponse, SubUserRequest
from .three_ds import CODE_NONE_PENDING, CODE_PENDING, ThreeDSChallenge, ThreeDSResponse

__all__ = [
    "WalletCardsModel",
    "DEPOSIT_ADDRESS_FIELDS",
    "CardDetail",
    "CardDetailResponse",
    "CardListResponse",
    "CardState",
    "CardStatus",
    "CardSummary",
    "DepositRecord",
    "Merchant",
    "TransactionRecord",
    "ApplyCardRequest",
    "ApplyCardResponse",
    "SubUserRequest",
    "CODE_NONE_PENDING",
    "CODE_PENDING",
    "ThreeDSChallenge",
    "ThreeDSResponse",
]
