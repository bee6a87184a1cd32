"""Base model for WalletCards wire contracts."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


class WalletCardsModel(BaseModel):
    """Base model with common configuration.

    Unknown fields are ignored and a ``null`` sent for a field that has a
    default falls back to that default instead of failing the parse.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
    )

    @model_validator(mode="before")
    @classmethod
    def _null_to_default(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        defaulted: set[str] = set()
        for name, info in cls.model_fields.items():
            if not info.is_required():
                defaulted.add(name)
                if info.alias:
                    defaulted.add(info.alias)
        return {
            key: value
            for key, value in data.items()
            if not (value is None and key in defaulted)
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize using wire field names."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WalletCardsModel":
        return cls.model_validate(data)
