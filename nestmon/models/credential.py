"""
OAuth credential model shared by the token client, the monitors and persistence.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_REFRESH_SKEW = timedelta(minutes=5)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Credential(BaseModel):
    """An access/refresh token pair with local expiry bookkeeping.

    ``issued_at`` always comes from the local clock at the moment the token
    response was received. Instances are immutable; a refresh produces a new
    credential that replaces the old one wholesale.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int = Field(..., ge=0, description="Token lifetime in seconds.")
    issued_at: datetime = Field(default_factory=_utcnow)

    @field_validator("issued_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + timedelta(seconds=self.expires_in)

    def is_expiring(
        self,
        skew: timedelta = DEFAULT_REFRESH_SKEW,
        *,
        now: Optional[datetime] = None,
    ) -> bool:
        """Return True when the token expires within ``skew`` of ``now``."""
        current = _as_utc(now) if now is not None else _utcnow()
        return self.expires_at <= current + skew

    @classmethod
    def from_token_response(
        cls,
        payload: Mapping[str, Any],
        *,
        fallback_refresh_token: Optional[str] = None,
        received_at: Optional[datetime] = None,
    ) -> "Credential":
        """
        Build a credential from a token endpoint response.

        A refresh token present in the payload always wins; the fallback is only
        used when the provider did not rotate it.
        """
        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token") or fallback_refresh_token
        expires_in = payload.get("expires_in")
        if not access_token or not refresh_token or expires_in is None:
            raise ValueError("Token payload is missing required fields.")

        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type=payload.get("token_type") or "Bearer",
            expires_in=int(expires_in),
            issued_at=received_at or _utcnow(),
        )


__all__ = ["Credential", "DEFAULT_REFRESH_SKEW"]
