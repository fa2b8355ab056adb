"""
Helpers for keeping a monitored user's OAuth credential usable.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from nestmon.clients.nest_oauth import NestOAuthClient, OAuthTokenNotFoundError
from nestmon.models.credential import DEFAULT_REFRESH_SKEW, Credential
from nestmon.models.user import UserRecord

logger = logging.getLogger(__name__)


class TokenLifecycleService:
    """Decides when a credential must be refreshed and performs the refresh.

    The service never writes to the user store and never retries; the worker
    that owns the user persists the returned credential and retries on its next
    cycle.
    """

    def __init__(
        self,
        oauth_client: NestOAuthClient,
        refresh_skew: timedelta = DEFAULT_REFRESH_SKEW,
    ) -> None:
        self._oauth = oauth_client
        self._skew = refresh_skew

    @property
    def refresh_skew(self) -> timedelta:
        return self._skew

    def needs_refresh(
        self, credential: Credential, *, now: Optional[datetime] = None
    ) -> bool:
        return credential.is_expiring(self._skew, now=now)

    async def ensure_fresh(self, record: UserRecord) -> Credential:
        """Return the stored credential, or a refreshed one if it is expiring."""
        if not self.needs_refresh(record.credential):
            return record.credential
        logger.info(
            "Token for user %s expires at %s; refreshing",
            record.user_id,
            record.credential.expires_at.isoformat(),
        )
        return await self.refresh(record)

    async def refresh(self, record: UserRecord) -> Credential:
        """Unconditionally exchange the stored refresh token for a new credential."""
        if not record.credential.refresh_token:
            raise OAuthTokenNotFoundError(
                f"No refresh token stored for user {record.user_id}."
            )
        return await self._oauth.refresh_token(record.credential.refresh_token)


__all__ = ["TokenLifecycleService"]
