"""Service layer exports."""

from .event_dispatcher import EventDispatcher
from .event_poller import EventPoller, PollResult
from .persistence import UserPersistenceService
from .registration import UserNotFoundError, UserRegistrationService
from .token_cipher import TokenCipherService
from .token_lifecycle import TokenLifecycleService
from .user_store import SharedUserStore

__all__ = [
    "EventDispatcher",
    "EventPoller",
    "PollResult",
    "SharedUserStore",
    "TokenCipherService",
    "TokenLifecycleService",
    "UserNotFoundError",
    "UserPersistenceService",
    "UserRegistrationService",
]
