"""Session Store implementations."""

from .beanie_store import BeanieSessionStore
from .memory_store import MemorySessionStore
from .session_store import SOCIAL_LIVE_LIST_LIMIT, SessionStore

__all__ = [
    "BeanieSessionStore",
    "MemorySessionStore",
    "SOCIAL_LIVE_LIST_LIMIT",
    "SessionStore",
]
