"""ORM models package."""
from .auth_session import AuthSession
from .base import Base
from .state_snapshot import StateSnapshot

__all__ = [
    "AuthSession",
    "Base",
    "StateSnapshot",
]
