from .user import User, UserRole, DEFAULT_ROLE
from .auth import AuthCode, Session

__all__ = [
    "User",
    "UserRole",
    "DEFAULT_ROLE",
    "AuthCode",
    "Session"
]
