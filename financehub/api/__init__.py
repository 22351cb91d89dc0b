from .auth import router as auth_router, limiter

__all__ = [
    "auth_router",
    "limiter"
]
