from .config import settings, get_settings
from .security import generate_code, generate_token
from .email import EmailService, email_service
from .external_tokens import (
    Identity,
    TokenAlgorithm,
    JWKSCache,
    jwks_cache,
    validate_external_token
)

__all__ = [
    "settings",
    "get_settings",
    "generate_code",
    "generate_token",
    "EmailService",
    "email_service",
    "Identity",
    "TokenAlgorithm",
    "JWKSCache",
    "jwks_cache",
    "validate_external_token"
]
