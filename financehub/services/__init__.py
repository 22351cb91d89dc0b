from .credential_store import CredentialStore, DuplicateRecord, normalize_email
from .identity_provider import IdentityProviderAdmin
from .auth_service import AuthService, IssuedCode, VerifiedLogin, merge_profiles

__all__ = [
    "CredentialStore",
    "DuplicateRecord",
    "normalize_email",
    "IdentityProviderAdmin",
    "AuthService",
    "IssuedCode",
    "VerifiedLogin",
    "merge_profiles"
]
