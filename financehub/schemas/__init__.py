from .auth import (
    SendCodeRequest,
    SendCodeResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
    PublicUser,
    SessionUser,
    SessionInfo,
    ValidateSessionResponse,
    LogoutRequest,
    RegisterRequest,
    SyncProfileRequest,
    ConfirmUserRequest,
    UserProfileResponse,
    ConfirmUserResponse
)

__all__ = [
    "SendCodeRequest",
    "SendCodeResponse",
    "VerifyCodeRequest",
    "VerifyCodeResponse",
    "PublicUser",
    "SessionUser",
    "SessionInfo",
    "ValidateSessionResponse",
    "LogoutRequest",
    "RegisterRequest",
    "SyncProfileRequest",
    "ConfirmUserRequest",
    "UserProfileResponse",
    "ConfirmUserResponse"
]
