"""
FinanceHUB - Auth Schemas
"""
from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, EmailStr, Field
from pydantic.alias_generators import to_camel

RoleLiteral = Literal["admin", "gerente", "usuario"]


class CamelModel(BaseModel):
    """Respostas em camelCase, entrada aceita nos dois formatos"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class SendCodeRequest(BaseModel):
    email: EmailStr


class SendCodeResponse(CamelModel):
    message: str
    expires_in: int
    code: Optional[str] = None


class VerifyCodeRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., pattern=r"^\d{6}$", description="Código de 6 dígitos")


class PublicUser(CamelModel):
    id: str
    nome: str
    email: str
    role: str


class VerifyCodeResponse(CamelModel):
    success: bool = True
    message: str = "Código verificado com sucesso"
    token: str
    user: PublicUser


class SessionUser(PublicUser):
    gerente_id: Optional[str] = None
    effective_owner_id: str


class SessionInfo(CamelModel):
    """Sessão unificada (token opaco ou JWT de terceiro)"""
    id: Optional[str] = None
    user_id: str
    token: str
    expires_at: datetime
    source: Literal["session", "external"]
    # Identidade externa ainda sem perfil local
    needs_profile: bool = False
    user: SessionUser


class ValidateSessionResponse(CamelModel):
    valid: bool = True
    session: SessionInfo


class LogoutRequest(BaseModel):
    token: Optional[str] = None


class RegisterRequest(BaseModel):
    nome: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Optional[RoleLiteral] = None


class SyncProfileRequest(BaseModel):
    nome: str = Field(..., min_length=1)
    role: Optional[RoleLiteral] = None


class ConfirmUserRequest(BaseModel):
    email: EmailStr


class UserProfileResponse(CamelModel):
    success: bool = True
    message: str
    user: PublicUser


class ConfirmUserResponse(CamelModel):
    success: bool = True
    message: str
    user_id: str
