"""
FinanceHUB - Auth API
Login por código, validação de sessão, cadastro e sincronização de perfil
"""
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from financehub.core import settings
from financehub.core.errors import AuthError, StorageError
from financehub.models import UserRole
from financehub.schemas import (
    SendCodeRequest,
    SendCodeResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
    SessionInfo,
    ValidateSessionResponse,
    LogoutRequest,
    RegisterRequest,
    SyncProfileRequest,
    ConfirmUserRequest,
    UserProfileResponse,
    ConfirmUserResponse,
    PublicUser
)
from financehub.services import AuthService
from .deps import get_auth_service, extract_bearer_token, require_auth


router = APIRouter(prefix="/auth", tags=["Authentication"])

limiter = Limiter(key_func=get_remote_address)


@router.post("/send-code", response_model=SendCodeResponse, response_model_exclude_none=True)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def send_code(
    request: Request,
    body: SendCodeRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Envia código de verificação por email"""
    issued = await auth_service.send_auth_code(body.email)
    expires_in = int((issued.expires_at - auth_service.clock()).total_seconds())

    return SendCodeResponse(
        message="Código de verificação enviado com sucesso",
        expires_in=max(expires_in, 0),
        code=issued.code,
    )


@router.post("/verify-code", response_model=VerifyCodeResponse)
async def verify_code(
    body: VerifyCodeRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Verifica código e cria sessão"""
    login = await auth_service.verify_code(body.email, body.code)
    return VerifyCodeResponse(token=login.token, user=login.user)


@router.get("/validate", response_model=ValidateSessionResponse)
async def validate_session(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Valida token de sessão (opaco ou JWT do provedor)"""
    token = extract_bearer_token(request)
    if not token:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"valid": False, "error": "Token não fornecido"}
        )

    try:
        session = await auth_service.resolve_session(token)
    except StorageError:
        raise
    except AuthError as e:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"valid": False, "error": e.message}
        )

    return ValidateSessionResponse(session=session)


@router.get("/me", response_model=SessionInfo)
async def get_me(session: SessionInfo = Depends(require_auth)):
    """Retorna a sessão atual"""
    return session


@router.post("/logout")
async def logout(
    request: Request,
    body: Optional[LogoutRequest] = None,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Encerra sessão"""
    token = extract_bearer_token(request) or (body.token if body else None)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Token não fornecido"
        )

    await auth_service.logout(token)
    return {"message": "Logout realizado com sucesso"}


@router.post("/register", response_model=UserProfileResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Cadastro público: cria a identidade já confirmada no provedor.
    Sempre cria como "usuario", independente do papel enviado.
    """
    user = await auth_service.register_with_password(
        nome=body.nome,
        email=body.email,
        password=body.password,
        role=UserRole.USUARIO.value,
    )
    return UserProfileResponse(
        message="Conta criada com sucesso. Faça login para entrar.",
        user=user,
    )


@router.post("/sync-profile", response_model=UserProfileResponse)
async def sync_profile(
    body: SyncProfileRequest,
    session: SessionInfo = Depends(require_auth),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Sincroniza o perfil local após cadastro no provedor de identidade"""
    # Apenas administradores definem papel pela própria sessão
    role = body.role if session.user.role == UserRole.ADMIN.value and not session.needs_profile else None

    user = await auth_service.sync_profile(
        session.user.id,
        session.user.email,
        nome=body.nome,
        role=role,
    )
    return UserProfileResponse(
        message="Perfil sincronizado",
        user=PublicUser.model_validate(user),
    )


@router.post("/confirm-user", response_model=ConfirmUserResponse)
async def confirm_user(
    body: ConfirmUserRequest,
    auth_service: AuthService = Depends(get_auth_service),
    x_confirm_secret: Optional[str] = Header(default=None)
):
    """
    Confirma o email de um usuário pela API administrativa (sem enviar email).
    Exige o header x-confirm-secret quando CONFIRM_USER_SECRET está definido.
    """
    secret = auth_service.settings.CONFIRM_USER_SECRET
    if secret:
        if x_confirm_secret != secret:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Não autorizado."
            )
    elif auth_service.settings.is_production:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Configure CONFIRM_USER_SECRET no .env para usar este endpoint em produção."
        )

    user_id = await auth_service.confirm_user_by_email(body.email)
    return ConfirmUserResponse(message="Usuário confirmado", user_id=user_id)
