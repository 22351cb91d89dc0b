"""
FinanceHUB - API Dependencies
Injeção do serviço de autenticação e proteção de rotas
"""
from typing import Optional
from fastapi import Depends, HTTPException, Request, status

from financehub.schemas import SessionInfo
from financehub.services import AuthService


def get_auth_service(request: Request) -> AuthService:
    """Serviço criado uma única vez no lifespan da aplicação"""
    return request.app.state.auth_service


def extract_bearer_token(request: Request) -> Optional[str]:
    """Token do header Authorization ou do parâmetro ?token="""
    authorization = request.headers.get("authorization")
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return request.query_params.get("token")


async def require_auth(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service)
) -> SessionInfo:
    """Dependency para rotas que exigem autenticação"""
    token = extract_bearer_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token não fornecido"
        )
    return await auth_service.resolve_session(token)

