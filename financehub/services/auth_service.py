"""
FinanceHUB - Auth Service
Núcleo de autenticação: login por código, sessões opacas e tokens de terceiros

Fluxo do login por código:
1. send_auth_code: invalida códigos pendentes, emite um novo e envia por email
2. verify_code: consome o código e cria uma sessão opaca de 7 dias

Resolução de sessão (resolve_session):
1. Token opaco encontrado na tabela session -> sessão local
2. Caso contrário, JWT do provedor de identidade -> perfil local reconciliado
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Callable, Awaitable, Iterable

from financehub.core.config import Settings, settings as default_settings
from financehub.core.email import EmailService, email_service as default_email_service
from financehub.core.errors import (
    UserNotFound,
    UserInactive,
    UserNotFoundOrInactive,
    InvalidOrExpiredCode,
    TooManyAttempts,
    InvalidSession,
    SessionExpired,
    StorageError,
    ValidationError,
)
from financehub.core.external_tokens import Identity, validate_external_token
from financehub.core.security import generate_code, generate_token
from financehub.models import User, DEFAULT_ROLE
from financehub.schemas import PublicUser, SessionUser, SessionInfo
from financehub.services.credential_store import CredentialStore, DuplicateRecord, normalize_email
from financehub.services.identity_provider import IdentityProviderAdmin

logger = logging.getLogger(__name__)

TokenValidator = Callable[[str], Awaitable[Optional[Identity]]]


@dataclass
class IssuedCode:
    """Resultado da emissão. code é None em produção."""
    code: Optional[str]
    expires_at: datetime


@dataclass
class VerifiedLogin:
    token: str
    user: PublicUser


def merge_profiles(candidates: Iterable[Optional[User]]) -> Optional[User]:
    """
    Reconcilia perfis locais encontrados por caminhos diferentes (id, email).

    Considera apenas perfis ativos, remove duplicatas por id e escolhe o
    atualizado mais recentemente.
    """
    unique = {}
    for user in candidates:
        if user is not None and user.ativo:
            unique.setdefault(user.id, user)

    if not unique:
        return None

    return max(unique.values(), key=lambda u: u.updated_at or datetime.min)


def _session_user(user: User) -> SessionUser:
    return SessionUser(
        id=user.id,
        nome=user.nome or "",
        email=user.email,
        role=user.role,
        gerente_id=user.gerente_id,
        effective_owner_id=user.effective_owner_id,
    )


class AuthService:
    """Serviço de autenticação"""

    def __init__(
        self,
        store: CredentialStore,
        email_service: Optional[EmailService] = None,
        identity_admin: Optional[IdentityProviderAdmin] = None,
        token_validator: Optional[TokenValidator] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.email_service = email_service or default_email_service
        self.identity_admin = identity_admin or IdentityProviderAdmin()
        self.token_validator = token_validator or validate_external_token
        self.settings = settings or default_settings
        self.clock = clock

    @property
    def code_expiry_minutes(self) -> int:
        return self.settings.AUTH_CODE_EXPIRY_MINUTES

    @property
    def max_attempts(self) -> int:
        return self.settings.AUTH_CODE_MAX_ATTEMPTS

    # === LOGIN POR CÓDIGO ===

    async def send_auth_code(self, email: str) -> IssuedCode:
        """Emite e envia por email um novo código de verificação"""
        email = normalize_email(email)
        logger.info(f"[AUTH] Verificando usuário: {email}")

        user = await self.store.find_user_by_email(email)
        if not user:
            logger.info(f"[AUTH] Usuário não encontrado: {email}")
            raise UserNotFound()
        if not user.ativo:
            logger.info(f"[AUTH] Usuário inativo: {email}")
            raise UserInactive()

        now = self.clock()
        invalidated = await self.store.invalidate_outstanding_codes(email, now)
        if invalidated:
            logger.info(f"[AUTH] {invalidated} código(s) anterior(es) invalidado(s) para {email}")

        code = generate_code()
        expires_at = now + timedelta(minutes=self.code_expiry_minutes)
        await self.store.insert_code(email, code, expires_at, now)
        logger.info(f"[AUTH] Código salvo no banco para {email}")

        # Falha no envio não desfaz o código
        delivered = await asyncio.to_thread(
            self.email_service.send_auth_code_email, email, code, self.code_expiry_minutes
        )

        if self.settings.is_production:
            if not delivered:
                logger.error(f"[AUTH] Falha no envio do código para {email}")
            return IssuedCode(code=None, expires_at=expires_at)

        if not delivered:
            logger.warning(
                f"[AUTH] FALHA NO ENVIO DE EMAIL - código para {email}: {code} "
                f"(expira em {self.code_expiry_minutes} minutos)"
            )
        return IssuedCode(code=code, expires_at=expires_at)

    async def verify_code(self, email: str, code: str) -> VerifiedLogin:
        """Consome o código e cria uma sessão opaca"""
        email = normalize_email(email)
        now = self.clock()

        auth_code = await self.store.find_latest_valid_code(email, code, now)
        if not auth_code:
            # Penalidade aplicada a todos os códigos pendentes do email
            await self.store.increment_code_attempts(email, now)
            logger.info(f"[AUTH] Código inválido ou expirado para {email}")
            raise InvalidOrExpiredCode()

        if auth_code.attempts >= self.max_attempts:
            await self.store.mark_code_used(auth_code.id)
            logger.warning(f"[AUTH] Código bloqueado por tentativas para {email}")
            raise TooManyAttempts()

        user = await self.store.find_user_by_email(email)
        if not user or not user.ativo:
            raise UserNotFoundOrInactive()

        if not await self.store.mark_code_used(auth_code.id):
            # Consumido por uma verificação concorrente
            raise InvalidOrExpiredCode()

        token = generate_token()
        expires_at = now + timedelta(hours=self.settings.SESSION_EXPIRY_HOURS)
        session = await self.store.insert_session(user.id, token, expires_at, now)
        await self.store.update_last_login(user.id, now)

        logger.info(f"[AUTH] Sessão {session.id} criada para usuário {user.id}")

        return VerifiedLogin(token=token, user=PublicUser.model_validate(user))

    async def logout(self, token: str) -> int:
        """Encerra a sessão opaca (tokens de terceiros não têm estado local)"""
        return await self.store.delete_session_by_token(token)

    # === RESOLUÇÃO DE SESSÃO ===

    async def resolve_session(self, token: str) -> SessionInfo:
        """Valida o token bearer (sessão opaca ou JWT de terceiro)"""
        if not token:
            raise InvalidSession()

        session = await self.store.find_session_by_token(token)
        if session:
            now = self.clock()
            if session.expires_at < now:
                await self.store.delete_session(session.id)
                raise SessionExpired()

            if not session.user.ativo:
                raise UserInactive()

            await self.store.touch_session_activity(session.id, now)

            return SessionInfo(
                id=session.id,
                user_id=session.user_id,
                token=session.token,
                expires_at=session.expires_at,
                source="session",
                user=_session_user(session.user),
            )

        identity = await self.token_validator(token)
        if identity is None:
            raise InvalidSession()

        return await self._session_from_identity(token, identity)

    async def _session_from_identity(self, token: str, identity: Identity) -> SessionInfo:
        candidates = [await self.store.find_user_by_id(identity.sub)]
        if identity.email:
            candidates.append(await self.store.find_user_by_email(identity.email))
            candidates.extend(await self.store.find_users_by_email_variants(identity.email))

        expires_at = datetime.utcfromtimestamp(identity.exp)
        profile = merge_profiles(candidates)

        if profile is None:
            if any(candidate is not None for candidate in candidates):
                raise UserInactive()

            # Identidade nova: o chamador deve provisionar o perfil (sync_profile)
            logger.info(f"[AUTH] Identidade externa {identity.sub} sem perfil local")
            return SessionInfo(
                user_id=identity.sub,
                token=token,
                expires_at=expires_at,
                source="external",
                needs_profile=True,
                user=SessionUser(
                    id=identity.sub,
                    nome="",
                    email=normalize_email(identity.email),
                    role=DEFAULT_ROLE,
                    effective_owner_id=identity.sub,
                ),
            )

        return SessionInfo(
            user_id=profile.id,
            token=token,
            expires_at=expires_at,
            source="external",
            user=_session_user(profile),
        )

    # === PERFIL / CADASTRO ===

    async def sync_profile(
        self,
        subject_id: str,
        email: str,
        nome: str,
        role: Optional[str] = None,
    ) -> User:
        """
        Cria ou atualiza o perfil local de uma identidade externa.

        Ordem: id -> email -> insert. Uma corrida entre dois primeiros logins
        da mesma identidade é resolvida relendo a linha vencedora.
        """
        email = normalize_email(email)
        fields = {"nome": nome}
        if role:
            fields["role"] = role

        existing = await self.store.find_user_by_id(subject_id)
        if existing:
            return await self.store.update_user(existing.id, **fields)

        if email:
            by_email = await self.store.find_user_by_email(email)
            if by_email:
                logger.info(f"[AUTH] Perfil {by_email.id} reconciliado com identidade {subject_id}")
                return await self.store.update_user(by_email.id, **fields)
        else:
            raise ValidationError("E-mail é obrigatório para criar o perfil")

        try:
            return await self.store.insert_user(subject_id, nome, email, role or DEFAULT_ROLE)
        except DuplicateRecord:
            logger.info(f"[AUTH] Perfil de {subject_id} criado concorrentemente, atualizando")

        winner = await self.store.find_user_by_id(subject_id) or await self.store.find_user_by_email(email)
        if not winner:
            raise StorageError()
        return await self.store.update_user(winner.id, **fields)

    async def register_with_password(
        self,
        nome: str,
        email: str,
        password: str,
        role: Optional[str] = None,
    ) -> PublicUser:
        """Cadastra a identidade já confirmada no provedor e cria o perfil local"""
        email = normalize_email(email)
        role = role or DEFAULT_ROLE

        created = await self.identity_admin.create_confirmed_user(
            email, password, {"nome": nome, "role": role}
        )
        user = await self.sync_profile(created["id"], email, nome, role)
        logger.info(f"[AUTH] Usuário {user.id} cadastrado: {email}")
        return PublicUser.model_validate(user)

    async def confirm_user_by_email(self, email: str) -> str:
        """Confirma o email de uma identidade pela API administrativa"""
        identity = await self.identity_admin.find_user_by_email(normalize_email(email))
        if not identity:
            raise UserNotFound("Usuário não encontrado no provedor de identidade")

        await self.identity_admin.confirm_email(identity["id"])
        logger.info(f"[AUTH] Email confirmado para {email}")
        return identity["id"]

    # === MANUTENÇÃO ===

    async def cleanup_expired_codes(self) -> int:
        return await self.store.delete_expired("codes", self.clock())

    async def cleanup_expired_sessions(self) -> int:
        return await self.store.delete_expired("sessions", self.clock())
