"""
FinanceHUB - Credential Store
Acesso às tabelas users, auth_code e session

Cada operação abre sua própria transação. "Não encontrado" é devolvido
como None; falhas do banco viram StorageError (detalhe apenas no log).
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional, List

from sqlalchemy import select, update, delete, or_, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from financehub.core.errors import StorageError
from financehub.models import User, AuthCode, Session

logger = logging.getLogger(__name__)

EXPIRED_KINDS = ("codes", "sessions")


class DuplicateRecord(Exception):
    """Violação de unicidade ao inserir"""
    pass


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class CredentialStore:
    """Adaptador de persistência do núcleo de autenticação"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str):
        async with self.session_factory() as db:
            try:
                yield db
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                logger.warning(f"[STORE] Violação de unicidade em {operation}: {e.orig}")
                raise DuplicateRecord(operation) from e
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"[STORE] Falha em {operation}: {e}")
                raise StorageError() from e

    # === USERS ===

    async def find_user_by_email(self, email: str) -> Optional[User]:
        async with self._transaction("find_user_by_email") as db:
            result = await db.execute(
                select(User).where(User.email == normalize_email(email))
            )
            return result.scalar_one_or_none()

    async def find_user_by_id(self, user_id: str) -> Optional[User]:
        async with self._transaction("find_user_by_id") as db:
            return await db.get(User, user_id)

    async def find_users_by_email_variants(self, email: str) -> List[User]:
        """Busca case-insensitive (perfis gravados antes da normalização)"""
        async with self._transaction("find_users_by_email_variants") as db:
            result = await db.execute(
                select(User).where(func.lower(func.trim(User.email)) == normalize_email(email))
            )
            return list(result.scalars().all())

    async def insert_user(
        self,
        user_id: str,
        nome: str,
        email: str,
        role: str,
        ativo: bool = True,
    ) -> User:
        async with self._transaction("insert_user") as db:
            user = User(
                id=user_id,
                nome=nome,
                email=normalize_email(email),
                role=role,
                ativo=ativo,
            )
            db.add(user)
            await db.flush()
            return user

    async def update_user(self, user_id: str, **fields) -> Optional[User]:
        async with self._transaction("update_user") as db:
            user = await db.get(User, user_id)
            if not user:
                return None
            for key, value in fields.items():
                setattr(user, key, value)
            user.updated_at = datetime.utcnow()
            await db.flush()
            return user

    async def update_last_login(self, user_id: str, now: datetime) -> None:
        async with self._transaction("update_last_login") as db:
            await db.execute(
                update(User)
                .where(User.id == user_id)
                .values(ultimo_login=now)
                .execution_options(synchronize_session=False)
            )

    # === AUTH CODES ===

    async def invalidate_outstanding_codes(self, email: str, now: datetime) -> int:
        async with self._transaction("invalidate_outstanding_codes") as db:
            result = await db.execute(
                update(AuthCode)
                .where(
                    AuthCode.email == normalize_email(email),
                    AuthCode.used.is_(False),
                    AuthCode.expires_at > now,
                )
                .values(used=True)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    async def insert_code(self, email: str, code: str, expires_at: datetime, now: datetime) -> AuthCode:
        async with self._transaction("insert_code") as db:
            auth_code = AuthCode(
                email=normalize_email(email),
                code=code,
                expires_at=expires_at,
                created_at=now,
            )
            db.add(auth_code)
            await db.flush()
            return auth_code

    async def find_latest_valid_code(self, email: str, code: str, now: datetime) -> Optional[AuthCode]:
        async with self._transaction("find_latest_valid_code") as db:
            result = await db.execute(
                select(AuthCode)
                .where(
                    AuthCode.email == normalize_email(email),
                    AuthCode.code == code,
                    AuthCode.used.is_(False),
                    AuthCode.expires_at > now,
                )
                .order_by(AuthCode.created_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def mark_code_used(self, code_id: str) -> int:
        async with self._transaction("mark_code_used") as db:
            result = await db.execute(
                update(AuthCode)
                .where(AuthCode.id == code_id, AuthCode.used.is_(False))
                .values(used=True)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    async def increment_code_attempts(self, email: str, now: datetime) -> int:
        """Penaliza todos os códigos pendentes do email"""
        async with self._transaction("increment_code_attempts") as db:
            result = await db.execute(
                update(AuthCode)
                .where(
                    AuthCode.email == normalize_email(email),
                    AuthCode.used.is_(False),
                    AuthCode.expires_at > now,
                )
                .values(attempts=AuthCode.attempts + 1)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    # === SESSIONS ===

    async def insert_session(self, user_id: str, token: str, expires_at: datetime, now: datetime) -> Session:
        async with self._transaction("insert_session") as db:
            session = Session(
                user_id=user_id,
                token=token,
                expires_at=expires_at,
                last_activity=now,
                created_at=now,
            )
            db.add(session)
            await db.flush()
            return session

    async def find_session_by_token(self, token: str) -> Optional[Session]:
        async with self._transaction("find_session_by_token") as db:
            result = await db.execute(
                select(Session).where(Session.token == token)
            )
            return result.unique().scalar_one_or_none()

    async def touch_session_activity(self, session_id: str, now: datetime) -> None:
        async with self._transaction("touch_session_activity") as db:
            await db.execute(
                update(Session)
                .where(Session.id == session_id)
                .values(last_activity=now)
                .execution_options(synchronize_session=False)
            )

    async def delete_session(self, session_id: str) -> int:
        async with self._transaction("delete_session") as db:
            result = await db.execute(
                delete(Session)
                .where(Session.id == session_id)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    async def delete_session_by_token(self, token: str) -> int:
        async with self._transaction("delete_session_by_token") as db:
            result = await db.execute(
                delete(Session)
                .where(Session.token == token)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    # === MANUTENÇÃO ===

    async def delete_expired(self, kind: str, now: datetime) -> int:
        """Remove códigos expirados/usados ou sessões expiradas"""
        if kind not in EXPIRED_KINDS:
            raise ValueError(f"Tipo de limpeza desconhecido: {kind}")

        async with self._transaction(f"delete_expired:{kind}") as db:
            if kind == "codes":
                statement = delete(AuthCode).where(
                    or_(AuthCode.expires_at < now, AuthCode.used.is_(True))
                )
            else:
                statement = delete(Session).where(Session.expires_at < now)

            result = await db.execute(statement.execution_options(synchronize_session=False))
            return result.rowcount
