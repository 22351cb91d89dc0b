"""
FinanceHUB - User Model
Perfis locais dos usuários do back-office
"""
import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey

from financehub.database import Base


class UserRole(str, Enum):
    """Papéis de acesso"""
    ADMIN = "admin"
    GERENTE = "gerente"
    USUARIO = "usuario"


DEFAULT_ROLE = UserRole.USUARIO.value


class User(Base):
    """
    Modelo de usuário.

    gerente_id aponta para o usuário dono da conta; ausente significa que o
    usuário é o próprio dono (hierarquia de apenas dois níveis).
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    nome = Column(String(255), nullable=False, default="")
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(String(20), nullable=False, default=DEFAULT_ROLE)
    ativo = Column(Boolean, nullable=False, default=True)

    gerente_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    telefone = Column(String(30))
    cargo = Column(String(100))

    ultimo_login = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def effective_owner_id(self) -> str:
        """Id sob cujo escopo de dados o usuário opera"""
        return self.gerente_id or self.id
