"""
FinanceHUB - Configuration
"""
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv

# Carrega .env com override para sobrescrever variáveis do sistema
env_file = Path(__file__).parent.parent.parent / ".env"
if env_file.exists():
    load_dotenv(env_file, override=True)


class Settings(BaseSettings):
    # App
    APP_NAME: str = "FinanceHUB API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3001

    # Database (Postgres em produção, sqlite para desenvolvimento local)
    DATABASE_URL: str = "sqlite+aiosqlite:///./financehub.db"

    # Provedor de identidade (Supabase Auth)
    SUPABASE_URL: Optional[str] = None
    # Aceita SUPABASE_SERVICE_KEY ou SUPABASE_SERVICE_ROLE_KEY (integração Vercel + Supabase)
    SUPABASE_SERVICE_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SUPABASE_SERVICE_KEY", "SUPABASE_SERVICE_ROLE_KEY"),
    )
    # Segredo compartilhado dos tokens HS256 (legado)
    SUPABASE_JWT_SECRET: Optional[str] = None
    IDENTITY_PROVIDER_TIMEOUT_SECONDS: float = 10.0

    # JWKS (tokens ES256/RS256)
    JWKS_CACHE_TTL_SECONDS: int = 600
    JWKS_FETCH_TIMEOUT_SECONDS: float = 5.0

    # Login por código
    AUTH_CODE_EXPIRY_MINUTES: int = 10
    AUTH_CODE_MAX_ATTEMPTS: int = 5
    SESSION_EXPIRY_HOURS: int = 24 * 7
    AUTH_RATE_LIMIT: str = "5/minute"

    # Confirmação administrativa de usuários
    CONFIRM_USER_SECRET: Optional[str] = None

    # Manutenção
    CLEANUP_ENABLED: bool = True
    CLEANUP_INTERVAL_MINUTES: int = 60

    # CORS
    CORS_ORIGINS: list = ["*"]

    # Email Settings (SMTP)
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_EMAIL: str = "noreply@financehub.com.br"
    SMTP_FROM_NAME: str = "FinanceHUB"
    SMTP_TLS: bool = True
    SMTP_SSL: bool = False

    @property
    def is_production(self) -> bool:
        """Em produção o código de verificação nunca sai do canal de email"""
        return self.ENVIRONMENT.lower() == "production"

    class Config:
        extra = "ignore"
        env_file = ".env"
        case_sensitive = True
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
