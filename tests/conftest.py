"""
Fixtures compartilhadas: banco sqlite por teste, relógio controlável,
email falso e chaves de assinatura para tokens de terceiros.
"""
import asyncio
import json
import time
from datetime import datetime, timedelta

import jwt
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from jwt.algorithms import ECAlgorithm, RSAAlgorithm
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from financehub.core.config import Settings
from financehub.core.external_tokens import JWKSCache, validate_external_token
from financehub.database import Base
from financehub.services import AuthService, CredentialStore

import financehub.models  # noqa: F401

JWT_SECRET = "test-shared-secret-with-enough-length-0123456789"
ISSUER = "https://project.supabase.test/auth/v1"
EC_KID = "ec-key-1"
RSA_KID = "rsa-key-1"


class FakeClock:
    def __init__(self, start: datetime = datetime(2026, 3, 2, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeEmailService:
    def __init__(self, deliver: bool = True):
        self.deliver = deliver
        self.sent = []

    def send_auth_code_email(self, to_email: str, code: str, expiry_minutes: int) -> bool:
        self.sent.append({"to": to_email, "code": code, "expiry_minutes": expiry_minutes})
        return self.deliver

    @property
    def last_code(self):
        return self.sent[-1]["code"] if self.sent else None


class StaticJWKSCache(JWKSCache):
    """JWKS servido da memória; conta as buscas remotas"""

    def __init__(self, jwks: dict):
        super().__init__(ttl_seconds=600, timeout_seconds=1.0)
        self.jwks = jwks
        self.fetches = 0

    async def fetch(self, url: str) -> dict:
        self.fetches += 1
        self.last_url = url
        return self.jwks


class FakeIdentityAdmin:
    def __init__(self):
        self.users = {}
        self.confirmed = []
        self._next = 0

    async def create_confirmed_user(self, email, password, metadata):
        from financehub.core.errors import EmailAlreadyRegistered
        if any(u["email"] == email for u in self.users.values()):
            raise EmailAlreadyRegistered()
        self._next += 1
        user_id = f"00000000-0000-0000-0000-{self._next:012d}"
        self.users[user_id] = {"id": user_id, "email": email, "user_metadata": metadata}
        return self.users[user_id]

    async def find_user_by_email(self, email):
        for user in self.users.values():
            if user["email"] == email:
                return user
        return None

    async def confirm_email(self, user_id):
        self.confirmed.append(user_id)
        return self.users[user_id]


def _public_jwk(algorithm_cls, public_key, kid: str, alg: str) -> dict:
    jwk = json.loads(algorithm_cls.to_jwk(public_key))
    jwk.update({"kid": kid, "alg": alg, "use": "sig"})
    return jwk


@pytest.fixture(scope="session")
def ec_private_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def jwks(ec_private_key, rsa_private_key):
    return {
        "keys": [
            _public_jwk(ECAlgorithm, ec_private_key.public_key(), EC_KID, "ES256"),
            _public_jwk(RSAAlgorithm, rsa_private_key.public_key(), RSA_KID, "RS256"),
        ]
    }


@pytest.fixture
def key_cache(jwks):
    return StaticJWKSCache(jwks)


def make_claims(sub="ext-user-1", email="alice@example.com", expires_in=3600, **extra):
    claims = {
        "sub": sub,
        "email": email,
        "role": "authenticated",
        "aud": "authenticated",
        "exp": int(time.time()) + expires_in,
    }
    claims.update(extra)
    return claims


def hs256_token(secret=JWT_SECRET, **claims):
    return jwt.encode(make_claims(**claims), secret, algorithm="HS256")


def sign_es256_raw(payload: dict, key, kid=EC_KID):
    """Assina o payload sem a validação de claims do jwt.encode"""
    return jwt.PyJWS().encode(
        json.dumps(payload).encode(),
        key,
        algorithm="ES256",
        headers={"kid": kid},
    )


@pytest.fixture
def es256_token(ec_private_key):
    def _make(kid=EC_KID, key=None, **claims):
        claims.setdefault("iss", ISSUER)
        payload = make_claims(**claims)
        if payload["iss"] is None:
            del payload["iss"]
        return jwt.encode(
            payload,
            key or ec_private_key,
            algorithm="ES256",
            headers={"kid": kid},
        )
    return _make


@pytest.fixture
def test_settings():
    return Settings(
        ENVIRONMENT="development",
        SUPABASE_JWT_SECRET=JWT_SECRET,
        SUPABASE_URL="https://project.supabase.test",
        CONFIRM_USER_SECRET=None,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def email_service():
    return FakeEmailService()


@pytest.fixture
def identity_admin():
    return FakeIdentityAdmin()


async def _create_schema(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def build_session_factory(db_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    return engine, factory


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine, factory = build_session_factory(tmp_path / "auth.db")
    await _create_schema(engine)
    yield factory
    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return CredentialStore(session_factory)


def make_validator(key_cache):
    async def validator(token):
        return await validate_external_token(
            token,
            shared_secret=JWT_SECRET,
            key_cache=key_cache,
            allowed_issuers=[ISSUER],
        )
    return validator


@pytest.fixture
def auth_service(store, email_service, identity_admin, key_cache, test_settings, clock):
    return AuthService(
        store,
        email_service=email_service,
        identity_admin=identity_admin,
        token_validator=make_validator(key_cache),
        settings=test_settings,
        clock=clock,
    )


@pytest_asyncio.fixture
async def alice(store):
    return await store.insert_user("user-alice", "Alice", "alice@example.com", "gerente")


def run(coro):
    """Executa corrotina fora de um loop (testes síncronos da API)"""
    return asyncio.run(coro)
