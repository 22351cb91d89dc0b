"""
FinanceHUB - Third-Party Token Validation
Validação dos JWT emitidos pelo provedor de identidade externo

O provedor assina tokens em dois modos, conforme a configuração do projeto:
1. HS256 com segredo compartilhado (legado)
2. ES256/RS256 com chaves publicadas em {issuer}/.well-known/jwks.json

O algoritmo declarado no header decide o caminho. Qualquer falha resulta
em None: o chamador tenta outro modo de autenticação ou nega o acesso.
"""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Iterable

import httpx
import jwt
from jwt import PyJWKSet

from .config import settings
from .errors import TokenVerificationError

logger = logging.getLogger(__name__)

JWKS_PATH = "/.well-known/jwks.json"

# Claims de expiração/audiência são tratados aqui, não pela biblioteca
_DECODE_OPTIONS = {"verify_aud": False, "require": ["exp", "sub"]}


class TokenAlgorithm(str, Enum):
    """Algoritmos aceitos nos tokens de terceiros"""
    HS256 = "HS256"
    ES256 = "ES256"
    RS256 = "RS256"

    @property
    def is_shared_secret(self) -> bool:
        return self is TokenAlgorithm.HS256

    @property
    def is_asymmetric(self) -> bool:
        return self in (TokenAlgorithm.ES256, TokenAlgorithm.RS256)

    @classmethod
    def from_header(cls, header: dict) -> Optional["TokenAlgorithm"]:
        try:
            return cls(header.get("alg"))
        except ValueError:
            return None


@dataclass
class Identity:
    """Identidade normalizada extraída de um token válido"""
    sub: str
    exp: int
    email: Optional[str] = None
    role: Optional[str] = None
    aud: Optional[object] = None


class JWKSCache:
    """Cache em memória dos conjuntos de chaves públicas por URL"""

    def __init__(self, ttl_seconds: int, timeout_seconds: float):
        self.ttl_seconds = ttl_seconds
        self.timeout_seconds = timeout_seconds
        self._entries: dict = {}

    async def fetch(self, url: str) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.json()

    async def get_key_set(self, url: str, force_refresh: bool = False) -> PyJWKSet:
        entry = self._entries.get(url)
        if entry and not force_refresh:
            fetched_at, key_set = entry
            if time.monotonic() - fetched_at < self.ttl_seconds:
                return key_set

        data = await self.fetch(url)
        if not isinstance(data, dict):
            raise TokenVerificationError(f"Resposta inválida de {url}")
        key_set = PyJWKSet.from_dict(data)
        # Preenchimentos concorrentes produzem o mesmo conteúdo
        self._entries[url] = (time.monotonic(), key_set)
        logger.info(f"[JWKS] Chaves carregadas de {url} ({len(key_set.keys)} chave(s))")
        return key_set


jwks_cache = JWKSCache(
    ttl_seconds=settings.JWKS_CACHE_TTL_SECONDS,
    timeout_seconds=settings.JWKS_FETCH_TIMEOUT_SECONDS,
)


def trusted_issuers() -> list:
    """Emissores cujas chaves publicadas são aceitas"""
    if not settings.SUPABASE_URL:
        return []
    return [f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1"]


def jwks_url_for(issuer: str) -> str:
    return f"{issuer.rstrip('/')}{JWKS_PATH}"


def _select_key(key_set: PyJWKSet, kid: Optional[str]):
    if kid:
        for key in key_set.keys:
            if key.key_id == kid:
                return key
        return None
    if len(key_set.keys) == 1:
        return key_set.keys[0]
    return None


def _verify_shared_secret(token: str, algorithm: TokenAlgorithm, secret: Optional[str]) -> dict:
    if not secret:
        raise TokenVerificationError("Segredo compartilhado não configurado")
    return jwt.decode(token, secret, algorithms=[algorithm.value], options=_DECODE_OPTIONS)


async def _verify_with_jwks(
    token: str,
    algorithm: TokenAlgorithm,
    issuer: str,
    kid: Optional[str],
    key_cache: JWKSCache,
) -> dict:
    url = jwks_url_for(issuer)
    key = _select_key(await key_cache.get_key_set(url), kid)
    if key is None:
        # Rotação de chaves: tenta uma vez com o conjunto atualizado
        key = _select_key(await key_cache.get_key_set(url, force_refresh=True), kid)
    if key is None:
        raise TokenVerificationError(f"Chave '{kid}' não encontrada em {url}")
    if key.algorithm_name != algorithm.value:
        raise TokenVerificationError(f"Chave '{kid}' não é {algorithm.value}")

    return jwt.decode(
        token,
        key.key,
        algorithms=[algorithm.value],
        issuer=issuer,
        options=_DECODE_OPTIONS,
    )


async def validate_external_token(
    token: str,
    shared_secret: Optional[str] = None,
    key_cache: Optional[JWKSCache] = None,
    allowed_issuers: Optional[Iterable[str]] = None,
) -> Optional[Identity]:
    """
    Valida um JWT de terceiro e retorna a identidade normalizada.

    Returns:
        Identity se o token for autêntico e estiver dentro da validade,
        None em qualquer outro caso (nunca lança exceção)
    """
    if shared_secret is None:
        shared_secret = settings.SUPABASE_JWT_SECRET
    if key_cache is None:
        key_cache = jwks_cache
    if allowed_issuers is None:
        allowed_issuers = trusted_issuers()

    # Decodificação estrutural apenas, sem confiança
    try:
        header = jwt.get_unverified_header(token)
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or exp <= time.time():
        return None

    algorithm = TokenAlgorithm.from_header(header)
    if algorithm is None:
        logger.info(f"[AUTH] Algoritmo de token não suportado: {header.get('alg')}")
        return None

    issuer = claims.get("iss")
    if not isinstance(issuer, str):
        issuer = None

    try:
        if algorithm.is_shared_secret:
            payload = _verify_shared_secret(token, algorithm, shared_secret)
        elif algorithm.is_asymmetric and issuer:
            if issuer.rstrip("/") not in {i.rstrip("/") for i in allowed_issuers}:
                raise TokenVerificationError(f"Emissor não confiável: {issuer}")
            payload = await _verify_with_jwks(token, algorithm, issuer, header.get("kid"), key_cache)
        else:
            return None
    except (
        jwt.PyJWTError,
        TokenVerificationError,
        httpx.HTTPError,
        ValueError,
        TypeError,
        AttributeError,
    ) as e:
        logger.info(f"[AUTH] Token de terceiro rejeitado ({algorithm.value}): {e}")
        return None

    return Identity(
        sub=str(payload["sub"]),
        exp=int(payload["exp"]),
        email=payload.get("email") if isinstance(payload.get("email"), str) else None,
        role=payload.get("role"),
        aud=payload.get("aud"),
    )
