import json

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from jwt.utils import base64url_encode

from financehub.core.external_tokens import (
    JWKSCache,
    TokenAlgorithm,
    jwks_url_for,
    validate_external_token,
)
from .conftest import (
    ISSUER,
    JWT_SECRET,
    RSA_KID,
    StaticJWKSCache,
    hs256_token,
    make_claims,
    sign_es256_raw,
)


async def validate(token, key_cache, secret=JWT_SECRET, issuers=(ISSUER,)):
    return await validate_external_token(
        token, shared_secret=secret, key_cache=key_cache, allowed_issuers=list(issuers)
    )


def test_algorithm_from_header():
    assert TokenAlgorithm.from_header({"alg": "ES256"}) is TokenAlgorithm.ES256
    assert TokenAlgorithm.from_header({"alg": "HS512"}) is None
    assert TokenAlgorithm.from_header({}) is None
    assert TokenAlgorithm.HS256.is_shared_secret
    assert TokenAlgorithm.RS256.is_asymmetric


def test_jwks_url_for_issuer():
    assert jwks_url_for(ISSUER + "/") == f"{ISSUER}/.well-known/jwks.json"


async def test_hs256_token_with_shared_secret(key_cache):
    identity = await validate(hs256_token(sub="abc", email="bob@example.com"), key_cache)

    assert identity.sub == "abc"
    assert identity.email == "bob@example.com"
    assert identity.aud == "authenticated"
    assert key_cache.fetches == 0


async def test_hs256_wrong_secret_is_rejected(key_cache):
    token = hs256_token(secret="another-secret-that-is-also-long-enough-000")
    assert await validate(token, key_cache) is None


async def test_hs256_without_configured_secret_fails_closed(key_cache):
    assert await validate(hs256_token(), key_cache, secret="") is None


async def test_expired_token_is_rejected_without_network(key_cache, es256_token):
    assert await validate(es256_token(expires_in=-10), key_cache) is None
    assert await validate(hs256_token(expires_in=-10), key_cache) is None
    assert key_cache.fetches == 0


async def test_token_without_exp_is_rejected(key_cache):
    token = jwt.encode({"sub": "abc"}, JWT_SECRET, algorithm="HS256")
    assert await validate(token, key_cache) is None


async def test_unsupported_algorithm_is_rejected(key_cache):
    token = jwt.encode(make_claims(), JWT_SECRET, algorithm="HS512")
    assert await validate(token, key_cache) is None


async def test_unsigned_token_is_rejected(key_cache):
    token = jwt.encode(make_claims(), None, algorithm="none")
    assert await validate(token, key_cache) is None


async def test_malformed_token_is_rejected(key_cache):
    assert await validate("not-a-jwt", key_cache) is None
    assert await validate("a" * 64, key_cache) is None


async def test_es256_token_verified_with_published_keys(key_cache, es256_token):
    identity = await validate(es256_token(sub="ext-42"), key_cache)

    assert identity.sub == "ext-42"
    assert key_cache.fetches == 1
    assert key_cache.last_url == f"{ISSUER}/.well-known/jwks.json"


async def test_published_keys_are_cached(key_cache, es256_token):
    await validate(es256_token(), key_cache)
    await validate(es256_token(), key_cache)
    assert key_cache.fetches == 1


async def test_rs256_token_verified_with_published_keys(key_cache, rsa_private_key):
    token = jwt.encode(
        make_claims(sub="rsa-user", iss=ISSUER),
        rsa_private_key,
        algorithm="RS256",
        headers={"kid": RSA_KID},
    )
    identity = await validate(token, key_cache)
    assert identity.sub == "rsa-user"


async def test_es256_signed_by_unknown_key_is_rejected(key_cache, es256_token):
    forged = es256_token(key=ec.generate_private_key(ec.SECP256R1()))
    assert await validate(forged, key_cache) is None


async def test_unknown_kid_refreshes_keys_once(key_cache, es256_token):
    assert await validate(es256_token(kid="rotated"), key_cache) is None
    assert key_cache.fetches == 2


async def test_asymmetric_token_without_issuer_is_rejected(key_cache, es256_token):
    assert await validate(es256_token(iss=None), key_cache) is None
    assert key_cache.fetches == 0


async def test_untrusted_issuer_is_rejected_without_fetch(key_cache, es256_token):
    token = es256_token(iss="https://attacker.example/auth/v1")
    assert await validate(token, key_cache) is None
    assert key_cache.fetches == 0


async def test_key_fetch_failure_is_rejected(es256_token):
    class FailingCache(JWKSCache):
        async def fetch(self, url):
            raise httpx.ConnectError("unreachable")

    cache = FailingCache(ttl_seconds=60, timeout_seconds=1.0)
    assert await validate(es256_token(), cache) is None


@pytest.mark.parametrize("iss", [12345, ["https://project.supabase.test/auth/v1"]])
async def test_non_string_issuer_is_rejected(key_cache, ec_private_key, iss):
    token = sign_es256_raw(make_claims(iss=iss), ec_private_key)

    assert await validate(token, key_cache) is None
    assert key_cache.fetches == 0


async def test_malformed_key_set_is_rejected(es256_token):
    cache = StaticJWKSCache(["not", "a", "jwks"])

    assert await validate(es256_token(), cache) is None
    assert cache.fetches == 1


async def test_jwks_cache_fetches_over_http(monkeypatch, jwks):
    calls = []

    def handler(request):
        calls.append(str(request.url))
        return httpx.Response(200, json=jwks)

    original_client = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return original_client(*args, **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)

    cache = JWKSCache(ttl_seconds=60, timeout_seconds=1.0)
    key_set = await cache.get_key_set(f"{ISSUER}/.well-known/jwks.json")

    assert len(key_set.keys) == 2
    assert calls == [f"{ISSUER}/.well-known/jwks.json"]


@pytest.mark.parametrize("alg", ["ES256", "RS256"])
async def test_hmac_signed_token_claiming_asymmetric_alg_is_rejected(key_cache, alg):
    # Cabeçalho forjado: assinatura HMAC declarando algoritmo assimétrico
    header = {"alg": alg, "typ": "JWT", "kid": "ec-key-1"}
    good = jwt.encode(make_claims(iss=ISSUER), JWT_SECRET, algorithm="HS256")
    _, payload, signature = good.split(".")
    forged_header = base64url_encode(json.dumps(header).encode()).decode()
    forged = ".".join([forged_header, payload, signature])

    assert await validate(forged, key_cache) is None
