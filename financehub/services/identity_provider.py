"""
FinanceHUB - Identity Provider Admin Client
Cliente da API administrativa do provedor de identidade (Supabase Auth)

Usado apenas no cadastro por senha e na confirmação administrativa de
email. A validação dos tokens emitidos pelo provedor fica em
financehub.core.external_tokens.
"""
import logging
from typing import Optional

import httpx

from financehub.core.config import settings
from financehub.core.errors import EmailAlreadyRegistered, IdentityProviderError

logger = logging.getLogger(__name__)

USERS_PAGE_SIZE = 1000


class IdentityProviderAdmin:
    """Operações administrativas sobre identidades externas"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        service_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.SUPABASE_URL or "").rstrip("/")
        self.service_key = service_key or settings.SUPABASE_SERVICE_KEY
        self.timeout = timeout or settings.IDENTITY_PROVIDER_TIMEOUT_SECONDS
        self.transport = transport

    def is_configured(self) -> bool:
        return bool(self.base_url and self.service_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{self.base_url}/auth/v1",
            headers={
                "apikey": self.service_key,
                "Authorization": f"Bearer {self.service_key}",
            },
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        if not self.is_configured():
            logger.error("[IDP] SUPABASE_URL e SUPABASE_SERVICE_KEY devem estar definidos")
            raise IdentityProviderError("Provedor de identidade não configurado")

        try:
            async with self._client() as client:
                return await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"[IDP] Falha em {method} {path}: {e}")
            raise IdentityProviderError() from e

    @staticmethod
    def _error_text(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if not isinstance(body, dict):
            return str(body)
        return str(body.get("msg") or body.get("message") or body.get("error_description") or body)

    async def create_confirmed_user(self, email: str, password: str, metadata: dict) -> dict:
        """Cria a identidade já com email confirmado (sem email de confirmação)"""
        response = await self._request(
            "POST",
            "/admin/users",
            json={
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": metadata,
            },
        )

        if response.status_code in (200, 201):
            return response.json()

        detail = self._error_text(response)
        if response.status_code == 422 or "already" in detail.lower():
            raise EmailAlreadyRegistered()

        logger.error(f"[IDP] Erro ao criar usuário {email}: {response.status_code} {detail}")
        if response.status_code in (401, 403):
            raise IdentityProviderError(
                "Chave do provedor de identidade incorreta. Use a chave service_role em SUPABASE_SERVICE_KEY."
            )
        raise IdentityProviderError()

    async def find_user_by_email(self, email: str) -> Optional[dict]:
        response = await self._request(
            "GET",
            "/admin/users",
            params={"page": 1, "per_page": USERS_PAGE_SIZE},
        )
        if response.status_code != 200:
            logger.error(f"[IDP] Erro ao listar usuários: {response.status_code} {self._error_text(response)}")
            raise IdentityProviderError()

        target = email.strip().lower()
        for user in response.json().get("users", []):
            if (user.get("email") or "").lower() == target:
                return user
        return None

    async def confirm_email(self, user_id: str) -> dict:
        response = await self._request(
            "PUT",
            f"/admin/users/{user_id}",
            json={"email_confirm": True},
        )
        if response.status_code != 200:
            logger.error(f"[IDP] Erro ao confirmar {user_id}: {response.status_code} {self._error_text(response)}")
            raise IdentityProviderError()
        return response.json()
