"""
FinanceHUB - Cleanup Scheduler
Remove periodicamente códigos de verificação e sessões expirados
"""
import asyncio
import logging

from financehub.core.config import settings
from financehub.core.errors import StorageError

logger = logging.getLogger(__name__)


async def run_cleanup_once(auth_service) -> tuple[int, int]:
    """Executa uma rodada de limpeza e retorna (códigos, sessões) removidos"""
    codes = await auth_service.cleanup_expired_codes()
    sessions = await auth_service.cleanup_expired_sessions()
    if codes or sessions:
        logger.info(f"[CLEANUP] {codes} código(s) e {sessions} sessão(ões) removidos")
    return codes, sessions


async def run_cleanup_scheduler(auth_service, interval_minutes: int = None):
    """
    Loop de manutenção iniciado no lifespan da aplicação.
    Falhas do banco são registradas e a próxima rodada segue normalmente.
    """
    interval = (interval_minutes or settings.CLEANUP_INTERVAL_MINUTES) * 60
    logger.info(f"[CLEANUP] Servico de limpeza INICIADO (a cada {interval // 60} minutos)")

    while True:
        try:
            await run_cleanup_once(auth_service)
        except StorageError:
            logger.error("[CLEANUP] Banco indisponivel, limpeza adiada")
        except Exception:
            logger.exception("[CLEANUP] Erro inesperado na limpeza")

        await asyncio.sleep(interval)
