"""
FinanceHUB - Security
Geração de códigos de verificação e tokens de sessão
"""
import secrets

CODE_MIN = 100000
CODE_MAX = 999999
SESSION_TOKEN_BYTES = 32


def generate_code() -> str:
    """Gera código numérico de 6 dígitos (100000-999999)"""
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


def generate_token() -> str:
    """Gera token de sessão opaco (32 bytes aleatórios -> 64 caracteres hex)"""
    return secrets.token_hex(SESSION_TOKEN_BYTES)
