"""
FinanceHUB - Auth Errors
Taxonomia de erros do núcleo de autenticação.

Erros de domínio carregam a mensagem exibida ao usuário e o status HTTP
correspondente; erros de infraestrutura (StorageError) nunca expõem o
detalhe interno.
"""


class AuthError(Exception):
    """Base dos erros de autenticação"""
    status_code = 400
    message = "Erro de autenticação"

    def __init__(self, message: str = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(AuthError):
    message = "Dados inválidos"


class UserNotFound(AuthError):
    status_code = 404
    message = "Usuário não encontrado. Entre em contato com o administrador."


class UserInactive(AuthError):
    status_code = 403
    message = "Usuário inativo. Entre em contato com o administrador."


class UserNotFoundOrInactive(AuthError):
    status_code = 401
    message = "Usuário não encontrado ou inativo"


class InvalidOrExpiredCode(AuthError):
    status_code = 401
    message = "Código inválido ou expirado"


class TooManyAttempts(AuthError):
    status_code = 429
    message = "Muitas tentativas inválidas. Solicite um novo código."


class InvalidSession(AuthError):
    status_code = 401
    message = "Sessão inválida"


class SessionExpired(AuthError):
    status_code = 401
    message = "Sessão expirada"


class EmailAlreadyRegistered(AuthError):
    message = "Este e-mail já está cadastrado."


class IdentityProviderError(AuthError):
    status_code = 502
    message = "Erro ao comunicar com o provedor de identidade"


class StorageError(AuthError):
    """Falha de infraestrutura do banco, distinta de 'não encontrado'"""
    status_code = 503
    message = "Serviço temporariamente indisponível. Tente novamente."


class TokenVerificationError(Exception):
    """Token de terceiro malformado ou não verificável (uso interno)"""
    pass
