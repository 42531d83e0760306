"""
Кастомные исключения для системы сертификации.

Каждое исключение несет HTTP-код, в который его переводит API.
"""

from typing import List, Optional


class CertificationError(Exception):
    """Базовое исключение для всех ошибок сервиса."""

    status_code = 500

    def __init__(self, message: str = "", errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class ValidationError(CertificationError):
    """Ошибка валидации входных данных."""

    status_code = 400


class NotFoundError(CertificationError):
    """Запрошенная запись не найдена."""

    status_code = 404


class CertificateNotFoundError(NotFoundError):
    """Сертификат не найден."""
    pass


class InstituteNotFoundError(NotFoundError):
    """Институт не найден."""
    pass


class AuthError(CertificationError):
    """Ошибка аутентификации."""

    status_code = 401

    # Причины отказа
    UNKNOWN_EMAIL = "unknown_email"
    WRONG_PASSWORD = "wrong_password"
    ACCOUNT_INACTIVE = "account_inactive"
    INVALID_TOKEN = "invalid_token"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_MISSING = "token_missing"

    def __init__(self, message: str = "", reason: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.reason = reason
        if status_code is not None:
            self.status_code = status_code


class PermissionDeniedError(CertificationError):
    """Недостаточно прав: чужой сертификат или неподтвержденный институт."""

    status_code = 403


class ConflictError(CertificationError):
    """Конфликт с существующими данными."""

    status_code = 409


class InstituteExistsError(ConflictError):
    """Институт с таким email уже зарегистрирован."""
    pass


class CertificateExistsError(ConflictError):
    """Сертификат с таким ID или хешем уже существует."""
    pass


class LedgerError(CertificationError):
    """Ошибка работы с реестром транзакций."""

    status_code = 503


class StorageError(CertificationError):
    """Ошибка работы с хранилищем."""
    pass


class RenderError(CertificationError):
    """Ошибка генерации файла сертификата."""
    pass


class GenerationError(CertificationError):
    """Ошибка генерации идентификатора."""
    pass


class InternalError(CertificationError):
    """Непредвиденная внутренняя ошибка."""
    pass
