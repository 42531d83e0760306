"""
Модуль валидации входных данных для сертификатов и институтов.
"""

import re
from typing import List, Optional, Sequence

from .exceptions import ValidationError


class TextLengthValidator:
    """Валидатор длины текстового поля."""

    def __init__(self, min_length: int = 0, max_length: Optional[int] = None):
        self.min_length = min_length
        self.max_length = max_length

    def validate(self, value: Optional[str]) -> bool:
        """
        Проверяет длину строки после удаления пробелов по краям.

        Args:
            value: Строка для проверки

        Returns:
            bool: True если длина в допустимых пределах
        """
        if value is None:
            return self.min_length == 0

        length = len(value.strip())
        if length < self.min_length:
            return False
        if self.max_length is not None and length > self.max_length:
            return False
        return True


class EmailValidator:
    """Валидатор адресов электронной почты."""

    def __init__(self):
        self.pattern = re.compile(r'^[A-Za-z0-9._%+-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}$')

    def validate(self, email: str) -> bool:
        """Проверяет формат email."""
        if not email or len(email) > 254:
            return False
        return bool(self.pattern.match(email.strip()))

    @staticmethod
    def normalize(email: str) -> str:
        """Приводит email к каноническому виду."""
        return email.strip().lower()


class PasswordValidator:
    """Валидатор паролей."""

    MIN_LENGTH = 6

    def validate(self, password: str) -> bool:
        """Пароль должен содержать не менее 6 символов."""
        return bool(password) and len(password) >= self.MIN_LENGTH


class CertificateIDValidator:
    """Валидатор ID сертификата, переданного на проверку."""

    MIN_LENGTH = 5
    MAX_LENGTH = 50

    def validate(self, certificate_id: str) -> bool:
        """
        Проверяет длину ID сертификата.

        Args:
            certificate_id: ID сертификата

        Returns:
            bool: True если ID имеет допустимую длину
        """
        if not certificate_id:
            return False
        return self.MIN_LENGTH <= len(certificate_id.strip()) <= self.MAX_LENGTH


class HashValidator:
    """Валидатор SHA-256 хеша в hex-представлении (допускается префикс 0x)."""

    def __init__(self):
        self.pattern = re.compile(r'^(0x)?[0-9a-fA-F]{64}$')

    def validate(self, value: str) -> bool:
        """Проверяет формат хеша."""
        if not value:
            return False
        value = value.strip()
        if not 64 <= len(value) <= 66:
            return False
        return bool(self.pattern.match(value))

    @staticmethod
    def normalize(value: str) -> str:
        """Возвращает хеш в нижнем регистре без префикса 0x."""
        value = value.strip().lower()
        return value[2:] if value.startswith("0x") else value


class RevocationReasonValidator:
    """Валидатор причины отзыва сертификата."""

    MIN_LENGTH = 10
    MAX_LENGTH = 500

    def __init__(self):
        self.length_validator = TextLengthValidator(self.MIN_LENGTH, self.MAX_LENGTH)

    def validate(self, reason: Optional[str]) -> bool:
        """Причина обязательна и должна содержать от 10 до 500 символов."""
        if not reason:
            return False
        return self.length_validator.validate(reason)


class DataValidator:
    """Общий валидатор для всех типов данных."""

    def __init__(self, max_bulk_verify: int = 10):
        self.max_bulk_verify = max_bulk_verify
        self.certificate_id_validator = CertificateIDValidator()
        self.hash_validator = HashValidator()
        self.reason_validator = RevocationReasonValidator()

    def validate_certificate_id(self, certificate_id: str) -> str:
        """Проверяет ID сертификата и возвращает его без пробелов по краям."""
        if not self.certificate_id_validator.validate(certificate_id):
            raise ValidationError("Certificate ID must be 5-50 characters")
        return certificate_id.strip()

    def validate_hash(self, value: str) -> str:
        """Проверяет хеш сертификата и возвращает его нормализованную форму."""
        if not self.hash_validator.validate(value):
            raise ValidationError("Hash must be 64-66 characters")
        return self.hash_validator.normalize(value)

    def validate_revocation_reason(self, reason: Optional[str]) -> str:
        """Проверяет причину отзыва."""
        if not self.reason_validator.validate(reason):
            raise ValidationError("Revocation reason must be 10-500 characters")
        return reason.strip()

    def validate_bulk_ids(self, certificate_ids: Sequence[str]) -> List[str]:
        """
        Проверяет список ID для пакетной проверки.

        Args:
            certificate_ids: Список ID сертификатов

        Returns:
            List[str]: Тот же список в исходном порядке

        Raises:
            ValidationError: Если список пуст или длиннее допустимого
        """
        if certificate_ids is None or isinstance(certificate_ids, str):
            raise ValidationError(f"Must provide 1-{self.max_bulk_verify} certificate IDs")

        ids = list(certificate_ids)
        if not 1 <= len(ids) <= self.max_bulk_verify:
            raise ValidationError(f"Must provide 1-{self.max_bulk_verify} certificate IDs")
        return ids
