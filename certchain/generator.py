"""
Генератор идентификаторов и хешей сертификатов.
"""

import hashlib
import random
import string
import time
from datetime import date
from typing import Optional, Set, Union

from .exceptions import GenerationError

HASH_SEPARATOR = "|"


def _canonical(value: Union[str, date, None]) -> str:
    """Приводит значение поля к канонической строке."""
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def compute_certificate_hash(student_name: str, course_name: str,
                             completion_date: Union[str, date],
                             issuer_name: Optional[str] = None,
                             issuer_organization: Optional[str] = None) -> str:
    """
    Вычисляет SHA-256 хеш содержимого сертификата.

    Хеш зависит только от содержательных полей, поэтому его можно
    пересчитать и сравнить с сохраненным.

    Args:
        student_name: Имя студента
        course_name: Название курса
        completion_date: Дата завершения
        issuer_name: Имя выдавшего лица
        issuer_organization: Организация

    Returns:
        str: Хеш в hex-представлении (64 символа)
    """
    payload = HASH_SEPARATOR.join(
        _canonical(value) for value in (
            student_name, course_name, completion_date, issuer_name, issuer_organization
        )
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class CertificateIDGenerator:
    """Генератор уникальных ID сертификатов и институтов."""

    CERTIFICATE_PREFIX = "CERT"
    INSTITUTE_PREFIX = "INST"

    def __init__(self, token_length: int = 8):
        # Символы случайной части (латинские буквы в верхнем регистре + цифры)
        self.characters = string.ascii_uppercase + string.digits
        self.token_length = token_length
        self.max_attempts = 1000  # Максимальное количество попыток генерации уникального ID

    def generate(self, existing_ids: Set[str] = None) -> str:
        """
        Генерирует уникальный ID сертификата.

        Формат: CERT + 6 последних цифр времени в мс + 8 случайных символов

        Args:
            existing_ids: Множество существующих ID для проверки уникальности

        Returns:
            str: Уникальный ID сертификата

        Raises:
            GenerationError: Если не удалось сгенерировать уникальный ID
        """
        return self._generate_unique(self.CERTIFICATE_PREFIX, self.token_length, existing_ids)

    def generate_institute_id(self, existing_ids: Set[str] = None) -> str:
        """Генерирует ID института: INST + 6 цифр времени + 3 случайных символа."""
        return self._generate_unique(self.INSTITUTE_PREFIX, 3, existing_ids)

    def _generate_unique(self, prefix: str, token_length: int, existing_ids: Optional[Set[str]]) -> str:
        if existing_ids is None:
            existing_ids = set()

        for attempt in range(self.max_attempts):
            generated_id = f"{prefix}{self._timestamp_suffix()}{self._generate_token(token_length)}"

            if generated_id not in existing_ids:
                return generated_id

        raise GenerationError(
            f"Не удалось сгенерировать уникальный ID за {self.max_attempts} попыток"
        )

    @staticmethod
    def _timestamp_suffix() -> str:
        """Последние 6 цифр текущего времени в миллисекундах."""
        return str(int(time.time() * 1000))[-6:]

    def _generate_token(self, length: int) -> str:
        return ''.join(random.choices(self.characters, k=length))
