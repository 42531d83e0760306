"""
Модуль для работы с хранилищами: репозитории записей и файлы сертификатов.
"""

import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel

from .exceptions import StorageError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class Repository(ABC, Generic[ModelT]):
    """
    Интерфейс хранилища записей по ключу.

    write_lock общий для всех сервисов, работающих с хранилищем: под ним
    выполняются последовательности чтение-изменение-запись.
    """

    def __init__(self):
        self.write_lock = threading.RLock()

    @abstractmethod
    def get(self, key: str) -> Optional[ModelT]:
        """Возвращает запись по ключу или None."""

    @abstractmethod
    def put(self, key: str, record: ModelT) -> ModelT:
        """Сохраняет запись (создание или замена)."""

    @abstractmethod
    def find(self, predicate: Optional[Callable[[ModelT], bool]] = None) -> List[ModelT]:
        """Возвращает записи, удовлетворяющие условию, в порядке добавления."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Удаляет запись. Возвращает True если запись существовала."""

    def find_one(self, predicate: Callable[[ModelT], bool]) -> Optional[ModelT]:
        """Возвращает первую запись, удовлетворяющую условию."""
        found = self.find(predicate)
        return found[0] if found else None

    @abstractmethod
    def keys(self) -> List[str]:
        """Возвращает все ключи."""

    def count(self) -> int:
        """Количество записей."""
        return len(self.find())

    def health_check(self) -> bool:
        """Проверяет доступность хранилища."""
        return True


class InMemoryRepository(Repository[ModelT]):
    """
    Хранилище в памяти процесса.

    Записи хранятся и выдаются копиями, поэтому изменение возвращенного
    объекта не меняет хранилище без явного put().
    """

    def __init__(self):
        super().__init__()
        self._records: Dict[str, ModelT] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[ModelT]:
        with self._lock:
            record = self._records.get(key)
            return record.model_copy(deep=True) if record is not None else None

    def put(self, key: str, record: ModelT) -> ModelT:
        with self._lock:
            self._records[key] = record.model_copy(deep=True)
        return record

    def find(self, predicate: Optional[Callable[[ModelT], bool]] = None) -> List[ModelT]:
        with self._lock:
            records = list(self._records.values())
        return [
            record.model_copy(deep=True)
            for record in records
            if predicate is None or predicate(record)
        ]

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._records.pop(key, None) is not None

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._records.keys())

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def clear(self):
        """Очищает хранилище."""
        with self._lock:
            self._records.clear()


class FileStorage:
    """Класс для работы с файлами сертификатов (PDF, PNG, QR)."""

    def __init__(self, base_path: str = "certificates"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def certificate_dir(self, certificate_id: str) -> Path:
        """Директория файлов сертификата."""
        return self.base_path / certificate_id

    def save_file(self, certificate_id: str, filename: str, content: bytes) -> Path:
        """
        Сохранение файла сертификата.

        Args:
            certificate_id: ID сертификата
            filename: Имя файла
            content: Содержимое файла

        Returns:
            Путь к сохраненному файлу

        Raises:
            StorageError: При ошибке записи
        """
        dir_path = self.certificate_dir(certificate_id)

        try:
            dir_path.mkdir(parents=True, exist_ok=True)
            file_path = dir_path / filename
            file_path.write_bytes(content)
            os.chmod(file_path, 0o644)
            logger.debug(f"Файл {file_path} сохранен ({len(content)} байт)")
            return file_path

        except OSError as e:
            raise StorageError(f"Ошибка сохранения файла: {e}")

    def health_check(self) -> bool:
        """Проверяет, что директория существует и доступна на запись."""
        return self.base_path.is_dir() and os.access(self.base_path, os.W_OK)
