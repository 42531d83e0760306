"""
Настройки приложения, загружаемые из переменных окружения.
"""

import logging
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Настройки приложения."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Игнорировать дополнительные поля из .env
    )

    # Настройки токенов
    jwt_secret: str = Field(default="change-me-in-production", description="Секрет для подписи JWT")
    jwt_algorithm: str = Field(default="HS256", description="Алгоритм подписи JWT")
    jwt_expires_days: int = Field(default=7, ge=1, description="Срок действия токена в днях")

    # Настройки паролей
    bcrypt_rounds: int = Field(default=12, ge=4, le=31, description="Стоимость bcrypt")

    # Без отдельного процесса одобрения институты подтверждаются при регистрации
    auto_verify_institutes: bool = Field(default=True, description="Подтверждать институты при регистрации")

    # Настройки хранилища
    storage_backend: str = Field(default="memory", description="Бэкенд хранилища: memory или database")
    database_url: str = Field(default="sqlite:///./certchain.db", description="URL подключения к базе данных")
    certificates_path: Path = Field(
        default=Path("./certificates"),
        description="Путь к директории файлов сертификатов"
    )

    # Настройки проверки
    frontend_url: str = Field(default="http://localhost:3000", description="Адрес фронтенда для ссылок проверки")
    max_bulk_verify: int = Field(default=10, ge=1, description="Максимум ID в пакетной проверке")

    # Настройки логирования
    log_level: str = Field(default="INFO", description="Уровень логирования")
    log_file: Path = Field(default=Path("./logs/api.log"), description="Путь к файлу логов")

    # Настройки приложения
    debug: bool = Field(default=False, description="Режим отладки")
    environment: str = Field(default="production", description="Окружение: development или production")
    cors_origins: str = Field(default="*", description="Разрешенные источники CORS через запятую")
    host: str = Field(default="0.0.0.0", description="Хост API сервера")
    port: int = Field(default=8000, description="Порт API сервера")

    @property
    def cors_origins_list(self) -> List[str]:
        """Возвращает список разрешенных источников CORS."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        """Проверяет, запущено ли приложение в режиме разработки."""
        return self.environment.lower() == "development"

    @property
    def show_tracebacks(self) -> bool:
        """Показывать ли стек вызовов в ответах об ошибках."""
        return self.debug or self.is_development

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v):
        """Валидация бэкенда хранилища."""
        backend = v.lower().strip()
        if backend not in ("memory", "database"):
            raise ValueError(f"Неизвестный бэкенд хранилища: {v}")
        return backend

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Валидация уровня логирования."""
        level = v.upper().strip()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Некорректный уровень логирования: {v}")
        return level

    @field_validator("frontend_url")
    @classmethod
    def validate_frontend_url(cls, v):
        """Убирает завершающий слеш из адреса фронтенда."""
        return v.rstrip("/")

    def create_directories(self):
        """Создает необходимые директории."""
        self.certificates_path.mkdir(parents=True, exist_ok=True)
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Директории созданы: {self.certificates_path}, {self.log_file.parent}")


# Глобальная переменная с настройками
settings = Settings()


def get_settings() -> Settings:
    """Возвращает объект настроек."""
    return settings


def load_settings_from_file(env_file: str = ".env") -> Settings:
    """
    Загружает настройки из указанного файла.

    Args:
        env_file: Путь к файлу с переменными окружения

    Returns:
        Settings: Объект настроек
    """
    return Settings(_env_file=env_file)
