"""
Модели SQLAlchemy и репозитории для хранения записей в базе данных.
"""

import logging
from typing import Callable, Dict, List, Optional, Type

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Index, Integer, String, create_engine, select, text
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from config.settings import get_settings
from .exceptions import ConflictError, StorageError
from .models import Certificate, Institute
from .storage import ModelT, Repository

logger = logging.getLogger(__name__)

# Базовый класс для моделей
Base = declarative_base()


class CertificateRecord(Base):
    """Таблица сертификатов."""

    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    certificate_id = Column(String(50), unique=True, nullable=False, index=True)
    certificate_hash = Column(String(64), unique=True, nullable=False, index=True)
    institute_id = Column(String(50), nullable=False, index=True)
    status = Column(String(20), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    payload = Column(JSON, nullable=False)

    __table_args__ = (
        Index('idx_certificate_institute_status', 'institute_id', 'status'),
    )

    def __repr__(self):
        return f"<CertificateRecord(id={self.certificate_id}, status={self.status})>"


class InstituteRecord(Base):
    """Таблица институтов."""

    __tablename__ = "institutes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    institute_id = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(254), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    payload = Column(JSON, nullable=False)

    def __repr__(self):
        return f"<InstituteRecord(id={self.institute_id}, email={self.email})>"


class DatabaseManager:
    """Менеджер для работы с базой данных."""

    def __init__(self, database_url: str = None):
        """
        Инициализация менеджера БД.

        Args:
            database_url: URL подключения к БД
        """
        if database_url is None:
            database_url = get_settings().database_url

        engine_kwargs = {"pool_pre_ping": True, "echo": False}
        if database_url.startswith("sqlite"):
            # Запросы приходят из пула потоков FastAPI
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs["pool_recycle"] = 3600

        self.engine = create_engine(database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_tables(self):
        """Создает все таблицы в базе данных."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Таблицы базы данных созданы")

    def drop_tables(self):
        """Удаляет все таблицы из базы данных."""
        Base.metadata.drop_all(bind=self.engine)
        logger.info("Таблицы базы данных удалены")

    def get_session(self) -> Session:
        """Возвращает новую сессию для работы с БД."""
        return self.SessionLocal()

    def health_check(self) -> bool:
        """Проверяет подключение к базе данных."""
        try:
            with self.get_session() as session:
                session.execute(text("SELECT 1"))
                return True
        except SQLAlchemyError as e:
            logger.error(f"Ошибка подключения к БД: {e}")
            return False

    def dispose(self):
        """Закрывает все соединения пула."""
        self.engine.dispose()


class SqlRepository(Repository[ModelT]):
    """
    Репозиторий поверх SQLAlchemy.

    Запись целиком хранится в JSON-колонке payload, ключевые поля
    дублируются в отдельные колонки для ограничений уникальности и индексов.
    """

    def __init__(self, db_manager: DatabaseManager, record_cls: Type[Base], model_cls: Type[ModelT],
                 key_column: str, columns: Callable[[ModelT], Dict]):
        """
        Инициализация репозитория.

        Args:
            db_manager: Менеджер базы данных
            record_cls: Класс таблицы SQLAlchemy
            model_cls: Класс pydantic модели записи
            key_column: Имя колонки ключа
            columns: Функция, возвращающая значения индексируемых колонок записи
        """
        super().__init__()
        self.db_manager = db_manager
        self.record_cls = record_cls
        self.model_cls = model_cls
        self.key_column = key_column
        self.columns = columns

    def _to_model(self, row) -> ModelT:
        return self.model_cls.model_validate(row.payload)

    def _key_filter(self, key: str):
        return getattr(self.record_cls, self.key_column) == key

    def get(self, key: str) -> Optional[ModelT]:
        try:
            with self.db_manager.get_session() as session:
                row = session.execute(
                    select(self.record_cls).where(self._key_filter(key))
                ).scalar_one_or_none()
                return self._to_model(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"Ошибка получения записи {key}: {e}")

    def put(self, key: str, record: ModelT) -> ModelT:
        values = dict(self.columns(record))
        values["payload"] = record.model_dump(mode="json")

        try:
            with self.db_manager.get_session() as session:
                row = session.execute(
                    select(self.record_cls).where(self._key_filter(key))
                ).scalar_one_or_none()

                if row is None:
                    row = self.record_cls(**{self.key_column: key}, **values)
                    session.add(row)
                else:
                    for column, value in values.items():
                        setattr(row, column, value)

                session.commit()
            return record

        except IntegrityError as e:
            raise ConflictError(f"Запись нарушает ограничение уникальности: {e.orig}")
        except SQLAlchemyError as e:
            raise StorageError(f"Ошибка сохранения записи {key}: {e}")

    def find(self, predicate: Optional[Callable[[ModelT], bool]] = None) -> List[ModelT]:
        try:
            with self.db_manager.get_session() as session:
                rows = session.execute(
                    select(self.record_cls).order_by(self.record_cls.id)
                ).scalars().all()
                models = [self._to_model(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Ошибка поиска записей: {e}")

        return [model for model in models if predicate is None or predicate(model)]

    def delete(self, key: str) -> bool:
        try:
            with self.db_manager.get_session() as session:
                row = session.execute(
                    select(self.record_cls).where(self._key_filter(key))
                ).scalar_one_or_none()
                if row is None:
                    return False
                session.delete(row)
                session.commit()
                return True
        except SQLAlchemyError as e:
            raise StorageError(f"Ошибка удаления записи {key}: {e}")

    def keys(self) -> List[str]:
        with self.db_manager.get_session() as session:
            column = getattr(self.record_cls, self.key_column)
            return list(session.execute(select(column).order_by(self.record_cls.id)).scalars().all())

    def count(self) -> int:
        return len(self.keys())

    def health_check(self) -> bool:
        return self.db_manager.health_check()


def create_certificate_repository(db_manager: DatabaseManager) -> SqlRepository[Certificate]:
    """Создает репозиторий сертификатов."""
    return SqlRepository(
        db_manager,
        CertificateRecord,
        Certificate,
        key_column="certificate_id",
        columns=lambda certificate: {
            "certificate_hash": certificate.certificate_hash,
            "institute_id": certificate.institute_id,
            "status": certificate.status.value,
            "created_at": certificate.created_at,
        },
    )


def create_institute_repository(db_manager: DatabaseManager) -> SqlRepository[Institute]:
    """Создает репозиторий институтов."""
    return SqlRepository(
        db_manager,
        InstituteRecord,
        Institute,
        key_column="institute_id",
        columns=lambda institute: {
            "email": institute.email,
            "is_active": institute.is_active,
        },
    )
