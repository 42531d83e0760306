"""
Pydantic модели для валидации и сериализации данных сертификатов и институтов.

Поля называются в snake_case, в JSON выводятся в camelCase.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .validators import EmailValidator, PasswordValidator


def utcnow() -> datetime:
    """Текущее время в UTC."""
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Базовая модель с camelCase алиасами."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class CertificateStatus(str, Enum):
    """Статус сертификата."""
    ACTIVE = "active"
    REVOKED = "revoked"
    # Зарезервирован: ни одно действие не переводит сертификат в этот статус
    EXPIRED = "expired"


class CertificateType(str, Enum):
    """Тип сертификата."""
    COURSE = "course"
    TRAINING = "training"
    ACHIEVEMENT = "achievement"
    PARTICIPATION = "participation"
    OTHER = "other"


class CertificateTemplate(str, Enum):
    """Шаблон оформления сертификата."""
    MODERN = "modern"
    CLASSIC = "classic"


class CertificateRequest(CamelModel):
    """Модель запроса на создание сертификата."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "studentName": "Jane Doe",
                "courseName": "Algorithms",
                "completionDate": "2024-01-01",
                "certificateType": "course",
                "template": "modern"
            }
        }
    )

    student_name: str = Field(..., min_length=2, max_length=100, description="Имя студента")
    course_name: str = Field(..., min_length=2, max_length=200, description="Название курса")
    completion_date: date = Field(..., description="Дата завершения курса")
    issuer_name: Optional[str] = Field(None, min_length=2, max_length=100, description="Имя выдавшего лица")
    issuer_organization: Optional[str] = Field(None, min_length=2, max_length=200, description="Организация")
    description: Optional[str] = Field(None, max_length=500, description="Описание")
    grade: Optional[str] = Field(None, max_length=50, description="Оценка")
    duration: Optional[str] = Field(None, max_length=100, description="Продолжительность")
    certificate_type: CertificateType = Field(default=CertificateType.COURSE, description="Тип сертификата")
    template: CertificateTemplate = Field(default=CertificateTemplate.MODERN, description="Шаблон")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Дополнительные данные")


class Certificate(CamelModel):
    """Модель выданного сертификата."""

    certificate_id: str = Field(..., description="ID сертификата")
    certificate_hash: str = Field(..., description="SHA-256 хеш содержимого")
    institute_id: str = Field(..., description="ID выдавшего института")
    institute_name: Optional[str] = Field(None, description="Название института")
    student_name: str
    course_name: str
    completion_date: date
    issuer_name: str
    issuer_organization: str
    description: Optional[str] = None
    grade: Optional[str] = None
    duration: Optional[str] = None
    certificate_type: CertificateType = CertificateType.COURSE
    template: CertificateTemplate = CertificateTemplate.MODERN
    metadata: Dict[str, Any] = Field(default_factory=dict)
    status: CertificateStatus = CertificateStatus.ACTIVE
    blockchain_tx_hash: Optional[str] = Field(None, description="Хеш транзакции в реестре")
    block_number: Optional[int] = Field(None, description="Номер блока")
    blockchain_address: Optional[str] = Field(None, description="Адрес контракта")
    verification_url: Optional[str] = Field(None, description="Ссылка для проверки")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    revoked_at: Optional[datetime] = None
    revocation_reason: Optional[str] = None

    @property
    def is_active(self) -> bool:
        """Действителен ли сертификат."""
        return self.status == CertificateStatus.ACTIVE

    @property
    def is_revoked(self) -> bool:
        """Отозван ли сертификат."""
        return self.status == CertificateStatus.REVOKED

    @property
    def formatted_completion_date(self) -> str:
        """Дата завершения в виде 'January 1, 2024'."""
        return f"{self.completion_date.strftime('%B')} {self.completion_date.day}, {self.completion_date.year}"


class Institute(CamelModel):
    """Модель учетной записи института (хранимая, с хешем пароля)."""

    institute_id: str
    name: str
    email: str
    organization: str
    password_hash: str
    address: Dict[str, Any] = Field(default_factory=dict)
    contact: Dict[str, Any] = Field(default_factory=dict)
    logo: Optional[str] = None
    signature: Optional[str] = None
    is_verified: bool = False
    is_active: bool = True
    certificate_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    last_login: Optional[datetime] = None

    @property
    def can_issue(self) -> bool:
        """Может ли институт выдавать сертификаты."""
        return self.is_verified and self.is_active

    def to_public(self) -> "InstitutePublic":
        """Возвращает представление без хеша пароля."""
        return InstitutePublic.model_validate(self.model_dump(exclude={"password_hash"}))


class InstitutePublic(CamelModel):
    """Публичное представление института."""

    institute_id: str
    name: str
    email: str
    organization: str
    address: Dict[str, Any] = Field(default_factory=dict)
    contact: Dict[str, Any] = Field(default_factory=dict)
    logo: Optional[str] = None
    signature: Optional[str] = None
    is_verified: bool
    is_active: bool
    certificate_count: int = 0
    created_at: datetime
    last_login: Optional[datetime] = None


class InstituteRegistration(CamelModel):
    """Модель запроса на регистрацию института."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    name: str = Field(..., min_length=2, max_length=100, description="Название института")
    email: str = Field(..., description="Email")
    password: str = Field(..., min_length=PasswordValidator.MIN_LENGTH, description="Пароль")
    organization: str = Field(..., min_length=2, max_length=200, description="Организация")
    address: Dict[str, Any] = Field(default_factory=dict)
    contact: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        """Валидация и нормализация email."""
        if not EmailValidator().validate(v):
            raise ValueError("Valid email is required")
        return EmailValidator.normalize(v)


class LoginRequest(CamelModel):
    """Модель запроса на вход."""

    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        """Нормализация email."""
        return EmailValidator.normalize(v)


class ProfileUpdate(CamelModel):
    """Модель обновления профиля института."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    organization: Optional[str] = Field(None, min_length=2, max_length=200)
    address: Optional[Dict[str, Any]] = None
    contact: Optional[Dict[str, Any]] = None
    logo: Optional[str] = None
    signature: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    """Модель запроса на смену пароля."""

    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=PasswordValidator.MIN_LENGTH)


class AuthResult(CamelModel):
    """Результат регистрации или входа."""

    institute: InstitutePublic
    token: str


class CertificateFilters(CamelModel):
    """Фильтры списка сертификатов."""

    search: Optional[str] = None
    status: Optional[CertificateStatus] = None
    template: Optional[CertificateTemplate] = None


class CertificateStats(CamelModel):
    """Статистика сертификатов института."""

    total: int = 0
    active: int = 0
    revoked: int = 0
    templates: Dict[str, int] = Field(default_factory=dict)
    types: Dict[str, int] = Field(default_factory=dict)


class InstituteStats(CamelModel):
    """Статистика института для панели управления."""

    total_certificates: int = 0
    active_certificates: int = 0
    revoked_certificates: int = 0
    institute_name: str
    organization: str
    member_since: datetime
    recent_activity: List[Certificate] = Field(default_factory=list)


class LedgerReceipt(CamelModel):
    """Квитанция о записи хеша в реестр."""

    transaction_hash: str
    block_number: int
    contract_address: str


class BlockchainVerification(CamelModel):
    """Результат проверки записи в реестре."""

    verified: bool
    hash_exists: Optional[bool] = None
    is_revoked: Optional[bool] = None
    last_verified: Optional[datetime] = None
    block_number: Optional[int] = None
    transaction_hash: Optional[str] = None
    reason: Optional[str] = None


class VerificationResult(CamelModel):
    """Результат проверки сертификата."""

    is_valid: bool
    message: str
    certificate: Optional[Certificate] = None
    blockchain_verification: Optional[BlockchainVerification] = None


class BulkVerificationItem(VerificationResult):
    """Результат проверки одного сертификата в пакете."""

    certificate_id: str


class BulkVerificationSummary(CamelModel):
    """Сводка пакетной проверки."""

    total: int
    valid: int
    invalid: int


class BulkVerificationResult(CamelModel):
    """Результат пакетной проверки."""

    results: List[BulkVerificationItem]
    summary: BulkVerificationSummary


class SecurityChecks(CamelModel):
    """Дополнительные проверки при глубокой верификации."""

    hash_integrity: bool
    blockchain_stored: bool
    not_revoked: bool
    institute_verified: bool


class DeepVerificationResult(CamelModel):
    """Результат глубокой проверки сертификата."""

    is_valid: bool
    message: str
    basic_verification: Optional[VerificationResult] = None
    blockchain_verification: Optional[BlockchainVerification] = None
    security_checks: Optional[SecurityChecks] = None
    certificate: Optional[Certificate] = None


class LedgerRecordInfo(CamelModel):
    """Сведения о записи сертификата в реестре."""

    hash: str
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None
    blockchain_address: Optional[str] = None


class BlockchainStatus(CamelModel):
    """Состояние записи сертификата в реестре."""

    certificate_id: str
    blockchain_status: BlockchainVerification
    certificate: LedgerRecordInfo
