"""
Основная бизнес-логика выдачи, поиска и отзыва сертификатов.
"""

import logging
from collections import Counter
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .exceptions import (
    CertificateExistsError, CertificateNotFoundError, ConflictError, InstituteNotFoundError,
    PermissionDeniedError, ValidationError
)
from .generator import CertificateIDGenerator, compute_certificate_hash
from .ledger import LedgerClient, MockLedgerClient
from .models import (
    Certificate, CertificateFilters, CertificateRequest, CertificateStats, CertificateStatus,
    Institute, utcnow
)
from .rendering import CertificateRenderer, QRCodeGenerator
from .storage import FileStorage, InMemoryRepository, Repository
from .validators import DataValidator, HashValidator

# Настройка логирования
logger = logging.getLogger(__name__)


def pydantic_errors(error: PydanticValidationError) -> List[str]:
    """Преобразует ошибки pydantic в список читаемых сообщений."""
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        messages.append(f"{location}: {item.get('msg')}" if location else item.get("msg"))
    return messages


def newest_first(certificates: List[Certificate]) -> List[Certificate]:
    """Сортирует сертификаты по времени создания, начиная с последних."""
    # reversed() ставит более поздние добавления первыми при равном времени
    return sorted(reversed(certificates), key=lambda c: c.created_at, reverse=True)


def _contains(value: Optional[str], needle: str) -> bool:
    return bool(value) and needle in value.lower()


class CertificateService:
    """Сервис для работы с сертификатами."""

    def __init__(self,
                 certificate_repo: Repository[Certificate] = None,
                 institute_repo: Repository[Institute] = None,
                 ledger: LedgerClient = None,
                 frontend_url: str = "http://localhost:3000",
                 renderer: CertificateRenderer = None,
                 qr_generator: QRCodeGenerator = None,
                 file_storage: Optional[FileStorage] = None):
        """
        Инициализация сервиса.

        Args:
            certificate_repo: Хранилище сертификатов
            institute_repo: Хранилище институтов
            ledger: Клиент реестра транзакций
            frontend_url: Адрес фронтенда для ссылок проверки
            renderer: Генератор PDF и изображений
            qr_generator: Генератор QR-кодов
            file_storage: Файловое хранилище для сгенерированных файлов
        """
        self.certificate_repo = certificate_repo if certificate_repo is not None else InMemoryRepository()
        self.institute_repo = institute_repo if institute_repo is not None else InMemoryRepository()
        self.ledger = ledger if ledger is not None else MockLedgerClient()
        self.frontend_url = frontend_url.rstrip("/")
        self.renderer = renderer if renderer is not None else CertificateRenderer()
        self.qr_generator = qr_generator if qr_generator is not None else QRCodeGenerator()
        self.file_storage = file_storage
        self.id_generator = CertificateIDGenerator()
        self.validator = DataValidator()

    def create_certificate(self, data: Union[CertificateRequest, Mapping[str, Any]],
                           institute_id: str) -> Certificate:
        """
        Создает новый сертификат.

        Args:
            data: Данные сертификата
            institute_id: ID выдающего института

        Returns:
            Certificate: Созданный сертификат

        Raises:
            ValidationError: При ошибке валидации
            InstituteNotFoundError: Институт не найден
            PermissionDeniedError: Институт не подтвержден или деактивирован
            CertificateExistsError: Сертификат с таким содержимым уже выдан
        """
        request = self._parse_request(data)
        logger.info(f"Создание сертификата для {request.student_name} институтом {institute_id}")

        institute = self.institute_repo.get(institute_id)
        if institute is None:
            raise InstituteNotFoundError("Institute not found")
        if not institute.can_issue:
            if not institute.is_verified:
                raise PermissionDeniedError("Institute must be verified to issue certificates")
            raise PermissionDeniedError("Institute account is deactivated")

        issuer_name = request.issuer_name or institute.name
        issuer_organization = request.issuer_organization or institute.organization
        certificate_hash = compute_certificate_hash(
            request.student_name,
            request.course_name,
            request.completion_date,
            issuer_name,
            issuer_organization,
        )

        with self.certificate_repo.write_lock:
            if self.certificate_repo.find_one(lambda c: c.certificate_hash == certificate_hash):
                raise CertificateExistsError("Certificate with identical content has already been issued")

            certificate_id = self.id_generator.generate(set(self.certificate_repo.keys()))
            receipt = self.ledger.record(certificate_hash)

            now = utcnow()
            metadata = dict(request.metadata)
            metadata.update({
                "instituteEmail": institute.email,
                "instituteAddress": institute.address,
                "instituteContact": institute.contact,
            })

            certificate = Certificate(
                certificate_id=certificate_id,
                certificate_hash=certificate_hash,
                institute_id=institute.institute_id,
                institute_name=institute.name,
                student_name=request.student_name,
                course_name=request.course_name,
                completion_date=request.completion_date,
                issuer_name=issuer_name,
                issuer_organization=issuer_organization,
                description=request.description,
                grade=request.grade,
                duration=request.duration,
                certificate_type=request.certificate_type,
                template=request.template,
                metadata=metadata,
                status=CertificateStatus.ACTIVE,
                blockchain_tx_hash=receipt.transaction_hash,
                block_number=receipt.block_number,
                blockchain_address=receipt.contract_address,
                verification_url=self.verification_url(certificate_id),
                created_at=now,
                updated_at=now,
            )
            self.certificate_repo.put(certificate_id, certificate)

            # Счетчик меняется на свежей копии, остальные поля института не трогаются
            with self.institute_repo.write_lock:
                owner = self.institute_repo.get(institute.institute_id)
                if owner is not None:
                    owner.certificate_count += 1
                    self.institute_repo.put(owner.institute_id, owner)

        logger.info(f"Сертификат {certificate_id} успешно создан")
        return certificate

    def get_certificate_by_id(self, certificate_id: str) -> Certificate:
        """
        Получает сертификат по ID.

        Raises:
            CertificateNotFoundError: Если сертификат не найден
        """
        certificate = self.certificate_repo.get(certificate_id) if certificate_id else None
        if certificate is None:
            raise CertificateNotFoundError("Certificate not found")
        return certificate

    def get_certificate_by_hash(self, certificate_hash: str) -> Certificate:
        """
        Получает сертификат по хешу содержимого.

        Raises:
            CertificateNotFoundError: Если сертификат не найден
        """
        normalized = HashValidator.normalize(certificate_hash or "")
        certificate = self.certificate_repo.find_one(lambda c: c.certificate_hash == normalized)
        if certificate is None:
            raise CertificateNotFoundError("No certificate found with this hash")
        return certificate

    def list_certificates(self, institute_id: str,
                          filters: Union[CertificateFilters, Mapping[str, Any], None] = None) -> List[Certificate]:
        """
        Получает сертификаты института с фильтрами.

        Args:
            institute_id: ID института
            filters: Поиск по подстроке, статус и шаблон

        Returns:
            List[Certificate]: Сертификаты, начиная с последних
        """
        if filters is None:
            filters = CertificateFilters()
        elif not isinstance(filters, CertificateFilters):
            try:
                filters = CertificateFilters.model_validate(dict(filters))
            except PydanticValidationError as e:
                raise ValidationError("Invalid certificate filters", errors=pydantic_errors(e))

        search = filters.search.strip().lower() if filters.search else None

        def matches(certificate: Certificate) -> bool:
            if certificate.institute_id != institute_id:
                return False
            if filters.status and certificate.status != filters.status:
                return False
            if filters.template and certificate.template != filters.template:
                return False
            if search and not self._matches_text(certificate, search):
                return False
            return True

        certificates = newest_first(self.certificate_repo.find(matches))
        logger.info(f"Найдено сертификатов института {institute_id}: {len(certificates)}")
        return certificates

    def search_certificates(self, query: str, institute_id: str) -> List[Certificate]:
        """
        Поиск сертификатов института по имени студента, курсу или ID.

        Args:
            query: Строка поиска
            institute_id: ID института

        Returns:
            List[Certificate]: Найденные сертификаты, начиная с последних
        """
        needle = (query or "").strip().lower()
        if not needle:
            raise ValidationError("Search query is required")

        logger.info(f"Поиск сертификатов института {institute_id}: {needle}")
        return newest_first(self.certificate_repo.find(
            lambda c: c.institute_id == institute_id and self._matches_text(c, needle)
        ))

    def revoke_certificate(self, certificate_id: str, institute_id: str, reason: str) -> Certificate:
        """
        Отзывает сертификат.

        Args:
            certificate_id: ID сертификата
            institute_id: ID института, выполняющего отзыв
            reason: Причина отзыва (10-500 символов)

        Returns:
            Certificate: Обновленный сертификат

        Raises:
            ValidationError: Некорректная причина
            CertificateNotFoundError: Сертификат не найден
            PermissionDeniedError: Сертификат выдан другим институтом
            ConflictError: Сертификат уже отозван
        """
        reason = self.validator.validate_revocation_reason(reason)
        logger.info(f"Отзыв сертификата {certificate_id} институтом {institute_id}")

        with self.certificate_repo.write_lock:
            certificate = self.get_certificate_by_id(certificate_id)

            if certificate.institute_id != institute_id:
                logger.warning(f"Институт {institute_id} пытается отозвать чужой сертификат {certificate_id}")
                raise PermissionDeniedError("Certificate belongs to another institute")

            if certificate.status == CertificateStatus.REVOKED:
                raise ConflictError("Certificate has already been revoked")

            now = utcnow()
            certificate.status = CertificateStatus.REVOKED
            certificate.revoked_at = now
            certificate.revocation_reason = reason
            certificate.updated_at = now
            self.certificate_repo.put(certificate_id, certificate)

        logger.info(f"Сертификат {certificate_id} отозван")
        return certificate

    def get_statistics(self, institute_id: str) -> CertificateStats:
        """
        Получает статистику по сертификатам института.

        Returns:
            CertificateStats: Количество по статусам, шаблонам и типам
        """
        certificates = self.certificate_repo.find(lambda c: c.institute_id == institute_id)

        statuses = Counter(c.status.value for c in certificates)
        return CertificateStats(
            total=len(certificates),
            active=statuses.get(CertificateStatus.ACTIVE.value, 0),
            revoked=statuses.get(CertificateStatus.REVOKED.value, 0),
            templates=dict(Counter(c.template.value for c in certificates)),
            types=dict(Counter(c.certificate_type.value for c in certificates)),
        )

    def verification_url(self, certificate_id: str) -> str:
        """Ссылка на страницу проверки сертификата."""
        return f"{self.frontend_url}/verify/{certificate_id}"

    def render_pdf(self, certificate_id: str) -> bytes:
        """Генерирует PDF сертификата."""
        certificate = self.get_certificate_by_id(certificate_id)
        content = self.renderer.render_pdf(certificate)
        self._store_file(certificate_id, f"{certificate_id}.pdf", content)
        return content

    def render_image(self, certificate_id: str) -> bytes:
        """Генерирует PNG изображение сертификата."""
        certificate = self.get_certificate_by_id(certificate_id)
        content = self.renderer.render_png(certificate)
        self._store_file(certificate_id, f"{certificate_id}.png", content)
        return content

    def render_qr(self, certificate_id: str) -> bytes:
        """Генерирует QR-код со ссылкой на проверку сертификата."""
        certificate = self.get_certificate_by_id(certificate_id)
        url = certificate.verification_url or self.verification_url(certificate_id)
        content = self.qr_generator.render(url)
        self._store_file(certificate_id, f"{certificate_id}_qr.png", content)
        return content

    def _store_file(self, certificate_id: str, filename: str, content: bytes):
        if self.file_storage is None:
            return
        try:
            self.file_storage.save_file(certificate_id, filename, content)
        except Exception as e:
            logger.warning(f"Ошибка сохранения файла {filename}: {e}")

    def _parse_request(self, data: Union[CertificateRequest, Mapping[str, Any]]) -> CertificateRequest:
        if isinstance(data, CertificateRequest):
            return data
        if data is None:
            raise ValidationError("Certificate data is required")
        try:
            return CertificateRequest.model_validate(dict(data))
        except PydanticValidationError as e:
            errors = pydantic_errors(e)
            logger.warning(f"Ошибка валидации данных сертификата: {errors}")
            raise ValidationError("Validation Error", errors=errors)

    @staticmethod
    def _matches_text(certificate: Certificate, needle: str) -> bool:
        return (
            _contains(certificate.student_name, needle)
            or _contains(certificate.course_name, needle)
            or _contains(certificate.certificate_id, needle)
        )
