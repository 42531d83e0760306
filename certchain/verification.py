"""
Проверка подлинности сертификатов.

Методы проверки не выбрасывают исключение для несуществующего сертификата:
вместо этого возвращается результат с is_valid=False.
"""

import logging
from typing import Optional, Sequence

from .exceptions import CertificateNotFoundError, CertificationError
from .ledger import LedgerClient, is_zero_hash
from .models import (
    BlockchainStatus, BlockchainVerification, BulkVerificationItem, BulkVerificationResult,
    BulkVerificationSummary, Certificate, CertificateStatus, DeepVerificationResult,
    LedgerRecordInfo, SecurityChecks, VerificationResult
)
from .service import CertificateService
from .validators import DataValidator

logger = logging.getLogger(__name__)

MESSAGES = {
    "not_found": "Certificate not found",
    "hash_not_found": "No certificate found with this hash",
    "revoked": "Certificate has been revoked",
    "expired": "Certificate has expired",
    "valid": "Certificate is valid and verified",
    "deep_valid": "Certificate is fully verified and secure",
    "deep_invalid": "Certificate verification failed",
}


class VerificationService:
    """Сервис проверки сертификатов."""

    def __init__(self, certificate_service: CertificateService,
                 ledger: Optional[LedgerClient] = None, max_bulk_verify: int = 10):
        self.certificate_service = certificate_service
        self.ledger = ledger if ledger is not None else certificate_service.ledger
        self.validator = DataValidator(max_bulk_verify=max_bulk_verify)

    def verify(self, certificate_id: str) -> VerificationResult:
        """
        Проверяет сертификат по ID.

        Args:
            certificate_id: ID сертификата

        Returns:
            VerificationResult: Результат проверки
        """
        logger.info(f"Проверка сертификата {certificate_id}")

        try:
            certificate = self.certificate_service.get_certificate_by_id(certificate_id)
        except CertificateNotFoundError:
            logger.info(f"Сертификат {certificate_id} не найден")
            return VerificationResult(is_valid=False, message=MESSAGES["not_found"])

        return self._judge(certificate)

    def verify_by_hash(self, certificate_hash: str) -> VerificationResult:
        """
        Проверяет сертификат по хешу содержимого.

        Args:
            certificate_hash: SHA-256 хеш

        Returns:
            VerificationResult: Результат проверки
        """
        logger.info(f"Проверка сертификата по хешу {certificate_hash[:16] if certificate_hash else ''}...")

        try:
            certificate = self.certificate_service.get_certificate_by_hash(certificate_hash)
        except CertificateNotFoundError:
            return VerificationResult(is_valid=False, message=MESSAGES["hash_not_found"])

        return self._judge(certificate)

    def bulk_verify(self, certificate_ids: Sequence[str]) -> BulkVerificationResult:
        """
        Проверяет несколько сертификатов.

        Ошибка проверки одного сертификата не прерывает пакет.

        Args:
            certificate_ids: От 1 до 10 ID сертификатов

        Returns:
            BulkVerificationResult: Результаты в порядке входных ID и сводка

        Raises:
            ValidationError: Если список пуст или слишком длинный
        """
        ids = self.validator.validate_bulk_ids(certificate_ids)
        logger.info(f"Пакетная проверка {len(ids)} сертификатов")

        results = []
        for certificate_id in ids:
            try:
                result = self.verify(certificate_id)
                results.append(BulkVerificationItem(certificate_id=certificate_id, **dict(result)))
            except CertificationError as e:
                logger.warning(f"Ошибка проверки сертификата {certificate_id} в пакете: {e}")
                results.append(BulkVerificationItem(
                    certificate_id=certificate_id, is_valid=False, message=str(e) or "Verification failed"
                ))
            except Exception as e:
                logger.error(f"Непредвиденная ошибка проверки сертификата {certificate_id}: {e}")
                results.append(BulkVerificationItem(
                    certificate_id=certificate_id, is_valid=False, message="Verification failed"
                ))

        valid = sum(1 for result in results if result.is_valid)
        return BulkVerificationResult(
            results=results,
            summary=BulkVerificationSummary(total=len(results), valid=valid, invalid=len(results) - valid),
        )

    def deep_verify(self, certificate_id: str) -> DeepVerificationResult:
        """
        Глубокая проверка: базовая проверка, реестр и дополнительные проверки.

        Сертификат действителен, только если пройдены базовая проверка,
        проверка в реестре, проверка наличия хеша и он не отозван.
        """
        logger.info(f"Глубокая проверка сертификата {certificate_id}")

        try:
            certificate = self.certificate_service.get_certificate_by_id(certificate_id)
        except CertificateNotFoundError:
            return DeepVerificationResult(is_valid=False, message=MESSAGES["not_found"])

        basic = self._judge(certificate)
        ledger_check = self.ledger.verify(certificate)

        institute = self.certificate_service.institute_repo.get(certificate.institute_id)
        checks = SecurityChecks(
            hash_integrity=bool(certificate.certificate_hash),
            blockchain_stored=not is_zero_hash(certificate.blockchain_tx_hash),
            not_revoked=certificate.status != CertificateStatus.REVOKED,
            institute_verified=bool(institute and institute.is_verified),
        )

        is_valid = basic.is_valid and ledger_check.verified and checks.hash_integrity and checks.not_revoked
        return DeepVerificationResult(
            is_valid=is_valid,
            message=MESSAGES["deep_valid"] if is_valid else MESSAGES["deep_invalid"],
            basic_verification=basic,
            blockchain_verification=ledger_check,
            security_checks=checks,
            certificate=certificate,
        )

    def blockchain_status(self, certificate_id: str) -> BlockchainStatus:
        """
        Состояние записи сертификата в реестре.

        Raises:
            CertificateNotFoundError: Если сертификат не найден
        """
        certificate = self.certificate_service.get_certificate_by_id(certificate_id)
        return BlockchainStatus(
            certificate_id=certificate.certificate_id,
            blockchain_status=self.ledger.verify(certificate),
            certificate=LedgerRecordInfo(
                hash=certificate.certificate_hash,
                transaction_hash=certificate.blockchain_tx_hash,
                block_number=certificate.block_number,
                blockchain_address=certificate.blockchain_address,
            ),
        )

    def _judge(self, certificate: Certificate) -> VerificationResult:
        if certificate.status == CertificateStatus.REVOKED:
            return VerificationResult(is_valid=False, message=MESSAGES["revoked"], certificate=certificate)
        if certificate.status == CertificateStatus.EXPIRED:
            return VerificationResult(is_valid=False, message=MESSAGES["expired"], certificate=certificate)

        if is_zero_hash(certificate.blockchain_tx_hash):
            ledger_check = BlockchainVerification(verified=False)
        else:
            ledger_check = self.ledger.verify(certificate)

        return VerificationResult(
            is_valid=True,
            message=MESSAGES["valid"],
            certificate=certificate,
            blockchain_verification=ledger_check,
        )
