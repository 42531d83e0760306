"""
Тесты для сервиса проверки сертификатов
"""
import pytest

from certchain.exceptions import CertificateNotFoundError, StorageError, ValidationError
from certchain.ledger import MockLedgerClient, ZERO_ADDRESS
from certchain.models import CertificateStatus
from certchain.verification import VerificationService

REASON = "issued in error, duplicate record"


class TestVerify:
    """Тесты проверки по ID и хешу"""

    def test_verify_valid(self, verification_service, issued_certificate):
        """Тест проверки действующего сертификата"""
        result = verification_service.verify(issued_certificate.certificate_id)

        assert result.is_valid
        assert result.message == "Certificate is valid and verified"
        assert result.certificate.certificate_id == issued_certificate.certificate_id
        assert result.blockchain_verification.verified
        assert result.blockchain_verification.transaction_hash == issued_certificate.blockchain_tx_hash

    def test_verify_not_found_is_soft(self, verification_service):
        """Тест проверки несуществующего сертификата без исключения"""
        result = verification_service.verify("CERT000000XXXXXXXX")

        assert not result.is_valid
        assert result.message == "Certificate not found"
        assert result.certificate is None

    def test_verify_revoked(self, verification_service, certificate_service, institute, issued_certificate):
        """Тест проверки отозванного сертификата"""
        certificate_service.revoke_certificate(issued_certificate.certificate_id, institute.institute_id, REASON)

        result = verification_service.verify(issued_certificate.certificate_id)

        assert not result.is_valid
        assert result.message == "Certificate has been revoked"
        assert result.certificate.status == CertificateStatus.REVOKED

    def test_verify_expired(self, verification_service, certificate_repo, issued_certificate):
        """Тест проверки сертификата со статусом expired"""
        issued_certificate.status = CertificateStatus.EXPIRED
        certificate_repo.put(issued_certificate.certificate_id, issued_certificate)

        result = verification_service.verify(issued_certificate.certificate_id)

        assert not result.is_valid
        assert result.message == "Certificate has expired"

    def test_verify_without_ledger_record(self, verification_service, certificate_repo, issued_certificate):
        """Тест проверки сертификата с нулевой транзакцией"""
        issued_certificate.blockchain_tx_hash = ZERO_ADDRESS
        certificate_repo.put(issued_certificate.certificate_id, issued_certificate)

        result = verification_service.verify(issued_certificate.certificate_id)

        assert result.is_valid
        assert result.blockchain_verification.verified is False

    def test_verify_is_read_only(self, verification_service, certificate_repo, issued_certificate):
        """Тест отсутствия изменений хранилища при проверке"""
        before = certificate_repo.get(issued_certificate.certificate_id)

        verification_service.verify(issued_certificate.certificate_id)
        verification_service.deep_verify(issued_certificate.certificate_id)

        assert certificate_repo.get(issued_certificate.certificate_id) == before

    def test_verify_by_hash(self, verification_service, issued_certificate):
        """Тест проверки по хешу"""
        result = verification_service.verify_by_hash(issued_certificate.certificate_hash)

        assert result.is_valid
        assert result.certificate.certificate_id == issued_certificate.certificate_id

    def test_verify_by_hash_not_found(self, verification_service):
        """Тест проверки по неизвестному хешу"""
        result = verification_service.verify_by_hash("f" * 64)

        assert not result.is_valid
        assert result.message == "No certificate found with this hash"


class TestBulkVerify:
    """Тесты пакетной проверки"""

    def test_bulk_verify_order_and_summary(self, verification_service, issued_certificate):
        """Тест порядка результатов и сводки"""
        ids = ["CERT000000MISSING1", issued_certificate.certificate_id, "CERT000000MISSING2"]

        result = verification_service.bulk_verify(ids)

        assert [item.certificate_id for item in result.results] == ids
        assert [item.is_valid for item in result.results] == [False, True, False]
        assert result.summary.total == 3
        assert result.summary.valid == 1
        assert result.summary.invalid == 2

    @pytest.mark.parametrize("ids", [[], [f"CERT{i:06d}XXXXXXXX" for i in range(11)], None])
    def test_bulk_verify_rejects_invalid_list(self, verification_service, certificate_service, monkeypatch, ids):
        """Тест отказа до каких-либо проверок при некорректном списке"""
        calls = []
        monkeypatch.setattr(certificate_service, "get_certificate_by_id", lambda *args: calls.append(args))

        with pytest.raises(ValidationError):
            verification_service.bulk_verify(ids)

        assert calls == []

    def test_bulk_verify_isolates_failures(self, verification_service, certificate_service,
                                           issued_certificate, monkeypatch):
        """Тест изоляции ошибки одного элемента пакета"""
        original = certificate_service.get_certificate_by_id

        def flaky_get(certificate_id):
            if certificate_id == "CERT000000BROKEN01":
                raise StorageError("storage unavailable")
            return original(certificate_id)

        monkeypatch.setattr(certificate_service, "get_certificate_by_id", flaky_get)

        result = verification_service.bulk_verify(["CERT000000BROKEN01", issued_certificate.certificate_id])

        assert not result.results[0].is_valid
        assert result.results[0].message == "storage unavailable"
        assert result.results[1].is_valid
        assert result.summary.valid == 1

    def test_bulk_verify_custom_limit(self, certificate_service, issued_certificate):
        """Тест настраиваемого лимита пакета"""
        service = VerificationService(certificate_service, max_bulk_verify=2)

        with pytest.raises(ValidationError, match="Must provide 1-2 certificate IDs"):
            service.bulk_verify([issued_certificate.certificate_id] * 3)


class TestDeepVerify:
    """Тесты глубокой проверки"""

    def test_deep_verify_valid(self, verification_service, issued_certificate):
        """Тест глубокой проверки действующего сертификата"""
        result = verification_service.deep_verify(issued_certificate.certificate_id)

        assert result.is_valid
        assert result.message == "Certificate is fully verified and secure"
        assert result.basic_verification.is_valid
        assert result.blockchain_verification.verified
        assert result.security_checks.hash_integrity
        assert result.security_checks.blockchain_stored
        assert result.security_checks.not_revoked
        assert result.security_checks.institute_verified

    def test_deep_verify_revoked(self, verification_service, certificate_service, institute, issued_certificate):
        """Тест глубокой проверки отозванного сертификата"""
        certificate_service.revoke_certificate(issued_certificate.certificate_id, institute.institute_id, REASON)

        result = verification_service.deep_verify(issued_certificate.certificate_id)

        assert not result.is_valid
        assert not result.security_checks.not_revoked
        assert result.message == "Certificate verification failed"

    def test_deep_verify_transaction_mismatch(self, verification_service, certificate_repo, issued_certificate):
        """Тест несовпадения транзакции с записью реестра"""
        issued_certificate.blockchain_tx_hash = "0x" + "1" * 64
        certificate_repo.put(issued_certificate.certificate_id, issued_certificate)

        result = verification_service.deep_verify(issued_certificate.certificate_id)

        assert result.basic_verification.is_valid
        assert not result.blockchain_verification.verified
        assert not result.is_valid

    def test_deep_verify_not_found(self, verification_service):
        """Тест глубокой проверки несуществующего сертификата"""
        result = verification_service.deep_verify("CERT000000XXXXXXXX")

        assert not result.is_valid
        assert result.message == "Certificate not found"

    def test_deep_verify_with_other_ledger_instance(self, certificate_service, issued_certificate):
        """Тест проверки по сохраненной транзакции, если реестр не знает хеш"""
        service = VerificationService(certificate_service, ledger=MockLedgerClient())

        result = service.deep_verify(issued_certificate.certificate_id)

        assert result.is_valid


class TestBlockchainStatus:
    """Тесты состояния записи в реестре"""

    def test_blockchain_status(self, verification_service, issued_certificate):
        """Тест получения состояния записи"""
        status = verification_service.blockchain_status(issued_certificate.certificate_id)

        assert status.certificate_id == issued_certificate.certificate_id
        assert status.blockchain_status.verified
        assert status.certificate.hash == issued_certificate.certificate_hash
        assert status.certificate.transaction_hash == issued_certificate.blockchain_tx_hash

    def test_blockchain_status_not_found(self, verification_service):
        """Тест состояния записи несуществующего сертификата"""
        with pytest.raises(CertificateNotFoundError):
            verification_service.blockchain_status("CERT000000XXXXXXXX")
