"""
Тесты для хранения записей в базе данных
"""
from datetime import date

import pytest

from certchain.database import DatabaseManager, create_certificate_repository, create_institute_repository
from certchain.exceptions import ConflictError
from certchain.models import Certificate, CertificateStatus, Institute
from certchain.service import CertificateService
from certchain.verification import VerificationService


@pytest.fixture
def db_manager(tmp_path):
    """База данных SQLite во временной директории"""
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'test.db'}")
    manager.create_tables()
    yield manager
    manager.drop_tables()
    manager.dispose()


@pytest.fixture
def sql_certificate_repo(db_manager):
    return create_certificate_repository(db_manager)


@pytest.fixture
def sql_institute_repo(db_manager):
    return create_institute_repository(db_manager)


def make_record(certificate_id="CERT123456AB12CD34", certificate_hash="a" * 64, student_name="Jane Doe"):
    return Certificate(
        certificate_id=certificate_id,
        certificate_hash=certificate_hash,
        institute_id="INST123456ABC",
        student_name=student_name,
        course_name="Algorithms",
        completion_date=date(2024, 1, 1),
        issuer_name="Tech U",
        issuer_organization="Org",
        metadata={"track": "cs"},
    )


class TestSqlRepository:
    """Тесты для SqlRepository"""

    def test_health_check(self, db_manager, sql_certificate_repo):
        """Тест проверки подключения"""
        assert db_manager.health_check()
        assert sql_certificate_repo.health_check()

    def test_put_and_get(self, sql_certificate_repo):
        """Тест сохранения и чтения записи"""
        record = make_record()

        sql_certificate_repo.put(record.certificate_id, record)
        loaded = sql_certificate_repo.get(record.certificate_id)

        assert loaded.certificate_id == record.certificate_id
        assert loaded.completion_date == date(2024, 1, 1)
        assert loaded.metadata == {"track": "cs"}
        assert loaded.status == CertificateStatus.ACTIVE
        assert loaded.created_at == record.created_at

    def test_get_missing(self, sql_certificate_repo):
        """Тест чтения отсутствующей записи"""
        assert sql_certificate_repo.get("CERT000000XXXXXXXX") is None

    def test_update(self, sql_certificate_repo):
        """Тест замены записи по ключу"""
        record = make_record()
        sql_certificate_repo.put(record.certificate_id, record)

        record.status = CertificateStatus.REVOKED
        record.revocation_reason = "issued in error"
        sql_certificate_repo.put(record.certificate_id, record)

        loaded = sql_certificate_repo.get(record.certificate_id)
        assert loaded.status == CertificateStatus.REVOKED
        assert loaded.revocation_reason == "issued in error"
        assert sql_certificate_repo.count() == 1

    def test_find_in_insertion_order(self, sql_certificate_repo):
        """Тест порядка и фильтра поиска"""
        for index in range(3):
            record = make_record(f"CERT00000{index}AAAAAAAA", str(index) * 64, f"Student {index}")
            sql_certificate_repo.put(record.certificate_id, record)

        found = sql_certificate_repo.find(lambda c: c.student_name != "Student 1")

        assert [c.student_name for c in found] == ["Student 0", "Student 2"]
        assert sql_certificate_repo.keys() == [f"CERT00000{i}AAAAAAAA" for i in range(3)]

    def test_unique_hash(self, sql_certificate_repo):
        """Тест ограничения уникальности хеша"""
        sql_certificate_repo.put("CERT111111AAAAAAAA", make_record("CERT111111AAAAAAAA"))

        with pytest.raises(ConflictError):
            sql_certificate_repo.put("CERT222222BBBBBBBB", make_record("CERT222222BBBBBBBB"))

    def test_delete(self, sql_certificate_repo):
        """Тест удаления записи"""
        record = make_record()
        sql_certificate_repo.put(record.certificate_id, record)

        assert sql_certificate_repo.delete(record.certificate_id)
        assert not sql_certificate_repo.delete(record.certificate_id)
        assert sql_certificate_repo.get(record.certificate_id) is None

    def test_institute_unique_email(self, sql_institute_repo):
        """Тест ограничения уникальности email института"""
        first = Institute(institute_id="INST111111AAA", name="Tech U", email="a@b.com",
                          organization="Org", password_hash="x")
        second = Institute(institute_id="INST222222BBB", name="Other U", email="a@b.com",
                           organization="Org", password_hash="x")
        sql_institute_repo.put(first.institute_id, first)

        with pytest.raises(ConflictError):
            sql_institute_repo.put(second.institute_id, second)


class TestServiceWithDatabase:
    """Тесты сервисов поверх базы данных"""

    def test_certificate_lifecycle(self, sql_certificate_repo, sql_institute_repo):
        """Тест выдачи, отзыва и проверки с хранением в БД"""
        institute = Institute(institute_id="INST123456ABC", name="Tech U", email="a@b.com",
                              organization="Org", password_hash="x", is_verified=True)
        sql_institute_repo.put(institute.institute_id, institute)

        service = CertificateService(certificate_repo=sql_certificate_repo, institute_repo=sql_institute_repo)
        verification = VerificationService(service)

        certificate = service.create_certificate({
            "studentName": "Jane Doe",
            "courseName": "Algorithms",
            "completionDate": "2024-01-01",
        }, institute.institute_id)
        assert verification.verify(certificate.certificate_id).is_valid
        assert sql_institute_repo.get(institute.institute_id).certificate_count == 1

        service.revoke_certificate(certificate.certificate_id, institute.institute_id,
                                   "issued in error, duplicate record")

        result = verification.verify(certificate.certificate_id)
        assert not result.is_valid
        assert result.certificate.status == CertificateStatus.REVOKED
