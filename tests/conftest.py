"""
Общие фикстуры для тестов
"""
from datetime import date

import pytest
from fastapi.testclient import TestClient

from certchain.institutes import InstituteService
from certchain.ledger import MockLedgerClient
from certchain.models import Institute
from certchain.service import CertificateService
from certchain.storage import FileStorage, InMemoryRepository
from certchain.verification import VerificationService
from config.settings import Settings

TEST_SECRET = "test-secret"


@pytest.fixture
def settings(tmp_path):
    """Настройки для тестов: временные директории и быстрый bcrypt"""
    return Settings(
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=4,
        storage_backend="memory",
        certificates_path=tmp_path / "certificates",
        log_file=tmp_path / "logs" / "api.log",
        frontend_url="http://verify.test",
        environment="production",
        debug=False,
    )


@pytest.fixture
def certificate_repo():
    return InMemoryRepository()


@pytest.fixture
def institute_repo():
    return InMemoryRepository()


@pytest.fixture
def ledger():
    return MockLedgerClient()


@pytest.fixture
def file_storage(tmp_path):
    """Временное файловое хранилище"""
    return FileStorage(tmp_path / "files")


@pytest.fixture
def institute(institute_repo):
    """Подтвержденный активный институт в хранилище"""
    record = Institute(
        institute_id="INST123456ABC",
        name="Tech U",
        email="a@b.com",
        organization="Org",
        password_hash="not-used",
        is_verified=True,
        is_active=True,
    )
    institute_repo.put(record.institute_id, record)
    return record


@pytest.fixture
def certificate_service(certificate_repo, institute_repo, ledger, file_storage):
    return CertificateService(
        certificate_repo=certificate_repo,
        institute_repo=institute_repo,
        ledger=ledger,
        frontend_url="http://verify.test/",
        file_storage=file_storage,
    )


@pytest.fixture
def verification_service(certificate_service, ledger):
    return VerificationService(certificate_service, ledger=ledger)


@pytest.fixture
def institute_service(institute_repo, certificate_repo):
    return InstituteService(
        institute_repo=institute_repo,
        certificate_repo=certificate_repo,
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=4,
    )


@pytest.fixture
def certificate_data():
    """Данные для выдачи сертификата"""
    return {
        "studentName": "Jane Doe",
        "courseName": "Algorithms",
        "completionDate": "2024-01-01",
    }


@pytest.fixture
def issued_certificate(certificate_service, institute, certificate_data):
    """Выданный сертификат"""
    return certificate_service.create_certificate(certificate_data, institute.institute_id)


@pytest.fixture
def make_certificate(certificate_service, institute):
    """Фабрика сертификатов с разным содержимым"""
    def _make(student_name="Jane Doe", course_name="Algorithms", **extra):
        data = {
            "student_name": student_name,
            "course_name": course_name,
            "completion_date": date(2024, 1, 1),
        }
        data.update(extra)
        return certificate_service.create_certificate(data, institute.institute_id)
    return _make


@pytest.fixture
def registration_data():
    """Данные регистрации института"""
    return {
        "name": "Tech U",
        "email": "a@b.com",
        "password": "secret123",
        "organization": "Org",
    }


@pytest.fixture
def app(settings):
    """FastAPI приложение с хранилищем в памяти"""
    from api_server import create_app
    return create_app(settings)


@pytest.fixture
def client(app):
    """HTTP клиент для тестов API"""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client, registration_data):
    """Заголовки с токеном зарегистрированного института"""
    response = client.post("/institutes/register", json=registration_data)
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['token']}"}
