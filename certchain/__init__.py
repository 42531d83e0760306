"""
Основной модуль бизнес-логики системы выдачи и проверки сертификатов.
"""

from .service import CertificateService
from .verification import VerificationService
from .institutes import InstituteService
from .models import Certificate, CertificateRequest, CertificateStatus, Institute, VerificationResult
from .generator import CertificateIDGenerator, compute_certificate_hash
from .validators import DataValidator
from .ledger import LedgerClient, MockLedgerClient
from .storage import FileStorage, InMemoryRepository, Repository

__version__ = "1.0.0"

__all__ = [
    'CertificateService',
    'VerificationService',
    'InstituteService',
    'Certificate',
    'CertificateRequest',
    'CertificateStatus',
    'Institute',
    'VerificationResult',
    'CertificateIDGenerator',
    'compute_certificate_hash',
    'DataValidator',
    'LedgerClient',
    'MockLedgerClient',
    'FileStorage',
    'InMemoryRepository',
    'Repository',
]
