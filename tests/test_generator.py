"""
Тесты для генератора ID и хеша сертификатов
"""
import re
from datetime import date

import pytest

from certchain.exceptions import GenerationError
from certchain.generator import CertificateIDGenerator, compute_certificate_hash


class TestCertificateHash:
    """Тесты для compute_certificate_hash"""

    def test_hash_is_sha256_hex(self):
        """Тест формата хеша"""
        value = compute_certificate_hash("Jane Doe", "Algorithms", date(2024, 1, 1), "Tech U", "Org")

        assert len(value) == 64
        assert re.fullmatch(r"[0-9a-f]{64}", value)

    def test_hash_is_deterministic(self):
        """Тест воспроизводимости хеша по одному и тому же содержимому"""
        first = compute_certificate_hash("Jane Doe", "Algorithms", date(2024, 1, 1), "Tech U", "Org")
        second = compute_certificate_hash("Jane Doe", "Algorithms", date(2024, 1, 1), "Tech U", "Org")

        assert first == second

    def test_hash_accepts_iso_date_string(self):
        """Тест одинакового хеша для даты и ее ISO строки"""
        from_date = compute_certificate_hash("Jane Doe", "Algorithms", date(2024, 1, 1))
        from_string = compute_certificate_hash("Jane Doe", "Algorithms", "2024-01-01")

        assert from_date == from_string

    def test_hash_ignores_surrounding_whitespace(self):
        """Тест нормализации пробелов по краям полей"""
        plain = compute_certificate_hash("Jane Doe", "Algorithms", "2024-01-01")
        padded = compute_certificate_hash("  Jane Doe ", "Algorithms  ", "2024-01-01")

        assert plain == padded

    @pytest.mark.parametrize("field_index", range(5))
    def test_hash_changes_with_any_field(self, field_index):
        """Тест зависимости хеша от каждого содержательного поля"""
        values = ["Jane Doe", "Algorithms", "2024-01-01", "Tech U", "Org"]
        original = compute_certificate_hash(*values)

        values[field_index] = "2025-02-02" if field_index == 2 else values[field_index] + " X"

        assert compute_certificate_hash(*values) != original


class TestCertificateIDGenerator:
    """Тесты для класса CertificateIDGenerator"""

    @pytest.fixture
    def generator(self):
        """Фикстура для генератора"""
        return CertificateIDGenerator()

    def test_generate_certificate_id_format(self, generator):
        """Тест формата ID сертификата"""
        certificate_id = generator.generate()

        assert certificate_id.startswith("CERT")
        assert len(certificate_id) == 18
        assert certificate_id[4:10].isdigit()
        assert re.fullmatch(r"[A-Z0-9]{8}", certificate_id[10:])

    def test_generate_institute_id_format(self, generator):
        """Тест формата ID института"""
        institute_id = generator.generate_institute_id()

        assert re.fullmatch(r"INST\d{6}[A-Z0-9]{3}", institute_id)

    def test_generate_unique_ids(self, generator):
        """Тест уникальности 1000 сгенерированных ID"""
        existing = set()
        for _ in range(1000):
            existing.add(generator.generate(existing))

        assert len(existing) == 1000

    def test_generate_retries_on_collision(self, generator, monkeypatch):
        """Тест повторной генерации при совпадении с существующим ID"""
        tokens = iter(["AAAAAAAA", "AAAAAAAA", "BBBBBBBB"])
        monkeypatch.setattr(generator, "_generate_token", lambda length: next(tokens))
        monkeypatch.setattr(CertificateIDGenerator, "_timestamp_suffix", staticmethod(lambda: "123456"))

        certificate_id = generator.generate({"CERT123456AAAAAAAA"})

        assert certificate_id == "CERT123456BBBBBBBB"

    def test_generate_gives_up_after_max_attempts(self, generator, monkeypatch):
        """Тест ошибки, если уникальный ID не найден"""
        generator.max_attempts = 5
        monkeypatch.setattr(generator, "_generate_token", lambda length: "AAAAAAAA")
        monkeypatch.setattr(CertificateIDGenerator, "_timestamp_suffix", staticmethod(lambda: "123456"))

        with pytest.raises(GenerationError):
            generator.generate({"CERT123456AAAAAAAA"})
