"""
Тесты для хранилищ в памяти и файлов сертификатов
"""
import pytest

from certchain.exceptions import StorageError
from certchain.models import Institute
from certchain.storage import FileStorage, InMemoryRepository, Repository


def make_institute(institute_id="INST123456ABC", email="a@b.com"):
    return Institute(institute_id=institute_id, name="Tech U", email=email,
                     organization="Org", password_hash="x")


class TestInMemoryRepository:
    """Тесты для InMemoryRepository"""

    @pytest.fixture
    def repo(self):
        return InMemoryRepository()

    def test_put_get(self, repo):
        """Тест сохранения и чтения"""
        record = make_institute()
        repo.put(record.institute_id, record)

        assert repo.get(record.institute_id) == record
        assert repo.get("INST000000XXX") is None

    def test_returns_copies(self, repo):
        """Тест изоляции сохраненной записи от изменений"""
        record = make_institute()
        repo.put(record.institute_id, record)

        record.name = "Changed"
        loaded = repo.get(record.institute_id)
        loaded.address["city"] = "Nowhere"

        assert repo.get(record.institute_id).name == "Tech U"
        assert repo.get(record.institute_id).address == {}

    def test_find_order_and_predicate(self, repo):
        """Тест порядка и условия поиска"""
        for index in range(3):
            record = make_institute(f"INST00000{index}AAA", f"user{index}@b.com")
            repo.put(record.institute_id, record)

        found = repo.find(lambda i: i.email != "user1@b.com")

        assert [i.institute_id for i in found] == ["INST000000AAA", "INST000002AAA"]
        assert repo.find_one(lambda i: i.email == "user2@b.com").institute_id == "INST000002AAA"
        assert repo.find_one(lambda i: i.email == "none@b.com") is None

    def test_delete_and_clear(self, repo):
        """Тест удаления и очистки"""
        record = make_institute()
        repo.put(record.institute_id, record)

        assert repo.delete(record.institute_id)
        assert not repo.delete(record.institute_id)

        repo.put(record.institute_id, record)
        repo.clear()
        assert repo.count() == 0
        assert repo.keys() == []

    def test_keys_required(self):
        """Тест обязательности keys у реализаций хранилища"""
        class NoKeysRepository(Repository):
            def get(self, key):
                return None

            def put(self, key, record):
                return record

            def find(self, predicate=None):
                return []

            def delete(self, key):
                return False

        with pytest.raises(TypeError):
            NoKeysRepository()

    def test_write_lock_per_repository(self, repo):
        """Тест отдельной блокировки записи у каждого хранилища"""
        other = InMemoryRepository()

        assert repo.write_lock is repo.write_lock
        assert repo.write_lock is not other.write_lock
        with repo.write_lock:
            with repo.write_lock:
                repo.put("INST123456ABC", make_institute())
        assert repo.count() == 1


class TestFileStorage:
    """Тесты для FileStorage"""

    def test_save_file(self, tmp_path):
        """Тест сохранения файла"""
        storage = FileStorage(tmp_path / "certificates")

        path = storage.save_file("CERT123456AB12CD34", "CERT123456AB12CD34.pdf", b"%PDF-1.4")

        assert path.is_file()
        assert path.parent == tmp_path / "certificates" / "CERT123456AB12CD34"
        assert path.read_bytes() == b"%PDF-1.4"
        assert storage.health_check()

    def test_save_error(self, tmp_path):
        """Тест ошибки записи файла"""
        storage = FileStorage(tmp_path / "certificates")
        (tmp_path / "certificates" / "CERT123456AB12CD34").write_text("not a directory")

        with pytest.raises(StorageError):
            storage.save_file("CERT123456AB12CD34", "file.pdf", b"data")
