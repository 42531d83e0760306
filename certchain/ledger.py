"""
Клиенты реестра транзакций.

Сервис сертификатов работает с реестром только через LedgerClient, поэтому
имитацию можно заменить настоящей интеграцией без изменений в сервисе.
"""

import logging
import random
import secrets
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .exceptions import LedgerError
from .models import BlockchainVerification, Certificate, LedgerReceipt, utcnow

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40
MOCK_CONTRACT_ADDRESS = "0x1234567890123456789012345678901234567890"


def is_zero_hash(value: Optional[str]) -> bool:
    """True для пустого значения или значения из одних нулей (с префиксом 0x или без)."""
    if not value:
        return True
    digits = value[2:] if value.lower().startswith("0x") else value
    return not digits or set(digits) == {"0"}


class LedgerClient(ABC):
    """Интерфейс реестра транзакций."""

    @abstractmethod
    def record(self, certificate_hash: str) -> LedgerReceipt:
        """
        Записывает хеш сертификата в реестр.

        Args:
            certificate_hash: Хеш содержимого сертификата

        Returns:
            LedgerReceipt: Ссылки на транзакцию и блок

        Raises:
            LedgerError: При ошибке записи
        """

    @abstractmethod
    def verify(self, certificate: Certificate) -> BlockchainVerification:
        """Проверяет запись сертификата в реестре."""

    def network_info(self) -> Dict:
        """Сведения о сети реестра."""
        return {"name": "unknown"}


class MockLedgerClient(LedgerClient):
    """
    Имитация реестра в памяти процесса.

    Транзакции и блоки генерируются случайно; проверка лишь подтверждает,
    что хеш был записан этим же клиентом под той же транзакцией.
    """

    def __init__(self, contract_address: str = MOCK_CONTRACT_ADDRESS):
        self.contract_address = contract_address
        self._entries: Dict[str, Dict] = {}
        self._lock = threading.Lock()

    def record(self, certificate_hash: str) -> LedgerReceipt:
        if not certificate_hash:
            raise LedgerError("Cannot record an empty certificate hash on blockchain")

        receipt = LedgerReceipt(
            transaction_hash=f"0x{secrets.token_hex(32)}",
            block_number=random.randint(1, 1_000_000),
            contract_address=self.contract_address,
        )

        with self._lock:
            if certificate_hash in self._entries:
                raise LedgerError(f"Certificate hash already recorded on blockchain: {certificate_hash}")
            self._entries[certificate_hash] = {
                "transaction_hash": receipt.transaction_hash,
                "block_number": receipt.block_number,
                "recorded_at": utcnow(),
            }

        logger.info(f"Mock: хеш {certificate_hash[:16]}... записан в транзакции {receipt.transaction_hash[:18]}...")
        return receipt

    def verify(self, certificate: Certificate) -> BlockchainVerification:
        if is_zero_hash(certificate.blockchain_tx_hash):
            return BlockchainVerification(verified=False, reason="Certificate is not stored on blockchain")

        with self._lock:
            entry = self._entries.get(certificate.certificate_hash)

        if entry is None:
            # Записи, созданные до перезапуска процесса, подтверждаются по сохраненной транзакции
            logger.debug(f"Mock: хеш {certificate.certificate_hash[:16]}... отсутствует в памяти реестра")
            entry = {
                "transaction_hash": certificate.blockchain_tx_hash,
                "block_number": certificate.block_number,
            }

        verified = entry["transaction_hash"] == certificate.blockchain_tx_hash
        return BlockchainVerification(
            verified=verified,
            hash_exists=True,
            is_revoked=certificate.is_revoked,
            last_verified=utcnow(),
            block_number=entry["block_number"],
            transaction_hash=entry["transaction_hash"],
            reason=None if verified else "Transaction hash mismatch",
        )

    def network_info(self) -> Dict:
        return {
            "name": "Mock Network",
            "chainId": 1337,
            "recordedHashes": len(self._entries),
        }
