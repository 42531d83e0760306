"""
Регистрация институтов, аутентификация и выдача токенов.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Union

import bcrypt
import jwt
from pydantic import ValidationError as PydanticValidationError

from .exceptions import (
    AuthError, InstituteExistsError, InstituteNotFoundError, PermissionDeniedError, ValidationError
)
from .generator import CertificateIDGenerator
from .models import (
    AuthResult, Certificate, CertificateStatus, Institute, InstitutePublic, InstituteRegistration,
    InstituteStats, ProfileUpdate, utcnow
)
from .service import newest_first, pydantic_errors
from .storage import InMemoryRepository, Repository
from .validators import EmailValidator, PasswordValidator

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "organization", "address", "contact", "logo", "signature")


class InstituteService:
    """Сервис учетных записей институтов."""

    def __init__(self,
                 institute_repo: Repository[Institute] = None,
                 certificate_repo: Repository[Certificate] = None,
                 jwt_secret: str = "change-me-in-production",
                 jwt_algorithm: str = "HS256",
                 token_ttl: timedelta = timedelta(days=7),
                 bcrypt_rounds: int = 12,
                 auto_verify: bool = True):
        """
        Инициализация сервиса.

        Args:
            institute_repo: Хранилище институтов
            certificate_repo: Хранилище сертификатов (для статистики)
            jwt_secret: Секрет подписи токенов
            jwt_algorithm: Алгоритм подписи
            token_ttl: Срок действия токена
            bcrypt_rounds: Стоимость bcrypt
            auto_verify: Подтверждать институт сразу при регистрации
        """
        self.institute_repo = institute_repo if institute_repo is not None else InMemoryRepository()
        self.certificate_repo = certificate_repo if certificate_repo is not None else InMemoryRepository()
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.token_ttl = token_ttl
        self.bcrypt_rounds = bcrypt_rounds
        self.auto_verify = auto_verify
        self.id_generator = CertificateIDGenerator()
        self.password_validator = PasswordValidator()

    @classmethod
    def from_settings(cls, settings, institute_repo: Repository[Institute],
                      certificate_repo: Repository[Certificate]) -> "InstituteService":
        """Создает сервис по настройкам приложения."""
        return cls(
            institute_repo=institute_repo,
            certificate_repo=certificate_repo,
            jwt_secret=settings.jwt_secret,
            jwt_algorithm=settings.jwt_algorithm,
            token_ttl=timedelta(days=settings.jwt_expires_days),
            bcrypt_rounds=settings.bcrypt_rounds,
            auto_verify=settings.auto_verify_institutes,
        )

    def register(self, data: Union[InstituteRegistration, Mapping[str, Any]]) -> AuthResult:
        """
        Регистрирует институт.

        Args:
            data: Данные регистрации

        Returns:
            AuthResult: Институт и токен доступа

        Raises:
            ValidationError: При ошибке валидации
            InstituteExistsError: Email уже зарегистрирован
        """
        registration = self._parse(InstituteRegistration, data)
        logger.info(f"Регистрация института {registration.email}")

        password_hash = self._hash_password(registration.password)

        with self.institute_repo.write_lock:
            if self._find_by_email(registration.email) is not None:
                logger.warning(f"Повторная регистрация email {registration.email}")
                raise InstituteExistsError("Email already registered")

            now = utcnow()
            institute = Institute(
                institute_id=self.id_generator.generate_institute_id(set(self.institute_repo.keys())),
                name=registration.name,
                email=registration.email,
                organization=registration.organization,
                password_hash=password_hash,
                address=registration.address,
                contact=registration.contact,
                is_verified=self.auto_verify,
                is_active=True,
                created_at=now,
                last_login=now,
            )
            self.institute_repo.put(institute.institute_id, institute)

        logger.info(f"Институт {institute.institute_id} зарегистрирован (подтвержден: {institute.is_verified})")
        return AuthResult(institute=institute.to_public(), token=self.generate_token(institute))

    def login(self, email: str, password: str) -> AuthResult:
        """
        Вход института по email и паролю.

        Raises:
            AuthError: Неизвестный email, деактивированный аккаунт или неверный пароль
        """
        email = EmailValidator.normalize(email or "")
        institute = self._find_by_email(email)

        if institute is None:
            logger.warning(f"Вход с неизвестным email {email}")
            raise AuthError("Invalid credentials", reason=AuthError.UNKNOWN_EMAIL)

        if not institute.is_active:
            logger.warning(f"Вход в деактивированный аккаунт {institute.institute_id}")
            raise AuthError("Account is deactivated", reason=AuthError.ACCOUNT_INACTIVE)

        if not self._check_password(password or "", institute.password_hash):
            logger.warning(f"Неверный пароль для института {institute.institute_id}")
            raise AuthError("Invalid credentials", reason=AuthError.WRONG_PASSWORD)

        with self.institute_repo.write_lock:
            institute = self.get_institute(institute.institute_id)
            institute.last_login = utcnow()
            self.institute_repo.put(institute.institute_id, institute)

        logger.info(f"Институт {institute.institute_id} вошел в систему")
        return AuthResult(institute=institute.to_public(), token=self.generate_token(institute))

    def generate_token(self, institute: Institute) -> str:
        """Выдает подписанный токен с ограниченным сроком действия."""
        now = utcnow()
        payload = {
            "instituteId": institute.institute_id,
            "email": institute.email,
            "name": institute.name,
            "iat": now,
            "exp": now + self.token_ttl,
        }
        return jwt.encode(payload, self.jwt_secret, algorithm=self.jwt_algorithm)

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Проверяет подпись и срок действия токена.

        Returns:
            Dict[str, Any]: Утверждения токена

        Raises:
            AuthError: Токен недействителен или истек
        """
        if not token:
            raise AuthError("Access token required", reason=AuthError.TOKEN_MISSING)

        try:
            claims = jwt.decode(token, self.jwt_secret, algorithms=[self.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthError("Token expired", reason=AuthError.TOKEN_EXPIRED, status_code=403)
        except jwt.InvalidTokenError:
            raise AuthError("Invalid token", reason=AuthError.INVALID_TOKEN, status_code=403)

        if not claims.get("instituteId"):
            raise AuthError("Invalid token", reason=AuthError.INVALID_TOKEN, status_code=403)
        return claims

    def authenticate(self, token: str) -> Institute:
        """
        Возвращает активный институт, которому выдан токен.

        Raises:
            AuthError: Токен недействителен или институт неактивен
        """
        claims = self.validate_token(token)
        institute = self.institute_repo.get(claims["instituteId"])
        if institute is None or not institute.is_active:
            raise AuthError("Invalid or inactive institute account", reason=AuthError.ACCOUNT_INACTIVE)
        return institute

    def require_verified(self, institute: Institute) -> Institute:
        """
        Проверяет, что институт подтвержден.

        Raises:
            PermissionDeniedError: Институт не подтвержден
        """
        if not institute.is_verified:
            raise PermissionDeniedError("Institute account must be verified to perform this action")
        return institute

    def get_institute(self, institute_id: str) -> Institute:
        """
        Получает институт по ID.

        Raises:
            InstituteNotFoundError: Институт не найден
        """
        institute = self.institute_repo.get(institute_id)
        if institute is None:
            raise InstituteNotFoundError("Institute not found")
        return institute

    def get_profile(self, institute_id: str) -> InstitutePublic:
        """Профиль института без хеша пароля."""
        return self.get_institute(institute_id).to_public()

    def update_profile(self, institute_id: str,
                       data: Union[ProfileUpdate, Mapping[str, Any]]) -> InstitutePublic:
        """
        Обновляет разрешенные поля профиля.

        Остальные поля (email, пароль, статусы) игнорируются.
        """
        update = self._parse(ProfileUpdate, data)
        changes = update.model_dump(include=set(PROFILE_FIELDS), exclude_unset=True)

        with self.institute_repo.write_lock:
            institute = self.get_institute(institute_id)
            for field, value in changes.items():
                if value is not None:
                    setattr(institute, field, value)
            self.institute_repo.put(institute_id, institute)

        logger.info(f"Профиль института {institute_id} обновлен: {sorted(changes)}")
        return institute.to_public()

    def change_password(self, institute_id: str, current_password: str, new_password: str) -> bool:
        """
        Меняет пароль института.

        Raises:
            AuthError: Текущий пароль неверен
            ValidationError: Новый пароль слишком короткий
        """
        if not self.password_validator.validate(new_password):
            raise ValidationError("New password must be at least 6 characters")

        institute = self.get_institute(institute_id)
        if not self._check_password(current_password or "", institute.password_hash):
            logger.warning(f"Неверный текущий пароль при смене пароля института {institute_id}")
            raise AuthError("Current password is incorrect", reason=AuthError.WRONG_PASSWORD)

        checked_hash = institute.password_hash
        password_hash = self._hash_password(new_password)
        with self.institute_repo.write_lock:
            institute = self.get_institute(institute_id)
            # Пароль сменили параллельно, проверенный текущий пароль устарел
            if institute.password_hash != checked_hash:
                raise AuthError("Current password is incorrect", reason=AuthError.WRONG_PASSWORD)
            institute.password_hash = password_hash
            self.institute_repo.put(institute_id, institute)

        logger.info(f"Пароль института {institute_id} изменен")
        return True

    def get_stats(self, institute_id: str) -> InstituteStats:
        """Статистика института: количество сертификатов и последние выданные."""
        institute = self.get_institute(institute_id)
        certificates = newest_first(self.certificate_repo.find(lambda c: c.institute_id == institute_id))

        return InstituteStats(
            total_certificates=len(certificates),
            active_certificates=sum(1 for c in certificates if c.status == CertificateStatus.ACTIVE),
            revoked_certificates=sum(1 for c in certificates if c.status == CertificateStatus.REVOKED),
            institute_name=institute.name,
            organization=institute.organization,
            member_since=institute.created_at,
            recent_activity=certificates[:5],
        )

    def _find_by_email(self, email: str) -> Optional[Institute]:
        return self.institute_repo.find_one(lambda institute: institute.email == email)

    def _hash_password(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.bcrypt_rounds)).decode("utf-8")

    @staticmethod
    def _check_password(password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            logger.error("Некорректный формат хеша пароля")
            return False

    @staticmethod
    def _parse(model_cls, data):
        if isinstance(data, model_cls):
            return data
        if data is None:
            raise ValidationError("Request data is required")
        try:
            return model_cls.model_validate(dict(data))
        except PydanticValidationError as e:
            raise ValidationError("Validation Error", errors=pydantic_errors(e))
