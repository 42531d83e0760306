"""
API для выдачи, отзыва и проверки сертификатов
"""
import logging
import traceback
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from .exceptions import AuthError, CertificationError, InternalError
from .institutes import InstituteService
from .models import (
    CamelModel, CertificateFilters, CertificateStatus, CertificateTemplate, ChangePasswordRequest,
    Institute, InstituteRegistration, LoginRequest, ProfileUpdate
)
from .service import CertificateService, pydantic_errors
from .validators import DataValidator
from .verification import VerificationService


# Модели запросов API
class VerifyRequest(CamelModel):
    """Запрос проверки по ID"""
    certificate_id: Optional[str] = None


class VerifyHashRequest(CamelModel):
    """Запрос проверки по хешу"""
    hash: Optional[str] = None


class BulkVerifyRequest(CamelModel):
    """Запрос пакетной проверки"""
    certificate_ids: Optional[List[str]] = None


class RevokeRequest(BaseModel):
    """Запрос отзыва сертификата"""
    reason: Optional[str] = Field(None, description="Причина отзыва (10-500 символов)")


def dump(model) -> Any:
    """Сериализует модель в JSON-совместимый вид с camelCase ключами."""
    if isinstance(model, list):
        return [dump(item) for item in model]
    return model.model_dump(by_alias=True, mode="json")


def error_body(message: str, errors: Optional[List[str]] = None, stack: Optional[str] = None) -> Dict:
    """Формирует тело ответа об ошибке."""
    error: Dict[str, Any] = {"message": message}
    if errors:
        error["errors"] = errors
    if stack:
        error["stack"] = stack
    return {"success": False, "error": error}


class CertificateAPI:
    """API для работы с сертификатами"""

    FILE_TYPES = {
        "pdf": ("application/pdf", "{id}.pdf"),
        "image": ("image/png", "{id}.png"),
        "qr": ("image/png", "{id}_qr.png"),
    }

    def __init__(
            self,
            certificate_service: CertificateService,
            verification_service: VerificationService,
            institute_service: InstituteService,
            max_bulk_verify: int = 10,
            show_tracebacks: bool = False,
            lifespan=None
    ):
        self.certificate_service = certificate_service
        self.verification_service = verification_service
        self.institute_service = institute_service
        self.validator = DataValidator(max_bulk_verify=max_bulk_verify)
        self.show_tracebacks = show_tracebacks
        self.logger = logging.getLogger(__name__)

        # Создание FastAPI приложения
        self.app = FastAPI(
            title="Blockchain Certification API",
            description="API для выдачи и проверки цифровых сертификатов",
            version="1.0.0",
            lifespan=lifespan
        )

        # Токен необязателен на уровне схемы, отсутствие проверяется вручную
        self.security = HTTPBearer(auto_error=False)

        self._setup_exception_handlers()
        self._setup_routes()

    def _current_institute(self, credentials: Optional[HTTPAuthorizationCredentials] = None) -> Institute:
        """Институт, которому принадлежит токен"""
        if credentials is None or not credentials.credentials:
            raise AuthError("Access token required", reason=AuthError.TOKEN_MISSING)
        return self.institute_service.authenticate(credentials.credentials)

    def _auth_dependencies(self):
        security = self.security

        def current_institute(
                credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
        ) -> Institute:
            return self._current_institute(credentials)

        def verified_institute(institute: Institute = Depends(current_institute)) -> Institute:
            return self.institute_service.require_verified(institute)

        return current_institute, verified_institute

    def _setup_exception_handlers(self):
        """Перевод исключений в ответы с единым форматом ошибки"""

        @self.app.exception_handler(CertificationError)
        async def certification_error_handler(request: Request, exc: CertificationError):
            if exc.status_code >= 500:
                self.logger.error(f"Ошибка обработки {request.method} {request.url.path}: {exc}")
            else:
                self.logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc}")

            stack = self._format_stack(exc)
            return JSONResponse(
                status_code=exc.status_code,
                content=error_body(exc.message or "Request failed", exc.errors, stack)
            )

        @self.app.exception_handler(RequestValidationError)
        async def request_validation_handler(request: Request, exc: RequestValidationError):
            errors = pydantic_errors(exc)
            self.logger.warning(f"Ошибка валидации запроса {request.url.path}: {errors}")
            return JSONResponse(status_code=400, content=error_body("Validation Error", errors))

        @self.app.exception_handler(StarletteHTTPException)
        async def http_error_handler(request: Request, exc: StarletteHTTPException):
            return JSONResponse(status_code=exc.status_code, content=error_body(str(exc.detail)))

        @self.app.exception_handler(Exception)
        async def unexpected_error_handler(request: Request, exc: Exception):
            self.logger.error(f"Неожиданная ошибка {request.method} {request.url.path}: {exc}", exc_info=exc)
            error = InternalError("Internal Server Error")
            return JSONResponse(
                status_code=error.status_code,
                content=error_body(error.message, stack=self._format_stack(exc))
            )

    def _format_stack(self, exc: Exception) -> Optional[str]:
        """Стек вызовов для ответа об ошибке (только в режиме отладки)"""
        if not self.show_tracebacks:
            return None
        return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    def _setup_routes(self):
        """Настройка маршрутов API"""
        self.app.include_router(self._certificate_routes(), prefix="/certificates", tags=["certificates"])
        self.app.include_router(self._verification_routes(), prefix="/verification", tags=["verification"])
        self.app.include_router(self._institute_routes(), prefix="/institutes", tags=["institutes"])

    def _certificate_routes(self) -> APIRouter:
        router = APIRouter()
        _, verified_institute = self._auth_dependencies()
        service = self.certificate_service

        @router.get("/health")
        async def certificates_health():
            """Проверка работы маршрутов сертификатов"""
            return {"success": True, "service": "certificates", "status": "ok"}

        @router.post("", status_code=201)
        async def create_certificate(
                payload: Dict[str, Any] = Body(...),
                institute: Institute = Depends(verified_institute)
        ):
            """Выдача нового сертификата"""
            certificate = await run_in_threadpool(service.create_certificate, payload, institute.institute_id)
            self.logger.info(f"Создан сертификат {certificate.certificate_id} институтом {institute.institute_id}")

            files = {
                kind: f"/certificates/{certificate.certificate_id}/{kind}" for kind in self.FILE_TYPES
            }
            return {
                "success": True,
                "message": "Certificate created successfully",
                "certificate": dump(certificate),
                "files": files,
            }

        @router.get("")
        async def list_certificates(
                search: Optional[str] = None,
                status: Optional[CertificateStatus] = None,
                template: Optional[CertificateTemplate] = None,
                institute: Institute = Depends(verified_institute)
        ):
            """Список сертификатов института"""
            filters = CertificateFilters(search=search, status=status, template=template)
            certificates = await run_in_threadpool(service.list_certificates, institute.institute_id, filters)
            return {"success": True, "count": len(certificates), "certificates": dump(certificates)}

        @router.get("/stats/summary")
        async def certificate_stats(institute: Institute = Depends(verified_institute)):
            """Статистика сертификатов института"""
            stats = await run_in_threadpool(service.get_statistics, institute.institute_id)
            return {"success": True, "stats": dump(stats)}

        @router.get("/search/{query}")
        async def search_certificates(query: str, institute: Institute = Depends(verified_institute)):
            """Поиск сертификатов института"""
            certificates = await run_in_threadpool(service.search_certificates, query, institute.institute_id)
            return {"success": True, "count": len(certificates), "certificates": dump(certificates)}

        @router.get("/{certificate_id}")
        async def get_certificate(certificate_id: str):
            """Получение сертификата по ID"""
            certificate = await run_in_threadpool(service.get_certificate_by_id, certificate_id)
            return {"success": True, "certificate": dump(certificate)}

        renderers = {
            "pdf": service.render_pdf,
            "image": service.render_image,
            "qr": service.render_qr,
        }

        def file_route(kind: str):
            media_type, filename = self.FILE_TYPES[kind]

            async def download(certificate_id: str):
                content = await run_in_threadpool(renderers[kind], certificate_id)
                return Response(
                    content=content,
                    media_type=media_type,
                    headers={
                        "Content-Disposition": f'attachment; filename="{filename.format(id=certificate_id)}"'
                    }
                )

            download.__name__ = f"download_{kind}"
            download.__doc__ = f"Скачивание файла сертификата ({kind})"
            return download

        for kind in self.FILE_TYPES:
            router.add_api_route(f"/{{certificate_id}}/{kind}", file_route(kind), methods=["GET"])

        @router.api_route("/{certificate_id}/revoke", methods=["PUT", "PATCH"])
        async def revoke_certificate(
                certificate_id: str,
                request: Optional[RevokeRequest] = None,
                institute: Institute = Depends(verified_institute)
        ):
            """Отзыв сертификата"""
            reason = request.reason if request else None
            certificate = await run_in_threadpool(
                service.revoke_certificate, certificate_id, institute.institute_id, reason
            )
            return {
                "success": True,
                "message": "Certificate revoked successfully",
                "certificate": dump(certificate),
            }

        return router

    def _verification_routes(self) -> APIRouter:
        router = APIRouter()
        service = self.verification_service

        @router.get("/health")
        async def verification_health():
            """Проверка работы маршрутов проверки"""
            return {"success": True, "service": "verification", "status": "ok"}

        @router.post("/verify")
        async def verify_certificate(request: Optional[VerifyRequest] = None):
            """Проверка сертификата по ID"""
            certificate_id = self.validator.validate_certificate_id(request.certificate_id if request else None)
            result = await run_in_threadpool(service.verify, certificate_id)
            return {"success": True, "verification": dump(result)}

        @router.post("/verify-hash")
        async def verify_hash(request: Optional[VerifyHashRequest] = None):
            """Проверка сертификата по хешу"""
            certificate_hash = self.validator.validate_hash(request.hash if request else None)
            result = await run_in_threadpool(service.verify_by_hash, certificate_hash)
            return {"success": True, "verification": dump(result)}

        @router.post("/bulk-verify")
        async def bulk_verify(request: Optional[BulkVerifyRequest] = None):
            """Пакетная проверка сертификатов"""
            result = await run_in_threadpool(service.bulk_verify, request.certificate_ids if request else None)
            return {"success": True, "results": dump(result.results), "summary": dump(result.summary)}

        @router.post("/deep-verify")
        async def deep_verify(request: Optional[VerifyRequest] = None):
            """Глубокая проверка сертификата"""
            certificate_id = self.validator.validate_certificate_id(request.certificate_id if request else None)
            result = await run_in_threadpool(service.deep_verify, certificate_id)
            return {"success": True, "verification": dump(result)}

        @router.get("/{certificate_id}/blockchain-status")
        async def blockchain_status(certificate_id: str):
            """Состояние записи сертификата в реестре"""
            status = await run_in_threadpool(service.blockchain_status, certificate_id)
            return {"success": True, **dump(status)}

        @router.get("/{certificate_id}")
        async def certificate_details(certificate_id: str):
            """Публичные данные сертификата по ID"""
            certificate = await run_in_threadpool(
                self.certificate_service.get_certificate_by_id, certificate_id
            )
            return {"success": True, "certificate": dump(certificate)}

        return router

    def _institute_routes(self) -> APIRouter:
        router = APIRouter()
        current_institute, _ = self._auth_dependencies()
        service = self.institute_service

        @router.get("/health")
        async def institutes_health():
            """Проверка работы маршрутов институтов"""
            return {"success": True, "service": "institutes", "status": "ok"}

        @router.post("/register", status_code=201)
        async def register(request: InstituteRegistration):
            """Регистрация института"""
            result = await run_in_threadpool(service.register, request)
            return {
                "success": True,
                "message": "Institute registered successfully",
                "token": result.token,
                "institute": dump(result.institute),
            }

        @router.post("/login")
        async def login(request: LoginRequest):
            """Вход института"""
            result = await run_in_threadpool(service.login, request.email, request.password)
            return {
                "success": True,
                "message": "Login successful",
                "token": result.token,
                "institute": dump(result.institute),
            }

        @router.get("/profile")
        async def get_profile(institute: Institute = Depends(current_institute)):
            """Профиль текущего института"""
            profile = await run_in_threadpool(service.get_profile, institute.institute_id)
            return {"success": True, "institute": dump(profile)}

        @router.put("/profile")
        async def update_profile(request: ProfileUpdate, institute: Institute = Depends(current_institute)):
            """Обновление профиля"""
            profile = await run_in_threadpool(service.update_profile, institute.institute_id, request)
            return {"success": True, "message": "Profile updated successfully", "institute": dump(profile)}

        @router.put("/change-password")
        async def change_password(request: ChangePasswordRequest,
                                  institute: Institute = Depends(current_institute)):
            """Смена пароля"""
            await run_in_threadpool(
                service.change_password, institute.institute_id, request.current_password, request.new_password
            )
            return {"success": True, "message": "Password changed successfully"}

        @router.get("/stats")
        async def get_stats(institute: Institute = Depends(current_institute)):
            """Статистика института"""
            stats = await run_in_threadpool(service.get_stats, institute.institute_id)
            return {"success": True, "stats": dump(stats)}

        return router
