"""
FastAPI сервер для API сертификатов
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from certchain.api import CertificateAPI
from certchain.database import DatabaseManager, create_certificate_repository, create_institute_repository
from certchain.institutes import InstituteService
from certchain.ledger import MockLedgerClient
from certchain.models import utcnow
from certchain.service import CertificateService
from certchain.storage import FileStorage, InMemoryRepository
from certchain.verification import VerificationService
from config.settings import Settings, get_settings


def setup_logging(settings: Settings):
    """Настройка логирования в файл и консоль"""
    settings.log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(settings.log_file),
            logging.StreamHandler()
        ]
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Создание FastAPI приложения"""
    settings = settings or get_settings()
    settings.create_directories()
    setup_logging(settings)

    # Настройка хранилищ
    db_manager = None
    if settings.storage_backend == "database":
        db_manager = DatabaseManager(settings.database_url)
        db_manager.create_tables()
        certificate_repo = create_certificate_repository(db_manager)
        institute_repo = create_institute_repository(db_manager)
    else:
        certificate_repo = InMemoryRepository()
        institute_repo = InMemoryRepository()

    file_storage = FileStorage(settings.certificates_path)
    ledger = MockLedgerClient()

    # Сервисы
    certificate_service = CertificateService(
        certificate_repo=certificate_repo,
        institute_repo=institute_repo,
        ledger=ledger,
        frontend_url=settings.frontend_url,
        file_storage=file_storage,
    )
    verification_service = VerificationService(
        certificate_service, ledger=ledger, max_bulk_verify=settings.max_bulk_verify
    )
    institute_service = InstituteService.from_settings(settings, institute_repo, certificate_repo)

    if settings.auto_verify_institutes:
        logging.warning("Институты подтверждаются автоматически при регистрации")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Управление жизненным циклом приложения"""
        logging.info(f"Запуск API сервера (хранилище: {settings.storage_backend})...")
        yield
        logging.info("Остановка API сервера...")
        if db_manager is not None:
            db_manager.dispose()

    certificate_api = CertificateAPI(
        certificate_service,
        verification_service,
        institute_service,
        max_bulk_verify=settings.max_bulk_verify,
        show_tracebacks=settings.show_tracebacks,
        lifespan=lifespan,
    )
    app = certificate_api.app
    app.state.certificate_api = certificate_api
    app.state.settings = settings

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["monitoring"])
    async def health_check():
        """Проверка здоровья API и хранилищ"""
        health_status = {
            "status": "checking",
            "timestamp": utcnow().isoformat(),
            "environment": settings.environment,
            "components": {}
        }

        health_status["components"]["api"] = {
            "status": "healthy",
            "message": "API is running"
        }

        try:
            if certificate_repo.health_check():
                health_status["components"]["storage"] = {
                    "status": "healthy",
                    "message": f"Storage backend '{settings.storage_backend}' is available"
                }
            else:
                health_status["components"]["storage"] = {
                    "status": "unhealthy",
                    "message": "Storage backend is unavailable"
                }
        except Exception as e:
            health_status["components"]["storage"] = {
                "status": "unhealthy",
                "message": f"Storage error: {str(e)}"
            }

        if file_storage.health_check():
            health_status["components"]["file_storage"] = {
                "status": "healthy",
                "message": f"Certificates directory exists: {file_storage.base_path}"
            }
        else:
            health_status["components"]["file_storage"] = {
                "status": "unhealthy",
                "message": "Certificates directory not found"
            }

        health_status["components"]["ledger"] = {
            "status": "healthy",
            **ledger.network_info()
        }

        all_healthy = all(
            comp.get("status") == "healthy"
            for comp in health_status["components"].values()
        )
        health_status["status"] = "healthy" if all_healthy else "unhealthy"

        return JSONResponse(content=health_status, status_code=200 if all_healthy else 503)

    return app


# Создание приложения
app = create_app()

if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "api_server:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development
    )
