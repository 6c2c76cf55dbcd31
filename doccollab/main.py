import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from doccollab.api.http import documents_router, permissions_router, profiles_router
from doccollab.core.config import settings
from doccollab.core.db import create_session_factory
from doccollab.core.errors import DocCollabError
from doccollab.db.models import Base

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    "unauthenticated": 401,
    "forbidden": 403,
    "not_found": 404,
    "conflict": 409,
    "invalid_operation": 422,
    "transient": 503,
}


def create_app(database_url: Optional[str] = None) -> FastAPI:
    """Создание приложения хранилища документов"""
    engine, session_factory = create_session_factory(database_url or settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema is ready")
        yield
        await engine.dispose()

    app = FastAPI(
        title="DocCollab",
        description="Хранилище документов и разрешений для совместного редактирования",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.engine = engine
    app.state.session_factory = session_factory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DocCollabError)
    async def doccollab_error_handler(request: Request, exc: DocCollabError):
        status_code = STATUS_BY_CODE.get(exc.code, 500)
        logger.warning(f"{request.method} {request.url.path} -> {status_code}: {exc.message}")
        return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})

    app.include_router(documents_router)
    app.include_router(permissions_router)
    app.include_router(profiles_router)

    @app.get("/health")
    async def health():
        """Проверка состояния сервиса"""
        return {"status": "ok"}

    return app
