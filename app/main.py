import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.database import engine
from app.exceptions import DomainException, StorageException
from app.logging_config import setup_logging
from app.routers import connections, conversations, messages

logger = logging.getLogger(__name__)


def register_error_handlers(application: FastAPI) -> None:
    @application.exception_handler(DomainException)
    async def domain_exception_handler(
        request: Request, exc: DomainException
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.code)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @application.exception_handler(SQLAlchemyError)
    async def storage_exception_handler(
        request: Request, exc: SQLAlchemyError
    ) -> JSONResponse:
        logger.error(
            "Storage failure on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        error = StorageException()
        return JSONResponse(status_code=error.status_code, content=error.to_dict())


def create_app() -> FastAPI:
    setup_logging(settings.log_level, settings.log_format)
    application = FastAPI(title="Connections & Messaging API")

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(application)

    application.include_router(connections.router)
    application.include_router(conversations.router)
    application.include_router(messages.router)

    @application.get("/health")
    def health():
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return {"status": "healthy"}
        except SQLAlchemyError:
            logger.warning("Health check could not reach the database", exc_info=True)
            return JSONResponse(status_code=503, content={"status": "unhealthy"})

    return application


app = create_app()
