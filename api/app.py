import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ledger.models import ErrorResponse
from ledger.policy import PrivilegedAccountPolicy
from ledger.service import LedgerService
from ledger.storage import SqliteUserStore
from restoration.proxy import RestorationProxy
from .logging_config import setup_logging
from .routes import router
from .settings import ConfigurationError, Settings, load_settings

logger = structlog.get_logger(__name__)


def _error(status_code: int, message: str, provider_status: Optional[int] = None) -> JSONResponse:
    body = ErrorResponse(message=message, provider_status=provider_status)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        field = ".".join(loc)
        messages.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return "; ".join(messages) or "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail), getattr(exc, "provider_status", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error(status.HTTP_400_BAD_REQUEST, _validation_message(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error")


def create_app(
    settings: Optional[Settings] = None,
    provider_transport: Optional[httpx.BaseTransport] = None,
) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(settings.log_level, settings.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = SqliteUserStore(settings.database_path)
        proxy = RestorationProxy(
            api_key=settings.provider_api_key,
            base_url=settings.provider_base_url,
            model=settings.provider_model,
            timeout=settings.provider_timeout_seconds,
            transport=provider_transport,
        )
        app.state.ledger = LedgerService(
            store, PrivilegedAccountPolicy(settings.privileged_name_list)
        )
        app.state.proxy = proxy
        logger.info("startup", database=settings.database_path, provider_model=settings.provider_model)
        try:
            yield
        finally:
            proxy.close()
            store.close()
            logger.info("shutdown")

    app = FastAPI(
        title="PhotoRevive API",
        description="Credit ledger, referrals and AI photo restoration proxy",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(router)
    # The browser client calls the same routes under /api
    app.include_router(router, prefix="/api", include_in_schema=False)
    return app


if __name__ == "__main__":
    import uvicorn

    try:
        app_settings = load_settings()
    except ConfigurationError as e:
        print(f"FATAL: {e}", file=sys.stderr)
        sys.exit(1)
    uvicorn.run(create_app(app_settings), host=app_settings.host, port=app_settings.port)
