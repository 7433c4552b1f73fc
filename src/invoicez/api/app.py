"""FastAPI application factory."""

import time

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from invoicez import __version__
from invoicez.api.deps import require_user
from invoicez.api.errors import install_error_handlers
from invoicez.api.routes import auth, clients, handovers, invoices, products, receipts, staff
from invoicez.config import Settings, get_settings
from invoicez.db import Database

logger = structlog.get_logger(__name__)


def create_app(settings: Settings | None = None, db: Database | None = None) -> FastAPI:
    """Build the API.

    Args:
        settings: Defaults to ``get_settings()``.
        db: Defaults to a handle built from ``settings``. Missing tables are
            created on startup.
    """
    settings = settings or get_settings()
    db = db or Database.from_settings(settings)
    db.create_all()

    app = FastAPI(title="Invoicez", version=__version__)
    app.state.settings = settings
    app.state.db = db

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(method=request.method, path=request.url.path)
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "request_handled",
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response

    install_error_handlers(app)

    @app.get("/health")
    def health() -> dict[str, bool]:
        return {"ok": True}

    app.include_router(auth.router, prefix="/api")
    guarded = [Depends(require_user)]
    for module in (clients, staff, products, invoices, receipts, handovers):
        app.include_router(module.router, prefix="/api", dependencies=guarded)

    logger.info("app_created", auth_required=settings.auth_required, db=db.engine.dialect.name)
    return app
