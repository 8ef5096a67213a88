import logging
import time
import uuid
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from src.api.errors import register_exception_handlers
from src.api.rate_limit import API_LIMIT, WEBHOOK_LIMIT, limit
from src.api.v1.endpoints.webhook import router as webhook_router
from src.api.v1.router import router as v1_router
from src.config import settings
from src.logging_config import configure_logging

logger = logging.getLogger("wa_assistant.api")

_STARTED_AT = time.monotonic()


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title=settings.app_name, version=settings.app_version)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Attach a request id to every response and log a compact access line.

        - If the caller provides X-Request-ID, we reuse it.
        - Otherwise we generate a UUID4.
        """

        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "access request_id=%s method=%s path=%s status=%s duration_ms=%.2f",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    register_exception_handlers(app)

    @app.get("/")
    async def root():
        return {"name": settings.app_name, "version": settings.app_version, "status": "running"}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/health")
    async def api_health():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": time.monotonic() - _STARTED_AT,
        }

    # WhatsApp calls the webhook at the root; everything else is versioned.
    app.include_router(webhook_router, dependencies=[Depends(limit(WEBHOOK_LIMIT, "webhook"))])
    app.include_router(v1_router, prefix="/api/v1", dependencies=[Depends(limit(API_LIMIT, "api"))])
    return app


app = create_app()
