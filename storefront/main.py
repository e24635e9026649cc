import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from storefront.config import settings
from storefront.errors import StorefrontError
from storefront.metrics import get_metrics_bytes, get_metrics_content_type
from storefront.routes import admin, delivery, orders, products
from storefront.store import Store

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        f"{'.'.join(str(p) for p in e['loc'] if p != 'body') or 'body'}: {e['msg']}"
        for e in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "category": "validation", "errors": errors},
    )


def create_app(store: Store | None = None) -> FastAPI:
    """Build the API. A given `store` is used as is and left open on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = store is None
        app.state.store = Store.from_url(settings.redis_url) if owned else store
        if not await app.state.store.ping():
            logger.warning("Store at startup is not reachable; requests will wait up to %.1fs", settings.store_ready_timeout)
        yield
        if owned:
            await app.state.store.close()

    app = FastAPI(title="Storefront Orders", lifespan=lifespan)
    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.include_router(admin.router)
    app.include_router(products.router)
    app.include_router(orders.router)
    app.include_router(delivery.router)

    @app.get("/health")
    async def health(request: Request) -> dict:
        ready = await request.app.state.store.ping()
        return {"status": "ok" if ready else "degraded", "store": "ready" if ready else "unavailable"}

    @app.get("/metrics")
    async def metrics() -> Response:
        """Prometheus scrape endpoint: order creations, status changes, rejected transitions."""
        return Response(
            content=get_metrics_bytes(),
            media_type=get_metrics_content_type(),
        )

    return app


app = create_app()
