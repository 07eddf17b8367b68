from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.distribution_types import router as distribution_types_router
from app.api.distributions import router as distributions_router
from app.api.documents import router as documents_router
from app.api.notifications import router as notifications_router
from app.config import settings
from app.db import SessionLocal
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.observability import ObservabilityMiddleware
from app.services.distribution_type import seed_distribution_types


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = SessionLocal()
    try:
        seed_distribution_types(db)
    finally:
        db.close()
    yield


app = FastAPI(title=f"{settings.brand_name} API", lifespan=lifespan)

configure_logging()
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(distribution_types_router)
_include_api_router(distributions_router)
_include_api_router(documents_router)
_include_api_router(notifications_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
