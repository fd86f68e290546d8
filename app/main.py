import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.auth.router import router as auth_router
from app.api.v1.classrooms.router import router as classrooms_router
from app.api.v1.schools.router import router as schools_router
from app.api.v1.students.router import router as students_router
from app.core.config import settings
from app.core.dispatcher import register_exception_handlers
from app.core.logging import configure_logging
from app.db.session import create_all_tables

APP_VERSION = "1.0.0"

logger = logging.getLogger(__name__)

_started_at = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_tables:
        logger.info("CREATE_TABLES is set; creating missing tables")
        await create_all_tables()
    yield


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="School Management API", version=APP_VERSION, lifespan=lifespan)

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Routers
    app.include_router(auth_router)
    app.include_router(schools_router)
    app.include_router(classrooms_router)
    app.include_router(students_router)

    @app.get("/health", tags=["health"])
    async def health():
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - _started_at, 3),
            "version": APP_VERSION,
        }

    return app


app = create_app()
