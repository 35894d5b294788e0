"""
Times Tables API

FastAPI application for the times tables practice backend.

Run locally:
    uvicorn tables_app.main:app --reload --app-dir backend
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tables_app.config import settings
from tables_app.db.base import init_db
from tables_app.middleware import setup_error_handling
from tables_app.routers import health_router, tables_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info(f"{settings.APP_NAME} API started")
    yield
    logger.info(f"{settings.APP_NAME} API stopped")


def create_app() -> FastAPI:
    """Build the FastAPI application with middleware and routers."""
    app = FastAPI(title=f"{settings.APP_NAME} API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_error_handling(app, debug=settings.DEBUG)

    app.include_router(health_router.router)
    app.include_router(tables_router.router)
    return app


app = create_app()


@app.get("/")
async def root():
    return {"message": f"{settings.APP_NAME} API"}
