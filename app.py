from __future__ import annotations

import contextlib
import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    from endpoints.local_endpoints import (
        DEFAULT_CREATOR_EMAIL,
        DEFAULT_CREATOR_PASSWORD,
        DEFAULT_CREATOR_USERNAME,
    )
    from persistence import RepositoryError
    from persistence.paths import ensure_dir
    from persistence.repositories import seed_default_creator

    store = app.state.store
    await store.open()
    ensure_dir(app.state.settings.media_dir)

    if app.state.settings.seed_default_creator:
        try:
            _, created = await seed_default_creator(
                app.state.users,
                username=DEFAULT_CREATOR_USERNAME,
                email=DEFAULT_CREATOR_EMAIL,
                password=DEFAULT_CREATOR_PASSWORD,
            )
            if created:
                logger.info("Seeded default creator user: %s", DEFAULT_CREATOR_USERNAME)
        except RepositoryError as e:
            logger.warning("SEED: failed to seed default creator: %r", e)

    store.start_autosave()
    try:
        yield
    finally:
        await store.close()


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def create_app(settings=None) -> FastAPI:
    load_dotenv("local.env")

    from endpoints.auth_endpoints import router as auth_router
    from endpoints.local_endpoints import router as local_router
    from endpoints.video_endpoints import router as video_router
    from logging_config import configure_logging
    from persistence import JsonFileKeyValueStore, KVUserRepository, KVVideoRepository, RepositoryError
    from settings import get_settings

    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="StreamHub", lifespan=lifespan)

    store = JsonFileKeyValueStore.from_settings(settings)
    app.state.settings = settings
    app.state.store = store
    app.state.users = KVUserRepository(store)
    app.state.videos = KVVideoRepository(store, base_url=settings.base_url)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    if settings.debug_log_requests:

        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            response = await call_next(request)
            logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
            return response

    @app.exception_handler(RepositoryError)
    async def repository_error_handler(request: Request, exc: RepositoryError):
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info("REQUEST VALIDATION: %s %s: %s", request.method, request.url.path, exc.errors())
        return _error_response(400, "Invalid request")

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Request error: %s %s", request.method, request.url.path)
        return _error_response(500, "Internal server error")

    @app.get("/health")
    async def health():
        return JSONResponse({"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()})

    app.include_router(auth_router)
    app.include_router(video_router)
    app.include_router(local_router)

    app.mount("/media", StaticFiles(directory=settings.media_dir, check_dir=False), name="media")

    return app


app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run("app:app", host="0.0.0.0", port=int(os.getenv("PORT", "3001")))
