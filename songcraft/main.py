import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from songcraft.config import settings
from songcraft.deps import Studio, build_studio
from songcraft.errors import (
    BlockNotFoundError,
    CredentialMissingError,
    GenerationError,
    GenerationPreconditionError,
    PresetNotFoundError,
    ProjectFieldError,
    ProjectNotFoundError,
    SongcraftError,
    VariationIndexError,
)
from songcraft.routers import credentials, generation, presets, projects

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[SongcraftError], int]] = [
    (GenerationPreconditionError, 400),
    (GenerationError, 502),
    (CredentialMissingError, 401),
    (ProjectNotFoundError, 404),
    (BlockNotFoundError, 404),
    (PresetNotFoundError, 404),
    (VariationIndexError, 422),
    (ProjectFieldError, 422),
]


def _status_for(exc: SongcraftError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


def create_app(studio: Optional[Studio] = None) -> FastAPI:
    logging.getLogger("songcraft").setLevel(settings.LOG_LEVEL.upper())

    @asynccontextmanager
    async def _app_lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "studio", None) is None:
            app.state.studio = build_studio()
        yield

    app = FastAPI(
        title="Songcraft Studio API",
        default_response_class=ORJSONResponse,
        lifespan=_app_lifespan,
    )
    app.state.studio = studio

    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(set(settings.cors_origins)),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SongcraftError)
    async def songcraft_error_handler(_request: Request, exc: SongcraftError) -> ORJSONResponse:
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.exception("Request failed", exc_info=exc)
        return ORJSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "error": type(exc).__name__},
        )

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    app.include_router(credentials.router)
    app.include_router(projects.router)
    app.include_router(generation.router)
    app.include_router(presets.router)

    return app


app = create_app()
