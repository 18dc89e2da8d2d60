from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cardvault.core.config import Settings, get_settings
from cardvault.repositories import HostStore, build_host_store
from cardvault.routers import storage as storage_router
from cardvault.routers import students as students_router
from cardvault.services.record_store import RecordStore


def _allowed_origins(settings: Settings) -> list[str]:
    allowed = {settings.public_base_url}
    if settings.app_env != "prod":
        allowed.update(
            {
                "http://localhost:8000",
                "http://127.0.0.1:8000",
                "http://localhost:5173",
                "http://127.0.0.1:5173",
            }
        )
    return sorted(origin for origin in allowed if origin)


def create_app(settings: Optional[Settings] = None, host: Optional[HostStore] = None) -> FastAPI:
    """Factory compatible with uvicorn/gunicorn (`uvicorn cardvault.app:app`)."""
    settings = settings or get_settings()
    app = FastAPI(title="cardvault API")
    origins = _allowed_origins(settings)
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )
    app.state.settings = settings
    app.state.record_store = RecordStore(host or build_host_store(settings), settings=settings)
    app.include_router(students_router.router)
    app.include_router(storage_router.router)
    return app


app = create_app()
