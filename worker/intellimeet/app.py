from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pathlib import Path
import os

from .routers import api_router
from .config import Settings, load_settings
from .logging import setup_logging, install_app_logging
from .errors import install_error_handlers
from .services.bus import EventBus
from .state import State


def _load_env_file(env_path: Path) -> None:
    """Minimal .env loader: KEY=VALUE lines into os.environ if not set.
    - Ignores comments and blank lines
    - Strips surrounding quotes
    - Supports optional 'export ' prefix
    """
    try:
        if not env_path.exists():
            return
        for raw in env_path.read_text(encoding="utf-8").splitlines():
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line.lower().startswith("export "):
                line = line[7:].lstrip()
            if "=" not in line:
                continue
            k, v = line.split("=", 1)
            key = k.strip()
            val = v.strip().strip('"').strip("'")
            os.environ.setdefault(key, val)
    except OSError as e:
        # Best-effort only
        logging.getLogger("app").warning(f"could not read {env_path}: {e}")


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # Auto-extraction runs still in flight are abandoned on shutdown
    pending = list(app.state.state.background)
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)


def create_app(settings: Settings | None = None) -> FastAPI:
    # Load environment from optional .env files (repo root and worker dir)
    pkg_dir = Path(__file__).resolve().parent
    worker_dir = pkg_dir.parent
    repo_root = worker_dir.parent
    _load_env_file(repo_root / ".env")
    _load_env_file(worker_dir / ".env")

    settings = settings or load_settings()
    setup_logging()

    app = FastAPI(title="IntelliMeet Worker", version="1.0.0", lifespan=_lifespan)

    # Attach config/state
    app.state.settings = settings
    app.state.state = State(
        bus=EventBus(queue_size=settings.bus_queue_size),
        auto_extract=settings.auto_extract,
        auto_extract_every=settings.auto_extract_every,
    )

    # CORS
    allow = [o.strip() for o in settings.cors_allow_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_app_logging(app)
    install_error_handlers(app)

    # Versioned API
    app.include_router(api_router, prefix="/v1")

    @app.get("/health")
    def health():  # pragma: no cover - trivial
        return {"status": "ok", "subscribers": app.state.state.bus.subscriber_count}
    return app


# Convenience for `uvicorn intellimeet.app:app`
app = create_app()
