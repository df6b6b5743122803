"""FastAPI routers for the worker.

Routers are grouped by domain (transcripts, tasks, notes, config).
"""

from fastapi import APIRouter

from .auto import router as auto_router
from .llm_config import router as llm_config_router
from .notes import router as notes_router
from .tasks import router as tasks_router
from .transcripts import router as transcripts_router

# Shared top-level router, mounted under /v1 by the app factory
api_router = APIRouter()
api_router.include_router(transcripts_router)
api_router.include_router(tasks_router)
api_router.include_router(notes_router)
api_router.include_router(auto_router)
api_router.include_router(llm_config_router)
