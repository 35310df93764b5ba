from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from taskboard.core.config import settings
from taskboard.core.logging_setup import setup_logging

from taskboard.api.health import router as health_router
from taskboard.api.auth import router as auth_router
from taskboard.api.workspaces import router as workspaces_router
from taskboard.api.members import router as members_router
from taskboard.api.projects import router as projects_router
from taskboard.api.tasks import router as tasks_router

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Taskboard API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SQLAlchemyError)
async def _handle_store_error(request: Request, exc: SQLAlchemyError):
    logger.exception("Store error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Store error"})


app.include_router(health_router)
app.include_router(auth_router)
app.include_router(workspaces_router)
app.include_router(members_router)
app.include_router(projects_router)
app.include_router(tasks_router)
