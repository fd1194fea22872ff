from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from formcanvas import __version__ as engine_version

from .adapters import session as session_adapter
from .routers import sessions as sessions_router

app = FastAPI(title="Form Canvas API", version="0.1.0", description="Canvas sessions driven by pointer and key events")

app.include_router(sessions_router.router)


@app.get("/")
async def index() -> Dict[str, Any]:
    return {
        "name": "formcanvas-api",
        "version": app.version,
        "engine_version": engine_version,
        "routes": [
            {"path": "/sessions", "methods": ["GET", "POST"]},
            {"path": "/sessions/{id}/events", "methods": ["POST"]},
            {"path": "/sessions/{id}/render", "methods": ["GET"]},
        ],
        "session_count": len(session_adapter.list_sessions()),
    }
