"""FastAPI application through which editor plugins drive the local agent."""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from .config import TrackerSettings
from .events import EditorEvent, EventKind
from .models import ActivityRecord
from .paths import get_db_path
from .runtime import TrackerRuntime

logger = logging.getLogger(__name__)


class EventPayload(BaseModel):
    kind: EventKind
    file_path: str
    language: str = ""
    workspace_root: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class ProjectPayload(BaseModel):
    project_root: str

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    runtime: Optional[TrackerRuntime] = None,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    project_roots: Sequence[str] = (),
    auto_start: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_runtime = runtime or TrackerRuntime(
        settings or TrackerSettings().with_env_overrides(),
        Path(db_path or get_db_path()),
    )

    app = FastAPI(title="CodeChrono Agent", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.runtime = resolved_runtime

    @app.on_event("startup")
    async def _startup() -> None:
        if auto_start:
            resolved_runtime.start(project_roots)
        else:
            for project_root in project_roots:
                resolved_runtime.register_project(project_root)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        resolved_runtime.close()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        return request.app.state.runtime.snapshot()

    @app.post("/api/events")
    def post_event(payload: EventPayload, request: Request) -> Dict[str, Any]:
        if not payload.file_path.strip():
            raise HTTPException(status_code=400, detail="file_path is required")
        runtime: TrackerRuntime = request.app.state.runtime
        event = EditorEvent(
            kind=payload.kind,
            file_path=payload.file_path.strip(),
            language=payload.language,
            workspace_root=payload.workspace_root or None,
        )
        results = runtime.events.publish(event)
        return {
            "delivered": bool(results),
            "emitted": any(isinstance(result, ActivityRecord) for result in results),
            "tracking": runtime.tracker.is_tracking,
            "pending": len(runtime.pending),
        }

    @app.post("/api/tracking/start")
    def start_tracking(request: Request) -> Dict[str, Any]:
        runtime: TrackerRuntime = request.app.state.runtime
        runtime.tracker.start_tracking()
        return {"tracking": runtime.tracker.is_tracking}

    @app.post("/api/tracking/stop")
    def stop_tracking(request: Request) -> Dict[str, Any]:
        runtime: TrackerRuntime = request.app.state.runtime
        runtime.tracker.stop_tracking()
        return {"tracking": runtime.tracker.is_tracking}

    @app.post("/api/projects")
    def register_project(payload: ProjectPayload, request: Request) -> Dict[str, Any]:
        project_root = payload.project_root.strip()
        if not project_root:
            raise HTTPException(status_code=400, detail="project_root is required")
        if not Path(project_root).expanduser().is_dir():
            raise HTTPException(status_code=400, detail="project_root must be a directory")
        runtime: TrackerRuntime = request.app.state.runtime
        revision = runtime.register_project(project_root)
        return {
            "project_root": runtime.resolve_project_root(project_root),
            "revision": revision,
        }

    @app.post("/api/sync")
    def sync_now(request: Request) -> Dict[str, Any]:
        runtime: TrackerRuntime = request.app.state.runtime
        result = runtime.sync_engine.run_once()
        logger.info(
            "Manual sync: %d flushed, %d activities and %d revisions pushed",
            result.flushed,
            result.activities_synced,
            result.revisions_synced,
        )
        return asdict(result)

    return app
