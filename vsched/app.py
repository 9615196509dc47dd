from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException, Query

from . import db
from .api_models import RequirementChangeRequest, RequirementView, TaskView
from .reconciler import Reconciler
from .scheduler import ViewerScheduler


def create_app(scheduler: ViewerScheduler, reconciler: Reconciler | None = None) -> FastAPI:
    app = FastAPI(title="Viewer Fleet Scheduler")

    @app.on_event("startup")
    def startup() -> None:
        db.init_db()
        if reconciler is not None:
            reconciler.start()

    @app.on_event("shutdown")
    def shutdown() -> None:
        if reconciler is not None:
            reconciler.stop()

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/requirements", response_model=list[RequirementView])
    def list_requirements() -> list[dict[str, Any]]:
        return scheduler.requirements()

    @app.post("/requirements", response_model=RequirementView)
    def change_requirement(req: RequirementChangeRequest) -> dict[str, Any]:
        target = req.target.strip()
        if not target:
            raise HTTPException(status_code=422, detail="target must not be blank")
        scheduler.change_requirement(target, req.delta)
        return scheduler.requirement(target)

    @app.get("/tasks", response_model=list[TaskView])
    def list_tasks() -> list[dict[str, Any]]:
        return [asdict(h) for h in scheduler.tasks()]

    @app.get("/tasks/history")
    def task_history(limit: int = Query(100, ge=1, le=1000), target: str | None = None) -> list[dict[str, Any]]:
        return [asdict(r) for r in db.task_history(limit=limit, target=target)]

    @app.get("/events")
    def events(limit: int = Query(100, ge=1, le=1000)) -> list[dict[str, Any]]:
        return db.latest_events(limit)

    return app
