from __future__ import annotations

from pydantic import BaseModel, Field


class RequirementChangeRequest(BaseModel):
    target: str = Field(..., min_length=1, description="Upstream endpoint, e.g. http://es1:9200")
    delta: int = Field(..., ge=-1000, le=1000, description="Instances to add (negative to remove)")


class RequirementView(BaseModel):
    target: str
    required: int
    running: int
    delta: int


class TaskView(BaseModel):
    task_id: str
    target: str
    port: int
    state: str
    kill_requested: bool
    launched_at: str
    updated_at: str
