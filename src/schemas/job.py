from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

AITaskType = Literal["summarize", "extract_intent", "analyze_image"]


class AITaskRequest(BaseModel):
    type: AITaskType
    data: dict[str, Any] = Field(default_factory=dict)


class JobEnqueued(BaseModel):
    job_id: str
    queue: str


class JobStatus(BaseModel):
    id: str
    state: str
    progress: Any | None = None
    result: Any | None = None
    failed_reason: str | None = None


class QueueStats(BaseModel):
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    delayed: int = 0


class QueueStatsResponse(BaseModel):
    queues: dict[str, QueueStats]
