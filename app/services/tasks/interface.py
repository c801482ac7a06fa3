from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

TRANSFORM_PIPELINE_TASK_PATH = "/internal/tasks/transform-pipeline"


@dataclass(frozen=True)
class TransformTaskPayload:
  """Body of a transform pipeline task message."""

  job_id: str
  session_id: str
  project_id: str

  def to_json(self) -> dict[str, str]:
    return {"jobId": self.job_id, "sessionId": self.session_id, "projectId": self.project_id}


class TaskEnqueuer(Protocol):
  """Interface for enqueuing background tasks."""

  async def enqueue_transform(self, payload: TransformTaskPayload) -> None:
    """Enqueue a transform job for processing."""
    ...
