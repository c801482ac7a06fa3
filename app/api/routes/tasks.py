from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.config import Settings, get_settings
from app.jobs.worker import TransformPipelineTask
from app.services.pipeline import get_transform_pipeline_task

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)


class TransformPipelineTaskPayload(BaseModel):
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

  job_id: str = Field(min_length=1)
  session_id: str = Field(min_length=1)
  project_id: str = Field(min_length=1)


def require_task_secret(settings: Annotated[Settings, Depends(get_settings)], authorization: str | None = Header(default=None), x_clementine_task_secret: str | None = Header(default=None)) -> None:
  """Reject task deliveries without the shared secret."""
  # Secure-by-default: internal task endpoints must be authenticated to avoid arbitrary job execution.
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  expected_auth = f"Bearer {settings.task_secret}"
  # Cloud Tasks OIDC uses Authorization for Cloud Run invoker auth, so check the dedicated header first.
  shared_secret_valid = secrets.compare_digest((x_clementine_task_secret or ""), settings.task_secret)
  bearer_valid = secrets.compare_digest((authorization or ""), expected_auth)
  if not shared_secret_valid and not bearer_valid:
    logger.warning("Unauthorized access attempt to transform pipeline task endpoint")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")


def _parse_retry_count(value: str | None) -> int:
  if value is None or not value.strip().isdigit():
    return 0
  return int(value.strip())


@router.post("/transform-pipeline", status_code=status.HTTP_200_OK, dependencies=[Depends(require_task_secret)])
async def transform_pipeline_task(
  payload: TransformPipelineTaskPayload,
  response: Response,
  pipeline: Annotated[TransformPipelineTask, Depends(get_transform_pipeline_task)],
  x_cloudtasks_taskretrycount: str | None = Header(default=None),
) -> dict[str, str | None]:
  """
  Handler for Cloud Tasks (and local simulation).
  Runs the job inline; a 503 asks the queue to re-deliver with its own backoff.
  """
  queue_retry_count = _parse_retry_count(x_cloudtasks_taskretrycount)
  logger.info("Received transform task job=%s session=%s project=%s queue_retry=%s", payload.job_id, payload.session_id, payload.project_id, queue_retry_count)
  result = await pipeline.run(project_id=payload.project_id, session_id=payload.session_id, job_id=payload.job_id, queue_retry_count=queue_retry_count)
  if result.should_retry:
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
  return {"action": result.action, "status": result.status, "reason": result.reason}
