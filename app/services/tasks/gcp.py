from __future__ import annotations

import json
import logging

from google.cloud import tasks_v2
from google.protobuf import duration_pb2
from starlette.concurrency import run_in_threadpool

from app.config import Settings
from app.services.tasks.interface import TRANSFORM_PIPELINE_TASK_PATH, TaskEnqueuer, TransformTaskPayload

logger = logging.getLogger(__name__)


class CloudTasksEnqueuer(TaskEnqueuer):
  """Enqueues tasks to Google Cloud Tasks."""

  def __init__(self, settings: Settings) -> None:
    self.settings = settings
    self.client = tasks_v2.CloudTasksClient()

  def _build_task(self, payload: TransformTaskPayload) -> dict:
    url = f"{self.settings.base_url.rstrip('/')}{TRANSFORM_PIPELINE_TASK_PATH}"
    headers = {"Content-Type": "application/json"}
    # Cloud Run invoker auth uses Authorization, so the shared secret travels in its own header.
    if self.settings.task_secret:
      headers["X-Clementine-Task-Secret"] = self.settings.task_secret
    http_request: dict = {"http_method": tasks_v2.HttpMethod.POST, "url": url, "headers": headers, "body": json.dumps(payload.to_json()).encode()}
    if self.settings.cloud_tasks_service_account:
      http_request["oidc_token"] = {"service_account_email": self.settings.cloud_tasks_service_account, "audience": self.settings.base_url}
    return {"http_request": http_request, "dispatch_deadline": duration_pb2.Duration(seconds=self.settings.task_deadline_seconds)}

  async def enqueue_transform(self, payload: TransformTaskPayload) -> None:
    """Enqueue a transform job to Cloud Tasks."""
    if not self.settings.cloud_tasks_queue_path:
      raise RuntimeError("Cloud Tasks queue path not configured.")
    if not self.settings.base_url:
      raise RuntimeError("Base URL not configured.")

    task = self._build_task(payload)
    try:
      response = await run_in_threadpool(self.client.create_task, request={"parent": self.settings.cloud_tasks_queue_path, "task": task})
    except Exception:
      logger.error("Failed to enqueue task for job %s", payload.job_id, exc_info=True)
      raise
    logger.info("Enqueued task %s for job %s", response.name, payload.job_id)
