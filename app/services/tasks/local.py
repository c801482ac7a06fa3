from __future__ import annotations

import logging
from urllib.parse import urlparse

import httpx

from app.config import Settings
from app.services.tasks.interface import TRANSFORM_PIPELINE_TASK_PATH, TaskEnqueuer, TransformTaskPayload

logger = logging.getLogger(__name__)


class LocalHttpEnqueuer(TaskEnqueuer):
  """Enqueues tasks via local HTTP requests to simulate Cloud Tasks."""

  def __init__(self, settings: Settings) -> None:
    self.settings = settings

  def _should_use_asgi_transport(self, base_url: str) -> bool:
    """Decide if we should route requests in-process via ASGITransport."""
    # Avoid network/proxy edge-cases for local development by calling the app in-process when possible.
    parsed = urlparse(base_url)
    hostname = (parsed.hostname or "").lower()
    return hostname in {"localhost", "127.0.0.1", "::1", "0.0.0.0"}

  def _build_client(self, base_url: str) -> httpx.AsyncClient:
    """Build an httpx client for local task dispatch."""
    # Never trust environment proxy variables for internal task dispatch.
    if self._should_use_asgi_transport(base_url):
      from app.main import app

      transport = httpx.ASGITransport(app=app)
      return httpx.AsyncClient(transport=transport, base_url=base_url, trust_env=False)
    return httpx.AsyncClient(trust_env=False)

  def _task_headers(self) -> dict[str, str]:
    """Build task authentication headers for internal endpoints."""
    # Enforce shared-secret auth for internal endpoints (deny-by-default).
    if not self.settings.task_secret:
      raise RuntimeError("Task secret not configured.")
    return {"x-clementine-task-secret": self.settings.task_secret}

  async def enqueue_transform(self, payload: TransformTaskPayload) -> None:
    """Dispatch a transform job by POSTing to the local task endpoint."""
    if not self.settings.base_url:
      raise RuntimeError("Base URL not configured, strictly required for LocalHttpEnqueuer.")

    url = f"{self.settings.base_url.rstrip('/')}{TRANSFORM_PIPELINE_TASK_PATH}"

    try:
      async with self._build_client(self.settings.base_url) as client:
        # The task endpoint runs the job inline, so allow the same deadline Cloud Tasks would.
        logger.info("Dispatching task locally to %s for job %s", url, payload.job_id)
        response = await client.post(url, json=payload.to_json(), headers=self._task_headers(), timeout=float(self.settings.task_deadline_seconds))
        response.raise_for_status()

    except httpx.HTTPStatusError as e:
      logger.error("Local task dispatch returned %s for job %s: %s", e.response.status_code, payload.job_id, e.response.text)
      raise
    except httpx.RequestError as e:
      logger.error("Failed to dispatch local task for job %s: %s", payload.job_id, e)
      raise
