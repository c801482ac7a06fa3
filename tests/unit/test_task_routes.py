"""Transform pipeline task endpoint."""

from __future__ import annotations

import pytest
from conftest import build_job, build_snapshot

from app.jobs.dispatch import OutcomeRegistry
from app.jobs.errors import GenerationTimeoutError
from app.jobs.worker import TaskResult, TransformPipelineTask
from app.main import app
from app.services.pipeline import get_transform_pipeline_task

TASK_URL = "/internal/tasks/transform-pipeline"
PAYLOAD = {"jobId": "job-1", "sessionId": "s1", "projectId": "p1"}


class StubPipeline:
  def __init__(self, result: TaskResult) -> None:
    self.result = result
    self.calls: list[dict[str, str | int]] = []

  async def run(self, *, project_id: str, session_id: str, job_id: str, queue_retry_count: int = 0) -> TaskResult:
    self.calls.append({"project_id": project_id, "session_id": session_id, "job_id": job_id, "queue_retry_count": queue_retry_count})
    return self.result


def _install(result: TaskResult) -> StubPipeline:
  pipeline = StubPipeline(result)
  app.dependency_overrides[get_transform_pipeline_task] = lambda: pipeline
  return pipeline


@pytest.mark.anyio
async def test_task_without_secret_is_forbidden(async_client) -> None:
  pipeline = _install(TaskResult(action="acknowledged", status="succeeded", reason="succeeded"))

  response = await async_client.post(TASK_URL, json=PAYLOAD)

  assert response.status_code == 403
  assert pipeline.calls == []


@pytest.mark.anyio
async def test_task_with_wrong_secret_is_forbidden(async_client) -> None:
  _install(TaskResult(action="acknowledged", status="succeeded", reason="succeeded"))

  response = await async_client.post(TASK_URL, json=PAYLOAD, headers={"X-Clementine-Task-Secret": "nope"})

  assert response.status_code == 403


@pytest.mark.anyio
async def test_acknowledged_task_returns_200(async_client) -> None:
  pipeline = _install(TaskResult(action="acknowledged", status="succeeded", reason="succeeded"))

  response = await async_client.post(TASK_URL, json=PAYLOAD, headers={"X-Clementine-Task-Secret": "test-secret", "X-CloudTasks-TaskName": "task-abc"})

  assert response.status_code == 200
  assert response.json() == {"action": "acknowledged", "status": "succeeded", "reason": "succeeded"}
  assert response.headers["x-request-id"] == "task-abc"
  assert pipeline.calls == [{"project_id": "p1", "session_id": "s1", "job_id": "job-1", "queue_retry_count": 0}]


@pytest.mark.anyio
async def test_bearer_secret_is_accepted(async_client) -> None:
  _install(TaskResult(action="acknowledged", status="failed", reason="INVALID_INPUT"))

  response = await async_client.post(TASK_URL, json=PAYLOAD, headers={"Authorization": "Bearer test-secret"})

  assert response.status_code == 200
  assert response.json()["status"] == "failed"


@pytest.mark.anyio
async def test_retry_result_returns_503(async_client) -> None:
  """A non-2xx response makes the queue re-deliver the message."""
  _install(TaskResult(action="retry", status="running", reason="TIMEOUT"))

  response = await async_client.post(TASK_URL, json=PAYLOAD, headers={"X-Clementine-Task-Secret": "test-secret"})

  assert response.status_code == 503
  assert response.json()["reason"] == "TIMEOUT"


@pytest.mark.anyio
async def test_malformed_payload_is_rejected_without_echoing_input(async_client) -> None:
  pipeline = _install(TaskResult(action="acknowledged", status=None, reason="job_not_found"))

  response = await async_client.post(TASK_URL, json={"jobId": "", "sessionId": "s1"}, headers={"X-Clementine-Task-Secret": "test-secret"})

  assert response.status_code == 422
  assert all("input" not in error for error in response.json()["detail"])
  assert pipeline.calls == []


@pytest.mark.anyio
async def test_health_check(async_client) -> None:
  response = await async_client.get("/health")
  assert response.status_code == 200
  assert response.json() == {"status": "ok"}


class TimingOutExecutor:
  async def execute(self, ctx):
    raise GenerationTimeoutError("Video generation timed out")


@pytest.mark.anyio
async def test_queue_retry_count_marks_final_delivery(async_client, jobs_repo, sessions_repo) -> None:
  """Deliveries that never started the job still count toward the ceiling."""
  await jobs_repo.create(build_job(build_snapshot({"type": "photo", "photo": {"captureStepId": "capture"}}), attempts=0))
  pipeline = TransformPipelineTask(jobs_repo=jobs_repo, sessions_repo=sessions_repo, registry=OutcomeRegistry({"photo": TimingOutExecutor()}), max_attempts=3)
  app.dependency_overrides[get_transform_pipeline_task] = lambda: pipeline

  response = await async_client.post(TASK_URL, json=PAYLOAD, headers={"X-Clementine-Task-Secret": "test-secret", "X-CloudTasks-TaskRetryCount": "2"})

  assert response.status_code == 200
  assert response.json() == {"action": "acknowledged", "status": "failed", "reason": "MAX_ATTEMPTS_EXCEEDED"}
  job = await jobs_repo.get("p1", "job-1")
  assert job.status == "failed"
  assert job.attempts == 1
  assert job.error.code == "MAX_ATTEMPTS_EXCEEDED"


@pytest.mark.anyio
async def test_unparseable_retry_count_is_treated_as_first_delivery(async_client) -> None:
  pipeline = _install(TaskResult(action="acknowledged", status="succeeded", reason="succeeded"))

  await async_client.post(TASK_URL, json=PAYLOAD, headers={"X-Clementine-Task-Secret": "test-secret", "X-CloudTasks-TaskRetryCount": "soon"})

  assert pipeline.calls[0]["queue_retry_count"] == 0
