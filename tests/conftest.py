"""Shared fixtures and in-memory fakes for the transform pipeline tests."""

from __future__ import annotations

import io
import os
from dataclasses import replace
from typing import Any

import pytest
from google.api_core.exceptions import NotFound
from httpx import ASGITransport, AsyncClient
from PIL import Image

from app.ai.providers.base import ImageGenerationRequest, VideoGenerationRequest, VideoOperation
from app.config import get_settings
from app.jobs.models import Job, JobError, JobOutput, JobProgress, now_ms
from app.main import app
from app.schema.media import MediaReference
from app.schema.snapshot import JobSnapshot

TEST_BUCKET = "test-bucket"
PUBLIC_HOST = "https://storage.test"


def make_image_bytes(width: int = 64, height: int = 48, *, color: tuple[int, ...] = (200, 120, 40), mode: str = "RGB", format: str = "JPEG") -> bytes:
  """Render a solid image so Pillow code paths run against real files."""
  buffer = io.BytesIO()
  Image.new(mode, (width, height), color).save(buffer, format=format)
  return buffer.getvalue()


class InMemoryJobsRepository:
  """Jobs repository that mimics the guarded Firestore transitions."""

  def __init__(self) -> None:
    self.jobs: dict[tuple[str, str], Job] = {}
    self.progress_updates: list[JobProgress] = []
    self.fail_progress = False

  async def create(self, job: Job) -> None:
    self.jobs[(job.project_id, job.job_id)] = job

  async def get(self, project_id: str, job_id: str) -> Job | None:
    return self.jobs.get((project_id, job_id))

  def _guarded(self, project_id: str, job_id: str, **changes: Any) -> Job | None:
    job = self.jobs.get((project_id, job_id))
    # Terminal jobs are immutable.
    if job is None or job.is_terminal:
      return None
    updated = replace(job, updated_at=now_ms(), **changes)
    self.jobs[(project_id, job_id)] = updated
    return updated

  async def transition_to_running(self, project_id: str, job_id: str) -> Job | None:
    job = self.jobs.get((project_id, job_id))
    if job is None or job.is_terminal:
      return None
    return self._guarded(project_id, job_id, status="running", attempts=job.attempts + 1, started_at=job.started_at or now_ms())

  async def finalize_success(self, project_id: str, job_id: str, output: JobOutput) -> Job | None:
    return self._guarded(project_id, job_id, status="succeeded", output=output, progress=None, completed_at=now_ms())

  async def finalize_failure(self, project_id: str, job_id: str, error: JobError) -> Job | None:
    return self._guarded(project_id, job_id, status="failed", error=error, progress=None, completed_at=now_ms())

  async def record_progress(self, project_id: str, job_id: str, progress: JobProgress) -> None:
    if self.fail_progress:
      raise RuntimeError("progress write failed")
    self.progress_updates.append(progress)
    self._guarded(project_id, job_id, progress=progress)


class InMemorySessionsRepository:
  """Sessions repository recording result media and mirrored job status."""

  def __init__(self) -> None:
    self.result_media: dict[tuple[str, str], MediaReference] = {}
    self.job_statuses: list[tuple[str, str, str]] = []
    self.fail_result_media = False
    self.fail_job_status = False

  async def update_result_media(self, project_id: str, session_id: str, media: MediaReference) -> None:
    if self.fail_result_media:
      raise RuntimeError("session write failed")
    self.result_media[(project_id, session_id)] = media

  async def get_result_media(self, project_id: str, session_id: str) -> MediaReference | None:
    return self.result_media.get((project_id, session_id))

  async def update_job_status(self, project_id: str, session_id: str, job_id: str, status: str) -> None:
    if self.fail_job_status:
      raise RuntimeError("session write failed")
    self.job_statuses.append((session_id, job_id, status))

  def last_status(self, session_id: str) -> str | None:
    statuses = [status for sid, _, status in self.job_statuses if sid == session_id]
    return statuses[-1] if statuses else None


class FakeStorage:
  """Bucket held in memory with the StorageClient surface the executors use."""

  def __init__(self) -> None:
    self.objects: dict[str, bytes] = {}
    self.content_types: dict[str, str] = {}
    self.fail_uploads = False

  @property
  def bucket_name(self) -> str:
    return TEST_BUCKET

  def public_url(self, object_name: str) -> str:
    return f"{PUBLIC_HOST}/{TEST_BUCKET}/{object_name}"

  def gs_uri(self, object_name: str) -> str:
    return f"gs://{TEST_BUCKET}/{object_name}"

  def object_name_from_url(self, url: str) -> str | None:
    for prefix in (f"gs://{TEST_BUCKET}/", f"{PUBLIC_HOST}/{TEST_BUCKET}/"):
      if url.startswith(prefix):
        return url[len(prefix) :] or None
    return None

  async def upload_file(self, local_path: str, object_name: str, *, content_type: str, cache_control: str = "public, max-age=3600") -> str:
    if self.fail_uploads:
      raise RuntimeError("bucket unavailable")
    with open(local_path, "rb") as handle:
      self.objects[object_name] = handle.read()
    self.content_types[object_name] = content_type
    return self.public_url(object_name)

  async def download_to_file(self, object_name: str, local_path: str) -> None:
    if object_name not in self.objects:
      raise NotFound(f"No such object: {object_name}")
    with open(local_path, "wb") as handle:
      handle.write(self.objects[object_name])


class FakeImageModel:
  """Image model returning canned payloads and recording requests."""

  def __init__(self, payloads: list[bytes] | None = None) -> None:
    self.payloads = payloads if payloads is not None else [make_image_bytes(96, 96, mode="RGBA", color=(10, 20, 30, 255), format="PNG")]
    self.requests: list[ImageGenerationRequest] = []

  async def generate_image(self, request: ImageGenerationRequest) -> list[bytes]:
    self.requests.append(request)
    return list(self.payloads)


class FakeVideoModel:
  """Video model that replays a scripted sequence of operation states."""

  def __init__(self, operations: list[VideoOperation]) -> None:
    self._operations = list(operations)
    self.requests: list[VideoGenerationRequest] = []
    self.refreshes = 0

  async def start(self, request: VideoGenerationRequest) -> VideoOperation:
    self.requests.append(request)
    return self._next()

  async def refresh(self, operation: VideoOperation) -> VideoOperation:
    self.refreshes += 1
    return self._next()

  def _next(self) -> VideoOperation:
    # The last scripted state repeats forever.
    if len(self._operations) > 1:
      return self._operations.pop(0)
    return self._operations[0]


def capture_media(project_id: str = "p1", session_id: str = "s1") -> dict[str, Any]:
  path = f"projects/{project_id}/sessions/{session_id}/capture.jpg"
  return {"mediaAssetId": "capture-1", "url": f"{PUBLIC_HOST}/{TEST_BUCKET}/{path}", "filePath": path, "displayName": "Capture"}


def build_snapshot(outcome: dict[str, Any], *, responses: list[dict[str, Any]] | None = None, overlay: dict[str, Any] | None = None) -> JobSnapshot:
  if responses is None:
    responses = [{"stepId": "capture", "stepName": "Photo", "stepType": "capture.photo", "data": [capture_media()]}]
  return JobSnapshot.model_validate({"sessionResponses": responses, "outcome": outcome, "overlayChoice": overlay})


def build_job(snapshot: JobSnapshot, *, job_id: str = "job-1", project_id: str = "p1", session_id: str = "s1", status: str = "pending", attempts: int = 0) -> Job:
  created_at = now_ms()
  outcome_type = snapshot.outcome.type if snapshot.outcome else ""
  return Job(job_id=job_id, project_id=project_id, session_id=session_id, outcome_type=outcome_type, snapshot=snapshot, status=status, created_at=created_at, updated_at=created_at, attempts=attempts)


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def jobs_repo() -> InMemoryJobsRepository:
  return InMemoryJobsRepository()


@pytest.fixture
def sessions_repo() -> InMemorySessionsRepository:
  return InMemorySessionsRepository()


@pytest.fixture
def storage() -> FakeStorage:
  fake = FakeStorage()
  fake.objects["projects/p1/sessions/s1/capture.jpg"] = make_image_bytes(640, 480)
  return fake


@pytest.fixture
def tmp_work_dir(tmp_path) -> str:
  path = tmp_path / "work"
  path.mkdir()
  return os.fspath(path)


@pytest.fixture
def task_settings():
  """Settings with a known task secret."""
  return replace(get_settings(), task_secret="test-secret")


@pytest.fixture
async def async_client(task_settings):
  app.dependency_overrides[get_settings] = lambda: task_settings
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()
