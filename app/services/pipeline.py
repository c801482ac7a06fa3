"""Process-wide wiring of the transform pipeline task."""

from __future__ import annotations

from functools import lru_cache

from app.ai.providers.gemini import GeminiImageModel, VeoVideoModel
from app.config import get_settings
from app.jobs.dispatch import build_default_registry
from app.jobs.worker import TransformPipelineTask
from app.services.storage_client import build_storage_client
from app.storage.factory import get_jobs_repo, get_sessions_repo


@lru_cache(maxsize=1)
def get_transform_pipeline_task() -> TransformPipelineTask:
  """Build the task once per process; the executor registry is immutable after this."""
  settings = get_settings()
  project = settings.gcp_project_id or settings.firebase_project_id
  registry = build_default_registry(
    storage=build_storage_client(settings),
    image_model=GeminiImageModel(project=project, location=settings.vertex_location),
    video_model=VeoVideoModel(project=project, location=settings.veo_location),
    settings=settings,
  )
  return TransformPipelineTask(jobs_repo=get_jobs_repo(), sessions_repo=get_sessions_repo(), registry=registry, max_attempts=settings.task_max_attempts)
