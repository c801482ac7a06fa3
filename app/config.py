"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class Settings:
  """Typed settings for the transform pipeline service."""

  environment: str
  debug: bool
  log_dir: str | None
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  storage_bucket: str
  gcs_storage_host: str | None
  gcp_project_id: str | None
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  vertex_location: str
  veo_location: str
  video_poll_interval_seconds: float
  video_poll_timeout_seconds: float
  task_deadline_seconds: int
  task_max_attempts: int
  task_secret: str | None
  task_service_provider: str
  cloud_tasks_queue_path: str | None
  cloud_tasks_service_account: str | None
  base_url: str | None


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("CLEMENTINE_ENV", "development").lower()
  debug = _parse_bool(os.getenv("CLEMENTINE_DEBUG"))

  log_max_bytes = int(os.getenv("CLEMENTINE_LOG_MAX_BYTES", "5242880"))  # 5MB default
  if log_max_bytes <= 0:
    raise ValueError("CLEMENTINE_LOG_MAX_BYTES must be a positive integer.")

  log_backup_count = int(os.getenv("CLEMENTINE_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("CLEMENTINE_LOG_BACKUP_COUNT must be zero or a positive integer.")

  video_poll_interval_seconds = float(os.getenv("CLEMENTINE_VIDEO_POLL_INTERVAL_SECONDS", "15"))
  if video_poll_interval_seconds <= 0:
    raise ValueError("CLEMENTINE_VIDEO_POLL_INTERVAL_SECONDS must be positive.")

  video_poll_timeout_seconds = float(os.getenv("CLEMENTINE_VIDEO_POLL_TIMEOUT_SECONDS", "300"))
  task_deadline_seconds = int(os.getenv("CLEMENTINE_TASK_DEADLINE_SECONDS", "540"))
  # The executor must time out on its own before Cloud Tasks kills the request.
  if video_poll_timeout_seconds >= task_deadline_seconds:
    raise ValueError("CLEMENTINE_VIDEO_POLL_TIMEOUT_SECONDS must be lower than CLEMENTINE_TASK_DEADLINE_SECONDS.")

  task_max_attempts = int(os.getenv("CLEMENTINE_TASK_MAX_ATTEMPTS", "3"))
  if task_max_attempts < 1:
    raise ValueError("CLEMENTINE_TASK_MAX_ATTEMPTS must be at least 1.")

  return Settings(
    environment=environment,
    debug=debug,
    log_dir=_optional_str(os.getenv("CLEMENTINE_LOG_DIR")),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("CLEMENTINE_LOG_HTTP_4XX")),
    storage_bucket=os.getenv("CLEMENTINE_STORAGE_BUCKET", "clementine-media"),
    gcs_storage_host=_optional_str(os.getenv("GCS_STORAGE_HOST")),
    gcp_project_id=_optional_str(os.getenv("GCP_PROJECT_ID")),
    firebase_project_id=_optional_str(os.getenv("FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
    vertex_location=os.getenv("CLEMENTINE_VERTEX_LOCATION", "us-central1"),
    veo_location=os.getenv("CLEMENTINE_VEO_LOCATION", "us-central1"),
    video_poll_interval_seconds=video_poll_interval_seconds,
    video_poll_timeout_seconds=video_poll_timeout_seconds,
    task_deadline_seconds=task_deadline_seconds,
    task_max_attempts=task_max_attempts,
    task_secret=_optional_str(os.getenv("CLEMENTINE_TASK_SECRET")),
    task_service_provider=os.getenv("CLEMENTINE_TASK_SERVICE_PROVIDER", "local-http").lower(),
    cloud_tasks_queue_path=_optional_str(os.getenv("CLEMENTINE_CLOUD_TASKS_QUEUE_PATH")),
    cloud_tasks_service_account=_optional_str(os.getenv("CLEMENTINE_CLOUD_TASKS_SERVICE_ACCOUNT")),
    base_url=_optional_str(os.getenv("CLEMENTINE_BASE_URL")),
  )
