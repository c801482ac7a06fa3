from __future__ import annotations

from app.config import Settings
from app.services.tasks.gcp import CloudTasksEnqueuer
from app.services.tasks.interface import TaskEnqueuer
from app.services.tasks.local import LocalHttpEnqueuer


def get_task_enqueuer(settings: Settings) -> TaskEnqueuer:
  """Return the transform task enqueuer for the configured provider."""
  provider = settings.task_service_provider
  if provider == "gcp":
    return CloudTasksEnqueuer(settings)
  if provider == "local-http":
    return LocalHttpEnqueuer(settings)
  raise ValueError(f"Unsupported task service provider: {provider!r}")
