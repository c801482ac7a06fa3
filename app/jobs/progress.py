"""Job progress tracking for long-running outcomes."""

from __future__ import annotations

import logging
from typing import Protocol

from app.jobs.models import JobProgress, now_ms
from app.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)


class ProgressCallback(Protocol):
  """Callable handed to executors for in-flight updates."""

  async def __call__(self, phase: str, percentage: float, message: str | None = None) -> None: ...


class JobProgressReporter:
  """Forward executor progress to the job repository.

  Percentages are clamped to 0-100 and never move backwards. Seed
  ``initial_percentage`` with the stored progress so a re-delivered job
  resumes where the previous attempt left the bar. Writes are best effort: a
  failed progress write is logged and never fails the job.
  """

  def __init__(self, *, project_id: str, job_id: str, jobs_repo: JobsRepository, initial_percentage: float = 0.0) -> None:
    self._project_id = project_id
    self._job_id = job_id
    self._jobs_repo = jobs_repo
    self._last_percentage = min(max(float(initial_percentage), 0.0), 100.0)

  @property
  def last_percentage(self) -> float:
    return self._last_percentage

  async def __call__(self, phase: str, percentage: float, message: str | None = None) -> None:
    clamped = min(max(float(percentage), 0.0), 100.0)
    # Late or out-of-order reports keep the highest value seen so far.
    clamped = max(clamped, self._last_percentage)
    self._last_percentage = clamped
    progress = JobProgress(job_id=self._job_id, phase=phase, percentage=round(clamped, 2), timestamp=now_ms(), message=message)
    try:
      await self._jobs_repo.record_progress(self._project_id, self._job_id, progress)
    except Exception as exc:  # noqa: BLE001
      logger.warning("Failed to record progress for job %s phase=%s: %s", self._job_id, phase, exc)
