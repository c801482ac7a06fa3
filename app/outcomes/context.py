"""Execution context handed to outcome executors."""

from __future__ import annotations

from dataclasses import dataclass

from app.jobs.models import Job
from app.jobs.progress import ProgressCallback
from app.schema.snapshot import JobSnapshot


@dataclass(frozen=True)
class OutcomeContext:
  """Everything an executor may use; it never touches job or session documents."""

  job: Job
  snapshot: JobSnapshot
  # Epoch milliseconds when the orchestrator began this attempt.
  start_time: int
  # Owned and removed by the orchestrator.
  tmp_dir: str
  report_progress: ProgressCallback | None = None

  async def progress(self, phase: str, percentage: float, message: str | None = None) -> None:
    if self.report_progress is not None:
      await self.report_progress(phase, percentage, message)
