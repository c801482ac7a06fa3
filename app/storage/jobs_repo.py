"""Storage interfaces for transform pipeline jobs."""

from __future__ import annotations

from typing import Protocol

from app.jobs.models import Job, JobError, JobOutput, JobProgress


class JobsRepository(Protocol):
  """Repository contract for job persistence.

  Every transition is a single atomic document write guarded by the current
  status, so a stale re-delivery can never move a terminal job backwards.
  """

  async def create(self, job: Job) -> None:
    """Persist an initial pending job."""

  async def get(self, project_id: str, job_id: str) -> Job | None:
    """Fetch a job by identifier."""

  async def transition_to_running(self, project_id: str, job_id: str) -> Job | None:
    """Mark the job running and increment attempts; return None when missing or terminal."""

  async def finalize_success(self, project_id: str, job_id: str, output: JobOutput) -> Job | None:
    """Set the output and mark succeeded; return None when the job is already terminal."""

  async def finalize_failure(self, project_id: str, job_id: str, error: JobError) -> Job | None:
    """Set the error and mark failed; return None when the job is already terminal."""

  async def record_progress(self, project_id: str, job_id: str, progress: JobProgress) -> None:
    """Overwrite the in-flight progress; ignored once the job is terminal."""
