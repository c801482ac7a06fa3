"""Transform pipeline task: runs one job delivery through its lifecycle.

pending -> running -> succeeded | failed. Terminal jobs are never touched
again, so a re-delivered task message is acknowledged without re-running the
executor. Retryable failures leave the job running and ask the queue for
another delivery until the attempt ceiling is reached.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from app.jobs.dispatch import NOT_IMPLEMENTED, OutcomeRegistry
from app.jobs.errors import ConfigurationError, PipelineError, build_job_error, classify_exception
from app.jobs.models import Job, JobOutput, JobStatus, now_ms
from app.jobs.progress import JobProgressReporter
from app.outcomes.context import OutcomeContext
from app.schema.media import MediaReference
from app.storage.jobs_repo import JobsRepository
from app.storage.sessions_repo import SessionJobStatus, SessionsRepository
from app.utils.temp_dir import scoped_temp_dir

RESULT_DISPLAY_NAME = "Result"

TaskAction = Literal["acknowledged", "retry"]


@dataclass(frozen=True)
class TaskResult:
  """What the queue should do with the delivery."""

  action: TaskAction
  status: JobStatus | None
  reason: str

  @property
  def should_retry(self) -> bool:
    return self.action == "retry"


class TransformPipelineTask:
  """Coordinates execution of one transform job delivery."""

  def __init__(self, *, jobs_repo: JobsRepository, sessions_repo: SessionsRepository, registry: OutcomeRegistry, max_attempts: int) -> None:
    self._jobs_repo = jobs_repo
    self._sessions_repo = sessions_repo
    self._registry = registry
    self._max_attempts = max_attempts
    self._logger = logging.getLogger(__name__)

  async def run(self, *, project_id: str, session_id: str, job_id: str, queue_retry_count: int = 0) -> TaskResult:
    """Process a single delivery of the task message for ``job_id``.

    ``queue_retry_count`` is the queue's own count of earlier deliveries. It
    also covers deliveries that never reached the running transition, so the
    final delivery is recognized even when the job's ``attempts`` lags behind.
    """
    try:
      return await self._run(project_id, session_id, job_id, queue_retry_count)
    except Exception as exc:
      if not self._is_final_delivery(0, queue_retry_count):
        raise
      return await self._give_up(project_id, session_id, job_id, exc)

  async def _run(self, project_id: str, session_id: str, job_id: str, queue_retry_count: int) -> TaskResult:
    job = await self._jobs_repo.get(project_id, job_id)
    if job is None:
      self._logger.error("Job %s not found in project %s; acknowledging.", job_id, project_id)
      return TaskResult(action="acknowledged", status=None, reason="job_not_found")

    # Duplicate delivery of a finished job.
    if job.is_terminal:
      self._logger.info("Job %s already %s; skipping.", job_id, job.status)
      return TaskResult(action="acknowledged", status=job.status, reason="already_terminal")

    if job.status == "running":
      self._logger.warning("Recovering job %s left running by an earlier attempt (attempts=%s).", job_id, job.attempts)

    running = await self._jobs_repo.transition_to_running(project_id, job_id)
    if running is None:
      self._logger.info("Job %s became terminal before it could start; skipping.", job_id)
      return TaskResult(action="acknowledged", status=None, reason="already_terminal")

    self._logger.info("Job %s running attempt=%s queue_retry=%s outcome=%s session=%s", job_id, running.attempts, queue_retry_count, running.outcome_type, session_id)
    await self._mirror_session_status(project_id, session_id, job_id, "running")

    reporter = JobProgressReporter(project_id=project_id, job_id=job_id, jobs_repo=self._jobs_repo, initial_percentage=running.progress.percentage if running.progress else 0.0)
    await reporter("processing", 20, "Processing outcome...")

    async with scoped_temp_dir(job_id) as tmp_dir:
      executor = self._registry.resolve(running.outcome_type)
      if executor is NOT_IMPLEMENTED:
        error = ConfigurationError(f"No executor registered for outcome type {running.outcome_type!r}", step="dispatch")
        self._logger.error("Job %s has unsupported outcome type %s; failing without retry.", job_id, running.outcome_type)
        return await self._finalize_failure(running, error)

      ctx = OutcomeContext(job=running, snapshot=running.snapshot, start_time=now_ms(), tmp_dir=tmp_dir, report_progress=reporter)
      try:
        output = await executor.execute(ctx)
      except Exception as exc:  # noqa: BLE001
        return await self._handle_failure(running, exc, reporter, queue_retry_count)

    await reporter("finalizing", 90, "Finalizing result...")
    return await self._finalize_success(running, output)

  def _is_final_delivery(self, attempts: int, queue_retry_count: int) -> bool:
    return max(attempts, queue_retry_count + 1) >= self._max_attempts

  async def _handle_failure(self, job: Job, exc: Exception, reporter: JobProgressReporter, queue_retry_count: int) -> TaskResult:
    error = classify_exception(exc, step="outcome")
    if not error.retryable:
      self._logger.error("Job %s failed terminally code=%s step=%s: %s", job.job_id, error.code, error.step, error, exc_info=exc)
      return await self._finalize_failure(job, error)

    if self._is_final_delivery(job.attempts, queue_retry_count):
      self._logger.error("Job %s exhausted %s attempts (queue_retry=%s); last error code=%s: %s", job.job_id, job.attempts, queue_retry_count, error.code, error, exc_info=exc)
      return await self._finalize_failure(job, error, code="MAX_ATTEMPTS_EXCEEDED")

    # Guests keep seeing the job as running while the queue re-delivers.
    self._logger.warning("Job %s attempt %s/%s failed with retryable %s: %s", job.job_id, job.attempts, self._max_attempts, error.code, error, exc_info=exc)
    await reporter("retrying", reporter.last_percentage, "Still working on it...")
    return TaskResult(action="retry", status="running", reason=error.code)

  async def _give_up(self, project_id: str, session_id: str, job_id: str, exc: Exception) -> TaskResult:
    """Fail the job when the last delivery breaks outside the executor."""
    error = classify_exception(exc, step="orchestrator")
    self._logger.error("Job %s failed on its final delivery outside the executor code=%s: %s", job_id, error.code, error, exc_info=exc)
    job_error = build_job_error(error, code="MAX_ATTEMPTS_EXCEEDED")
    finalized = await self._jobs_repo.finalize_failure(project_id, job_id, job_error)
    if finalized is None:
      return TaskResult(action="acknowledged", status=None, reason="already_terminal")

    await self._mirror_session_status(project_id, session_id, job_id, "failed")
    return TaskResult(action="acknowledged", status="failed", reason=job_error.code)

  async def _finalize_failure(self, job: Job, error: PipelineError, *, code: str | None = None) -> TaskResult:
    job_error = build_job_error(error, code=code)
    finalized = await self._jobs_repo.finalize_failure(job.project_id, job.job_id, job_error)
    if finalized is None:
      self._logger.warning("Job %s was already terminal; failure %s not recorded.", job.job_id, job_error.code)
      return TaskResult(action="acknowledged", status=None, reason="already_terminal")

    await self._mirror_session_status(job.project_id, job.session_id, job.job_id, "failed")
    return TaskResult(action="acknowledged", status="failed", reason=job_error.code)

  async def _finalize_success(self, job: Job, output: JobOutput) -> TaskResult:
    finalized = await self._jobs_repo.finalize_success(job.project_id, job.job_id, output)
    if finalized is None:
      self._logger.warning("Job %s was already terminal; output %s not recorded.", job.job_id, output.file_path)
      return TaskResult(action="acknowledged", status=None, reason="already_terminal")

    self._logger.info("Job %s succeeded format=%s processing_ms=%s url=%s", job.job_id, output.format, output.processing_time_ms, output.url)

    # The job is the source of truth; a failed projection only delays what the share page shows.
    result_media = MediaReference(media_asset_id=output.asset_id, url=output.url, file_path=output.file_path, display_name=RESULT_DISPLAY_NAME)
    try:
      await self._sessions_repo.update_result_media(job.project_id, job.session_id, result_media)
    except Exception:  # noqa: BLE001
      self._logger.error("Failed to update resultMedia for job=%s session=%s project=%s", job.job_id, job.session_id, job.project_id, exc_info=True)

    await self._mirror_session_status(job.project_id, job.session_id, job.job_id, "completed")
    return TaskResult(action="acknowledged", status="succeeded", reason="succeeded")

  async def _mirror_session_status(self, project_id: str, session_id: str, job_id: str, status: SessionJobStatus) -> None:
    try:
      await self._sessions_repo.update_job_status(project_id, session_id, job_id, status)
    except Exception as exc:  # noqa: BLE001
      self._logger.warning("Failed to mirror job %s status %s onto session %s: %s", job_id, status, session_id, exc)
