"""Job creation: persist a pending transform job and enqueue its task."""

import logging

from app.jobs.dispatch import KNOWN_OUTCOME_TYPES
from app.jobs.errors import InvalidInputError, PipelineError, build_job_error
from app.jobs.models import Job, now_ms
from app.schema.snapshot import JobSnapshot
from app.services.tasks.interface import TaskEnqueuer, TransformTaskPayload
from app.storage.jobs_repo import JobsRepository
from app.storage.sessions_repo import SessionsRepository
from app.utils.ids import generate_job_id

logger = logging.getLogger(__name__)


async def start_transform_job(
  *,
  project_id: str,
  session_id: str,
  snapshot: JobSnapshot,
  jobs_repo: JobsRepository,
  sessions_repo: SessionsRepository,
  enqueuer: TaskEnqueuer,
  experience_id: str | None = None,
  job_id: str | None = None,
) -> Job:
  """Create a pending job for a session and hand it to the task queue.

  Guest authentication and experience validation happen before this call.
  When enqueueing fails the job is failed immediately so guests are not left
  polling a job nobody will run, and the error is re-raised.
  """
  if snapshot.outcome is None:
    raise InvalidInputError("Job snapshot has no outcome configuration", step="create")
  outcome_type = snapshot.outcome.type
  if outcome_type not in KNOWN_OUTCOME_TYPES:
    raise InvalidInputError(f"Unknown outcome type: {outcome_type}", step="create")

  created_at = now_ms()
  job = Job(job_id=job_id or generate_job_id(), project_id=project_id, session_id=session_id, outcome_type=outcome_type, snapshot=snapshot, status="pending", created_at=created_at, updated_at=created_at, experience_id=experience_id)
  await jobs_repo.create(job)
  await sessions_repo.update_job_status(project_id, session_id, job.job_id, "pending")
  logger.info("Created job %s outcome=%s session=%s project=%s", job.job_id, outcome_type, session_id, project_id)

  try:
    await enqueuer.enqueue_transform(TransformTaskPayload(job_id=job.job_id, session_id=session_id, project_id=project_id))
  except Exception as exc:
    logger.error("Failed to enqueue job %s; marking it failed.", job.job_id, exc_info=True)
    error = build_job_error(PipelineError(f"Enqueue failed: {exc}", step="enqueue"))
    await jobs_repo.finalize_failure(project_id, job.job_id, error)
    await sessions_repo.update_job_status(project_id, session_id, job.job_id, "failed")
    raise

  return job
