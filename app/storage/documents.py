"""Firestore document codec for job records.

Documents use camelCase field names so guest-facing clients can read them
directly. Only this module knows that Firestore stores absent values as null.
"""

from __future__ import annotations

from typing import Any

from app.jobs.models import DEFAULT_DIMENSIONS, Job, JobError, JobOutput, JobProgress, MediaDimensions
from app.schema.snapshot import JobSnapshot


def output_to_document(output: JobOutput) -> dict[str, Any]:
  return {
    "assetId": output.asset_id,
    "url": output.url,
    "filePath": output.file_path,
    "format": output.format,
    "dimensions": {"width": output.dimensions.width, "height": output.dimensions.height},
    "sizeBytes": output.size_bytes,
    "completedAt": output.completed_at,
    "processingTimeMs": output.processing_time_ms,
    "thumbnailUrl": output.thumbnail_url,
  }


def output_from_document(data: dict[str, Any] | None) -> JobOutput | None:
  if not data:
    return None
  dimensions = data.get("dimensions") or {}
  return JobOutput(
    asset_id=str(data["assetId"]),
    url=str(data["url"]),
    file_path=str(data["filePath"]),
    format=data.get("format", "image"),
    dimensions=MediaDimensions(width=int(dimensions.get("width") or DEFAULT_DIMENSIONS.width), height=int(dimensions.get("height") or DEFAULT_DIMENSIONS.height)),
    size_bytes=int(data.get("sizeBytes", 0)),
    completed_at=int(data.get("completedAt", 0)),
    processing_time_ms=int(data.get("processingTimeMs", 0)),
    thumbnail_url=data.get("thumbnailUrl"),
  )


def error_to_document(error: JobError) -> dict[str, Any]:
  return {"code": error.code, "message": error.message, "step": error.step, "isRetryable": error.is_retryable, "timestamp": error.timestamp}


def error_from_document(data: dict[str, Any] | None) -> JobError | None:
  if not data:
    return None
  return JobError(code=str(data.get("code", "UNKNOWN")), message=str(data.get("message", "")), is_retryable=bool(data.get("isRetryable", False)), timestamp=int(data.get("timestamp", 0)), step=data.get("step"))


def progress_to_document(progress: JobProgress) -> dict[str, Any]:
  return {"phase": progress.phase, "percentage": progress.percentage, "message": progress.message, "timestamp": progress.timestamp}


def progress_from_document(job_id: str, data: dict[str, Any] | None) -> JobProgress | None:
  if not data:
    return None
  return JobProgress(job_id=job_id, phase=str(data.get("phase", "")), percentage=float(data.get("percentage", 0)), timestamp=int(data.get("timestamp", 0)), message=data.get("message"))


def job_to_document(job: Job) -> dict[str, Any]:
  """Encode a job as a Firestore document payload."""
  return {
    "id": job.job_id,
    "projectId": job.project_id,
    "sessionId": job.session_id,
    "experienceId": job.experience_id,
    "outcomeType": job.outcome_type,
    "status": job.status,
    "attempts": job.attempts,
    "snapshot": job.snapshot.model_dump(mode="json", by_alias=True),
    "progress": progress_to_document(job.progress) if job.progress else None,
    "output": output_to_document(job.output) if job.output else None,
    "error": error_to_document(job.error) if job.error else None,
    "metadata": dict(job.metadata),
    "createdAt": job.created_at,
    "updatedAt": job.updated_at,
    "startedAt": job.started_at,
    "completedAt": job.completed_at,
  }


def job_from_document(job_id: str, data: dict[str, Any]) -> Job:
  """Decode a Firestore job document into the domain model."""
  snapshot = JobSnapshot.model_validate(data.get("snapshot") or {})
  # Older documents carry the discriminator only inside the snapshot.
  outcome_type = data.get("outcomeType") or (snapshot.outcome.type if snapshot.outcome else "")
  return Job(
    job_id=str(data.get("id") or job_id),
    project_id=str(data.get("projectId", "")),
    session_id=str(data.get("sessionId", "")),
    outcome_type=str(outcome_type),
    snapshot=snapshot,
    status=data.get("status", "pending"),
    created_at=int(data.get("createdAt", 0)),
    updated_at=int(data.get("updatedAt", 0)),
    experience_id=data.get("experienceId"),
    attempts=int(data.get("attempts", 0)),
    started_at=data.get("startedAt"),
    completed_at=data.get("completedAt"),
    output=output_from_document(data.get("output")),
    error=error_from_document(data.get("error")),
    progress=progress_from_document(job_id, data.get("progress")),
    metadata=dict(data.get("metadata") or {}),
  )
