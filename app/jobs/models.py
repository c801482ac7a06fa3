"""Domain models for asynchronous transform pipeline jobs."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Literal

from app.schema.snapshot import JobSnapshot

JobStatus = Literal["pending", "running", "succeeded", "failed"]
OutputFormat = Literal["image", "video"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"succeeded", "failed"})


def now_ms() -> int:
  """Return the current wall-clock time in epoch milliseconds."""
  return int(time.time() * 1000)


@dataclass(frozen=True)
class MediaDimensions:
  """Pixel dimensions of a produced asset."""

  width: int
  height: int

  def __post_init__(self) -> None:
    if self.width <= 0 or self.height <= 0:
      raise ValueError(f"Dimensions must be positive, got {self.width}x{self.height}.")


# Placeholder used when a caller cannot measure the asset.
DEFAULT_DIMENSIONS = MediaDimensions(width=1024, height=1024)


@dataclass(frozen=True)
class JobOutput:
  """Immutable result of a successful outcome execution."""

  asset_id: str
  url: str
  file_path: str
  format: OutputFormat
  dimensions: MediaDimensions
  size_bytes: int
  completed_at: int
  processing_time_ms: int
  thumbnail_url: str | None = None


@dataclass(frozen=True)
class JobProgress:
  """In-flight progress update written while a job runs."""

  job_id: str
  phase: str
  percentage: float
  timestamp: int
  message: str | None = None


@dataclass(frozen=True)
class JobError:
  """Sanitized failure detail stored on a failed job."""

  code: str
  message: str
  is_retryable: bool
  timestamp: int
  step: str | None = None


@dataclass
class Job:
  """One unit of asynchronous transform work tied to a guest session."""

  job_id: str
  project_id: str
  session_id: str
  outcome_type: str
  snapshot: JobSnapshot
  status: JobStatus
  created_at: int
  updated_at: int
  experience_id: str | None = None
  attempts: int = 0
  started_at: int | None = None
  completed_at: int | None = None
  output: JobOutput | None = None
  error: JobError | None = None
  progress: JobProgress | None = None
  metadata: dict[str, Any] = field(default_factory=dict)

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_STATUSES
