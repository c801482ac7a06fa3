"""Failure taxonomy for the transform pipeline.

Executors raise; the orchestrator is the only place that turns an exception
into a retry decision or a persisted ``JobError``.
"""

from __future__ import annotations

import asyncio
import logging

from google.genai import errors as genai_errors

from app.jobs.models import JobError, now_ms

logger = logging.getLogger(__name__)

# Client-safe messages keyed by error code so prompts and configs never leak to guests.
SANITIZED_ERROR_MESSAGES: dict[str, str] = {
  "INVALID_INPUT": "The request could not be processed due to invalid input.",
  "PROCESSING_FAILED": "An error occurred while processing your request.",
  "AI_MODEL_ERROR": "The AI service is temporarily unavailable.",
  "SAFETY_FILTERED": "We couldn't generate a result for this photo. Please try again.",
  "STORAGE_ERROR": "Unable to save the result. Please try again.",
  "TIMEOUT": "Processing took too long and was cancelled.",
  "CONFIGURATION_ERROR": "This experience is not available right now.",
  "MAX_ATTEMPTS_EXCEEDED": "An error occurred while processing your request.",
  "UNKNOWN": "An unexpected error occurred.",
}


class PipelineError(Exception):
  """Base class for classified pipeline failures."""

  code = "PROCESSING_FAILED"
  retryable = False
  # When True the raw message is meant for guests and is stored as-is.
  expose_message = False

  def __init__(self, message: str, *, code: str | None = None, step: str | None = None) -> None:
    super().__init__(message)
    if code is not None:
      self.code = code
    self.step = step

  @property
  def guest_message(self) -> str:
    if self.expose_message:
      return str(self)
    return SANITIZED_ERROR_MESSAGES.get(self.code, SANITIZED_ERROR_MESSAGES["UNKNOWN"])


class ConfigurationError(PipelineError):
  """Operator-facing defect such as an outcome type with no executor."""

  code = "CONFIGURATION_ERROR"


class InvalidInputError(PipelineError):
  """The job input can never succeed (missing capture, empty prompt, unsupported task)."""

  code = "INVALID_INPUT"


class TerminalGenerationError(PipelineError):
  """The generation provider rejected the request permanently."""

  code = "AI_MODEL_ERROR"


class SafetyFilteredError(TerminalGenerationError):
  """All candidates were removed by the provider's safety policy."""

  code = "SAFETY_FILTERED"
  expose_message = True


class RetryableGenerationError(PipelineError):
  """A transient provider failure worth another delivery."""

  code = "AI_MODEL_ERROR"
  retryable = True


class GenerationTimeoutError(RetryableGenerationError):
  """The provider did not finish before the executor's polling ceiling."""

  code = "TIMEOUT"


class UnexpectedError(PipelineError):
  """Unclassified failure; retried until the attempt ceiling is reached."""

  retryable = True


class StorageError(PipelineError):
  """Object storage read or write failed."""

  code = "STORAGE_ERROR"
  retryable = True


def classify_exception(exc: BaseException, *, step: str | None = None) -> PipelineError:
  """Map any exception raised by an executor onto the pipeline taxonomy."""
  if isinstance(exc, PipelineError):
    return exc

  # Provider errors carry an HTTP status; rate limits and server faults are transient.
  if isinstance(exc, genai_errors.APIError):
    status_code = int(getattr(exc, "code", 0) or 0)
    if status_code == 429 or status_code >= 500:
      return RetryableGenerationError(f"Provider error {status_code}: {exc}", step=step)
    return InvalidInputError(f"Provider rejected request {status_code}: {exc}", step=step)

  if isinstance(exc, TimeoutError | asyncio.TimeoutError):
    return GenerationTimeoutError(str(exc) or "Operation timed out", step=step)

  # Unknown failures are treated as transient and bounded by the attempt ceiling.
  return UnexpectedError(f"{type(exc).__name__}: {exc}", step=step)


def build_job_error(error: PipelineError, *, code: str | None = None) -> JobError:
  """Build the persisted failure detail for a classified error."""
  resolved_code = code or error.code
  if code is not None and code != error.code:
    message = SANITIZED_ERROR_MESSAGES.get(resolved_code, SANITIZED_ERROR_MESSAGES["UNKNOWN"])
  else:
    message = error.guest_message
  return JobError(code=resolved_code, message=message, step=error.step, is_retryable=False, timestamp=now_ms())
