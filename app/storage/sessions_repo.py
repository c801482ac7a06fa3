"""Storage interface for the session fields owned by the transform pipeline."""

from __future__ import annotations

from typing import Literal, Protocol

from app.schema.media import MediaReference

SessionJobStatus = Literal["pending", "running", "completed", "failed"]


class SessionsRepository(Protocol):
  """Repository contract for session result and job-status writes."""

  async def update_result_media(self, project_id: str, session_id: str, media: MediaReference) -> None:
    """Write the session result in the standard media reference shape."""

  async def get_result_media(self, project_id: str, session_id: str) -> MediaReference | None:
    """Read the session result, normalizing legacy records."""

  async def update_job_status(self, project_id: str, session_id: str, job_id: str, status: SessionJobStatus) -> None:
    """Mirror the job lifecycle onto the session document."""
