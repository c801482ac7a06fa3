"""Job snapshot schema: session responses and outcome configuration frozen at job creation."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.schema.media import MediaReference


class _SnapshotModel(BaseModel):
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SessionResponse(_SnapshotModel):
  """One guest answer or capture recorded against an experience step."""

  step_id: str
  step_name: str = ""
  step_type: str = ""
  # Strings, multi-select option lists, media reference lists, or null.
  data: Any = None


class PhotoOutcomeConfig(_SnapshotModel):
  capture_step_id: str
  aspect_ratio: str = "1:1"


class AIImageOutcomeConfig(_SnapshotModel):
  capture_step_id: str | None = None
  aspect_ratio: str = "1:1"
  prompt: str = ""
  model: str = "gemini-2.5-flash-image"
  ref_media: list[MediaReference] = Field(default_factory=list)


class AIVideoOutcomeConfig(_SnapshotModel):
  task: str = "image-to-video"
  capture_step_id: str
  aspect_ratio: str = "9:16"
  prompt: str = ""
  model: str = "veo-3.1-fast-generate-001"
  duration: int = Field(default=6, ge=4, le=8)
  ref_media: list[MediaReference] = Field(default_factory=list)


class OutcomeConfig(_SnapshotModel):
  """Outcome discriminator plus the configuration block for the active type."""

  type: str
  photo: PhotoOutcomeConfig | None = None
  ai_image: AIImageOutcomeConfig | None = None
  ai_video: AIVideoOutcomeConfig | None = None


class JobSnapshot(_SnapshotModel):
  """Immutable inputs captured when the job was created."""

  session_responses: list[SessionResponse] = Field(default_factory=list)
  outcome: OutcomeConfig | None = None
  overlay_choice: MediaReference | None = None
  experience_version: int = 1
