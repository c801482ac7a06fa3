"""Provider-neutral contracts for image and video generation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class ImageInput:
  """An input image already stored in the bucket, addressed by gs:// URI."""

  gcs_uri: str
  label: str | None = None
  mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class ImageGenerationRequest:
  prompt: str
  model: str
  aspect_ratio: str
  images: list[ImageInput] = field(default_factory=list)


@dataclass(frozen=True)
class VideoGenerationRequest:
  """Veo request; ``image`` is the start frame, ``reference_images`` are asset references."""

  prompt: str
  model: str
  aspect_ratio: str
  duration_seconds: int
  output_gcs_uri: str
  image: ImageInput | None = None
  reference_images: list[ImageInput] = field(default_factory=list)


@dataclass(frozen=True)
class GeneratedVideo:
  uri: str | None = None
  video_bytes: bytes | None = None


@dataclass(frozen=True)
class VideoOperation:
  """Snapshot of a long-running video generation."""

  name: str
  done: bool
  error_message: str | None = None
  videos: list[GeneratedVideo] = field(default_factory=list)
  # Provider handle needed to refresh the operation.
  raw: Any = None


class ImageModel(Protocol):
  """Image generation capability."""

  async def generate_image(self, request: ImageGenerationRequest) -> list[bytes]:
    """Return the generated image payloads; an empty list means everything was filtered."""


class VideoModel(Protocol):
  """Long-running video generation capability."""

  async def start(self, request: VideoGenerationRequest) -> VideoOperation:
    """Submit a generation request."""

  async def refresh(self, operation: VideoOperation) -> VideoOperation:
    """Fetch the latest state of a submitted operation."""
