"""Source media lookup and output sizing shared by the executors."""

from __future__ import annotations

from typing import Any

from google.api_core.exceptions import NotFound
from pydantic import ValidationError

from app.jobs.errors import InvalidInputError, StorageError
from app.jobs.models import DEFAULT_DIMENSIONS, JobOutput, MediaDimensions, OutputFormat, now_ms
from app.outcomes.context import OutcomeContext
from app.schema.media import MediaReference
from app.schema.snapshot import SessionResponse
from app.services.outputs import UploadedOutput
from app.services.storage_client import StorageClient
from app.utils.ids import output_asset_id

# Default Gemini output sizes per aspect ratio.
IMAGE_DIMENSIONS: dict[str, MediaDimensions] = {
  "1:1": MediaDimensions(1024, 1024),
  "3:2": MediaDimensions(1536, 1024),
  "2:3": MediaDimensions(1024, 1536),
  "16:9": MediaDimensions(1792, 1024),
  "9:16": MediaDimensions(1024, 1792),
}

# Veo renders 720p.
VIDEO_DIMENSIONS: dict[str, MediaDimensions] = {
  "16:9": MediaDimensions(1280, 720),
  "9:16": MediaDimensions(720, 1280),
}


def image_dimensions_for(aspect_ratio: str) -> MediaDimensions:
  return IMAGE_DIMENSIONS.get(aspect_ratio, DEFAULT_DIMENSIONS)


def video_dimensions_for(aspect_ratio: str) -> MediaDimensions:
  return VIDEO_DIMENSIONS.get(aspect_ratio, VIDEO_DIMENSIONS["9:16"])


def _as_media_reference(raw: Any) -> MediaReference | None:
  if isinstance(raw, MediaReference):
    return raw
  if not isinstance(raw, dict):
    return None
  try:
    return MediaReference.model_validate(raw)
  except ValidationError:
    return None


def get_source_media(responses: list[SessionResponse], capture_step_id: str) -> MediaReference:
  """Return the first media reference captured by ``capture_step_id``."""
  response = next((r for r in responses if r.step_id == capture_step_id), None)
  if response is None:
    raise InvalidInputError(f"Capture step not found: {capture_step_id}", step="source_media")

  if not isinstance(response.data, list) or not response.data:
    raise InvalidInputError(f"Capture step has no media: {response.step_name}", step="source_media")

  media = _as_media_reference(response.data[0])
  if media is None:
    raise InvalidInputError(f"Capture step has invalid media reference: {response.step_name}", step="source_media")
  return media


def storage_path_for_media(storage: StorageClient, media: MediaReference) -> str:
  """Resolve the bucket object path behind a media reference."""
  if media.file_path:
    return media.file_path
  object_name = storage.object_name_from_url(media.url)
  if not object_name:
    raise InvalidInputError(f"Cannot resolve storage path for media {media.media_asset_id}", step="source_media")
  return object_name


async def download_media(storage: StorageClient, media: MediaReference, local_path: str) -> str:
  """Download a referenced asset into the temp dir and return the local path."""
  object_name = storage_path_for_media(storage, media)
  try:
    await storage.download_to_file(object_name, local_path)
  except NotFound as exc:
    raise InvalidInputError(f"Media {media.media_asset_id} not found at {object_name}", step="download") from exc
  except Exception as exc:
    raise StorageError(f"Failed to download {object_name}: {exc}", step="download") from exc
  return local_path


def build_job_output(ctx: OutcomeContext, uploaded: UploadedOutput, *, format: OutputFormat, dimensions: MediaDimensions) -> JobOutput:
  """Assemble the immutable output record for an uploaded asset."""
  completed_at = now_ms()
  return JobOutput(
    asset_id=output_asset_id(ctx.job.session_id),
    url=uploaded.url,
    file_path=uploaded.file_path,
    format=format,
    dimensions=dimensions,
    size_bytes=uploaded.size_bytes,
    completed_at=completed_at,
    processing_time_ms=max(completed_at - ctx.start_time, 0),
    thumbnail_url=uploaded.thumbnail_url,
  )
