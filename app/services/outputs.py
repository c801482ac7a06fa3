"""Storage adapter for pipeline outputs.

Destination paths are derived only from project, session, purpose and
extension so a retried upload overwrites the same object instead of leaving
orphans behind.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from starlette.concurrency import run_in_threadpool

from app.jobs.errors import StorageError
from app.jobs.models import DEFAULT_DIMENSIONS, MediaDimensions, OutputFormat
from app.services.images import write_thumbnail
from app.services.storage_client import StorageClient

logger = logging.getLogger(__name__)

_CONTENT_TYPES = {"jpg": "image/jpeg", "jpeg": "image/jpeg", "png": "image/png", "webp": "image/webp", "gif": "image/gif", "mp4": "video/mp4"}


@dataclass(frozen=True)
class UploadedOutput:
  """Where an uploaded output now lives."""

  url: str
  file_path: str
  size_bytes: int
  thumbnail_url: str | None = None


def output_storage_path(project_id: str, session_id: str, purpose: str, extension: str) -> str:
  """Return the deterministic object path for a session output."""
  return f"projects/{project_id}/sessions/{session_id}/{purpose}.{extension.lstrip('.').lower()}"


def content_type_for(extension: str) -> str:
  return _CONTENT_TYPES.get(extension.lstrip(".").lower(), "application/octet-stream")


async def upload_output(
  storage: StorageClient,
  *,
  local_path: str,
  project_id: str,
  session_id: str,
  temp_dir: str,
  format: OutputFormat = "image",
  dimensions: MediaDimensions = DEFAULT_DIMENSIONS,
  extension: str = "jpg",
  purpose: str = "output",
  with_thumbnail: bool = False,
) -> UploadedOutput:
  """Upload a local file to its deterministic output path and return the public URL.

  When ``with_thumbnail`` is set and the output is an image, a 300px JPEG
  thumbnail is rendered into ``temp_dir`` and uploaded next to it.
  """
  file_path = output_storage_path(project_id, session_id, purpose, extension)
  try:
    size_bytes = os.path.getsize(local_path)
  except OSError as exc:
    raise StorageError(f"Failed to read output file {local_path}: {exc}", step="upload") from exc
  try:
    url = await storage.upload_file(local_path, file_path, content_type=content_type_for(extension))
  except Exception as exc:
    raise StorageError(f"Failed to upload {file_path}: {exc}", step="upload") from exc

  logger.info("Uploaded %s output to %s (%d bytes, %dx%d)", format, file_path, size_bytes, dimensions.width, dimensions.height)

  thumbnail_url = None
  if with_thumbnail and format == "image":
    thumb_local = os.path.join(temp_dir, "thumb.jpg")
    thumb_path = output_storage_path(project_id, session_id, "thumb", "jpg")
    try:
      await run_in_threadpool(write_thumbnail, local_path, thumb_local)
      thumbnail_url = await storage.upload_file(thumb_local, thumb_path, content_type="image/jpeg")
    except Exception as exc:
      raise StorageError(f"Failed to upload thumbnail {thumb_path}: {exc}", step="thumbnail") from exc

  return UploadedOutput(url=url, file_path=file_path, size_bytes=size_bytes, thumbnail_url=thumbnail_url)
