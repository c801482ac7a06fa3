"""Branded overlay compositing for image outputs."""

from __future__ import annotations

import logging
import os

from starlette.concurrency import run_in_threadpool

from app.jobs.errors import InvalidInputError
from app.outcomes.context import OutcomeContext
from app.outcomes.media import download_media
from app.services.images import apply_overlay
from app.services.storage_client import StorageClient

logger = logging.getLogger(__name__)


async def apply_overlay_choice(storage: StorageClient, ctx: OutcomeContext, image_path: str) -> str:
  """Composite the overlay chosen at job creation; returns the path of the image to upload."""
  overlay = ctx.snapshot.overlay_choice
  if overlay is None:
    return image_path

  logger.info("Applying overlay %s to job %s", overlay.display_name, ctx.job.job_id)
  overlay_path = await download_media(storage, overlay, os.path.join(ctx.tmp_dir, "overlay.png"))
  output_path = os.path.join(ctx.tmp_dir, "with-overlay.jpg")
  try:
    await run_in_threadpool(apply_overlay, image_path, overlay_path, output_path)
  except OSError as exc:
    raise InvalidInputError(f"Overlay {overlay.media_asset_id} could not be applied: {exc}", step="overlay") from exc
  return output_path
