"""Photo outcome: pass the guest's capture through, with an optional overlay."""

from __future__ import annotations

import logging
import os

from starlette.concurrency import run_in_threadpool

from app.jobs.errors import InvalidInputError
from app.jobs.models import JobOutput
from app.outcomes.context import OutcomeContext
from app.outcomes.media import build_job_output, download_media, get_source_media, image_dimensions_for
from app.outcomes.overlay import apply_overlay_choice
from app.services.images import read_image_dimensions
from app.services.outputs import upload_output
from app.services.storage_client import StorageClient

logger = logging.getLogger(__name__)


class PhotoOutcome:
  """Executor for ``photo`` outcomes."""

  def __init__(self, *, storage: StorageClient) -> None:
    self._storage = storage

  async def execute(self, ctx: OutcomeContext) -> JobOutput:
    outcome = ctx.snapshot.outcome
    config = outcome.photo if outcome else None
    if config is None:
      raise InvalidInputError("Photo outcome configuration is required", step="config")

    logger.info("Starting photo outcome job=%s capture_step=%s aspect_ratio=%s", ctx.job.job_id, config.capture_step_id, config.aspect_ratio)
    source = get_source_media(ctx.snapshot.session_responses, config.capture_step_id)

    await ctx.progress("downloading", 30, "Fetching your photo...")
    local_path = await download_media(self._storage, source, os.path.join(ctx.tmp_dir, "passthrough-output.jpg"))
    local_path = await apply_overlay_choice(self._storage, ctx, local_path)

    dimensions = await run_in_threadpool(read_image_dimensions, local_path) or image_dimensions_for(config.aspect_ratio)

    await ctx.progress("uploading", 70, "Saving your result...")
    uploaded = await upload_output(self._storage, local_path=local_path, project_id=ctx.job.project_id, session_id=ctx.job.session_id, temp_dir=ctx.tmp_dir, dimensions=dimensions, with_thumbnail=True)

    output = build_job_output(ctx, uploaded, format="image", dimensions=dimensions)
    logger.info("Photo outcome completed job=%s asset=%s processing_ms=%d", ctx.job.job_id, output.asset_id, output.processing_time_ms)
    return output
