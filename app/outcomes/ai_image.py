"""AI image outcome: Gemini image generation from the capture, references and prompt."""

from __future__ import annotations

import logging
import os

from PIL import UnidentifiedImageError
from starlette.concurrency import run_in_threadpool

from app.ai.providers.base import ImageGenerationRequest, ImageInput, ImageModel
from app.jobs.errors import InvalidInputError, SafetyFilteredError, TerminalGenerationError
from app.jobs.models import JobOutput
from app.outcomes.context import OutcomeContext
from app.outcomes.media import build_job_output, get_source_media, image_dimensions_for, storage_path_for_media
from app.outcomes.overlay import apply_overlay_choice
from app.outcomes.prompts import resolve_prompt_mentions
from app.schema.media import MediaReference
from app.services.images import convert_to_jpeg, read_image_dimensions
from app.services.outputs import upload_output
from app.services.storage_client import StorageClient

logger = logging.getLogger(__name__)

SOURCE_IMAGE_LABEL = "<source_image>"


def _write_bytes(path: str, payload: bytes) -> None:
  with open(path, "wb") as handle:
    handle.write(payload)


class AIImageOutcome:
  """Executor for ``ai.image`` outcomes."""

  def __init__(self, *, storage: StorageClient, model: ImageModel) -> None:
    self._storage = storage
    self._model = model

  def _image_input(self, media: MediaReference, label: str) -> ImageInput:
    return ImageInput(gcs_uri=self._storage.gs_uri(storage_path_for_media(self._storage, media)), label=label)

  async def execute(self, ctx: OutcomeContext) -> JobOutput:
    outcome = ctx.snapshot.outcome
    config = outcome.ai_image if outcome else None
    if config is None:
      raise InvalidInputError("AI image outcome configuration is required", step="config")
    if not config.prompt.strip():
      raise InvalidInputError("AI image outcome has empty prompt", step="prompt")

    logger.info("Starting AI image outcome job=%s model=%s aspect_ratio=%s capture_step=%s", ctx.job.job_id, config.model, config.aspect_ratio, config.capture_step_id)
    source = get_source_media(ctx.snapshot.session_responses, config.capture_step_id) if config.capture_step_id else None
    resolved = resolve_prompt_mentions(config.prompt, ctx.snapshot.session_responses, config.ref_media)
    logger.info("Prompt resolved job=%s length=%d media_refs=%d", ctx.job.job_id, len(resolved.text), len(resolved.media_refs))

    images: list[ImageInput] = []
    if source is not None:
      images.append(self._image_input(source, SOURCE_IMAGE_LABEL))
    for ref in resolved.media_refs:
      # The capture is already attached as the source image.
      if source is not None and ref.media_asset_id == source.media_asset_id:
        continue
      images.append(self._image_input(ref, f"<ref_{ref.display_name}>"))

    await ctx.progress("generating", 30, "Generating your image...")
    payloads = await self._model.generate_image(ImageGenerationRequest(prompt=resolved.text, model=config.model, aspect_ratio=config.aspect_ratio, images=images))
    if not payloads:
      raise SafetyFilteredError("Image was filtered by safety policy", step="generate")

    try:
      jpeg = await run_in_threadpool(convert_to_jpeg, payloads[0])
    except (UnidentifiedImageError, OSError) as exc:
      raise TerminalGenerationError(f"Model returned an unreadable image: {exc}", step="generate") from exc

    local_path = os.path.join(ctx.tmp_dir, "ai-output.jpg")
    await run_in_threadpool(_write_bytes, local_path, jpeg)
    local_path = await apply_overlay_choice(self._storage, ctx, local_path)
    dimensions = await run_in_threadpool(read_image_dimensions, local_path) or image_dimensions_for(config.aspect_ratio)

    await ctx.progress("uploading", 80, "Saving your result...")
    uploaded = await upload_output(self._storage, local_path=local_path, project_id=ctx.job.project_id, session_id=ctx.job.session_id, temp_dir=ctx.tmp_dir, dimensions=dimensions, with_thumbnail=True)

    output = build_job_output(ctx, uploaded, format="image", dimensions=dimensions)
    logger.info("AI image outcome completed job=%s asset=%s processing_ms=%d", ctx.job.job_id, output.asset_id, output.processing_time_ms)
    return output
