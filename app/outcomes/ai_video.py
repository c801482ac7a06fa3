"""AI video outcome: Veo generation with bounded cooperative polling."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Awaitable, Callable

from app.ai.providers.base import ImageInput, VideoGenerationRequest, VideoModel, VideoOperation
from app.jobs.errors import GenerationTimeoutError, InvalidInputError, SafetyFilteredError, StorageError, TerminalGenerationError
from app.jobs.models import JobOutput
from app.outcomes.context import OutcomeContext
from app.outcomes.media import build_job_output, get_source_media, storage_path_for_media, video_dimensions_for
from app.outcomes.prompts import resolve_prompt_mentions
from app.schema.media import MediaReference
from app.schema.snapshot import AIVideoOutcomeConfig
from app.services.outputs import output_storage_path, upload_output
from app.services.storage_client import StorageClient

logger = logging.getLogger(__name__)

# Progress band covered while the provider is rendering.
POLL_PROGRESS_START = 20.0
POLL_PROGRESS_END = 85.0

UNSUPPORTED_TASKS = frozenset({"transform", "reimagine"})


class AIVideoOutcome:
  """Executor for ``ai.video`` outcomes.

  The polling ceiling is configured below the task queue deadline so a slow
  render surfaces as a retryable timeout instead of an infrastructure kill.
  """

  def __init__(
    self,
    *,
    storage: StorageClient,
    model: VideoModel,
    poll_interval_seconds: float,
    poll_timeout_seconds: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
  ) -> None:
    self._storage = storage
    self._model = model
    self._poll_interval = poll_interval_seconds
    self._poll_timeout = poll_timeout_seconds
    self._sleep = sleep
    self._clock = clock

  async def execute(self, ctx: OutcomeContext) -> JobOutput:
    outcome = ctx.snapshot.outcome
    config = outcome.ai_video if outcome else None
    if config is None:
      raise InvalidInputError("AI video outcome configuration is required", step="config")
    if not config.prompt.strip():
      raise InvalidInputError("AI video outcome has empty prompt", step="prompt")

    logger.info("Starting AI video outcome job=%s task=%s model=%s aspect_ratio=%s", ctx.job.job_id, config.task, config.model, config.aspect_ratio)
    source = get_source_media(ctx.snapshot.session_responses, config.capture_step_id)
    # Veo reference images carry no labels, so @{ref:..} mentions are not resolved here.
    resolved = resolve_prompt_mentions(config.prompt, ctx.snapshot.session_responses, [])
    if ctx.snapshot.overlay_choice is not None:
      logger.warning("Overlay not supported for ai.video outcomes, skipping job=%s overlay=%s", ctx.job.job_id, ctx.snapshot.overlay_choice.display_name)

    request = self._build_request(ctx, config, resolved.text, source, resolved.media_refs)

    await ctx.progress("generating", POLL_PROGRESS_START, "Generating your video...")
    operation = await self._model.start(request)
    operation = await self._wait_for_completion(ctx, operation)

    local_path = await self._save_generated_video(ctx, operation)
    dimensions = video_dimensions_for(config.aspect_ratio)

    await ctx.progress("uploading", 90, "Saving your video...")
    uploaded = await upload_output(self._storage, local_path=local_path, project_id=ctx.job.project_id, session_id=ctx.job.session_id, temp_dir=ctx.tmp_dir, format="video", dimensions=dimensions, extension="mp4")

    output = build_job_output(ctx, uploaded, format="video", dimensions=dimensions)
    logger.info("AI video outcome completed job=%s asset=%s processing_ms=%d", ctx.job.job_id, output.asset_id, output.processing_time_ms)
    return output

  def _build_request(self, ctx: OutcomeContext, config: AIVideoOutcomeConfig, prompt: str, source: MediaReference, step_media: list[MediaReference]) -> VideoGenerationRequest:
    # Veo writes into the session folder; the result is re-uploaded to the canonical path.
    output_folder = output_storage_path(ctx.job.project_id, ctx.job.session_id, "output", "mp4").rsplit("/", 1)[0] + "/"
    base = {"prompt": prompt, "model": config.model, "aspect_ratio": config.aspect_ratio, "duration_seconds": config.duration, "output_gcs_uri": self._storage.gs_uri(output_folder)}

    if config.task == "image-to-video":
      return VideoGenerationRequest(**base, image=self._image_input(source))
    if config.task == "ref-images-to-video":
      # Every image goes in as an asset reference: the capture, media from mentioned steps, then configured refs.
      references: list[MediaReference] = []
      for media in [source, *step_media, *config.ref_media]:
        if all(media.media_asset_id != seen.media_asset_id for seen in references):
          references.append(media)
      return VideoGenerationRequest(**base, reference_images=[self._image_input(media) for media in references])
    if config.task in UNSUPPORTED_TASKS:
      raise InvalidInputError(f'Task "{config.task}" is not yet supported', step="config")
    raise InvalidInputError(f"Unknown AI video task: {config.task}", step="config")

  def _image_input(self, media: MediaReference) -> ImageInput:
    return ImageInput(gcs_uri=self._storage.gs_uri(storage_path_for_media(self._storage, media)))

  async def _wait_for_completion(self, ctx: OutcomeContext, operation: VideoOperation) -> VideoOperation:
    started = self._clock()
    while not operation.done:
      elapsed = self._clock() - started
      if elapsed >= self._poll_timeout:
        raise GenerationTimeoutError("Video generation timed out", step="poll")

      fraction = min(elapsed / self._poll_timeout, 1.0)
      await ctx.progress("generating", POLL_PROGRESS_START + (POLL_PROGRESS_END - POLL_PROGRESS_START) * fraction, "Generating your video...")
      logger.info("Polling video operation job=%s name=%s elapsed=%.1fs", ctx.job.job_id, operation.name, elapsed)
      await self._sleep(self._poll_interval)
      operation = await self._model.refresh(operation)
    return operation

  async def _save_generated_video(self, ctx: OutcomeContext, operation: VideoOperation) -> str:
    if operation.error_message:
      raise TerminalGenerationError(f"Video generation failed: {operation.error_message}", step="generate")
    if not operation.videos:
      raise SafetyFilteredError("Video was filtered by safety policy", step="generate")

    video = operation.videos[0]
    local_path = os.path.join(ctx.tmp_dir, "output.mp4")
    if video.video_bytes:
      with open(local_path, "wb") as handle:
        handle.write(video.video_bytes)
      return local_path

    if not video.uri:
      raise TerminalGenerationError("No video URI in generation response", step="generate")
    object_name = self._storage.object_name_from_url(video.uri)
    if not object_name:
      raise TerminalGenerationError(f"Video written outside the output bucket: {video.uri}", step="generate")

    try:
      await self._storage.download_to_file(object_name, local_path)
    except Exception as exc:
      raise StorageError(f"Failed to download generated video {object_name}: {exc}", step="download") from exc
    return local_path
