"""Gemini image and Veo video adapters using the google-genai SDK on Vertex AI."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Final

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from app.ai.providers.base import GeneratedVideo, ImageGenerationRequest, ImageInput, VideoGenerationRequest, VideoOperation

logger = logging.getLogger(__name__)

# Models only served from the global endpoint.
_GLOBAL_ONLY_MODELS: Final[frozenset[str]] = frozenset({"gemini-3-pro-image-preview"})


def build_genai_client(*, project: str | None, location: str) -> genai.Client:
  """Create a Vertex AI client; application default credentials are used."""
  if not project:
    raise ValueError("GCP_PROJECT_ID environment variable is required for Vertex AI")
  return genai.Client(vertexai=True, project=project, location=location)


class GeminiImageModel:
  """Gemini image generation with labelled reference parts."""

  def __init__(self, *, project: str | None, location: str) -> None:
    self._project = project
    self._location = location
    self._clients: dict[str, genai.Client] = {}

  def _client_for(self, model: str) -> genai.Client:
    location = "global" if model in _GLOBAL_ONLY_MODELS else self._location
    client = self._clients.get(location)
    if client is None:
      client = build_genai_client(project=self._project, location=location)
      self._clients[location] = client
    return client

  async def generate_image(self, request: ImageGenerationRequest) -> list[bytes]:
    parts = _build_content_parts(request.prompt, request.images)
    config = types.GenerateContentConfig(max_output_tokens=32768, temperature=1, top_p=0.95, response_modalities=["IMAGE"], image_config=types.ImageConfig(aspect_ratio=request.aspect_ratio))
    logger.info("Calling Gemini model=%s aspect_ratio=%s images=%d prompt_length=%d", request.model, request.aspect_ratio, len(request.images), len(request.prompt))
    client = self._client_for(request.model)
    # Use the async client to avoid blocking the asyncio event loop.
    response = await _with_backoff(client.aio.models.generate_content, model=request.model, contents=[types.Content(role="user", parts=parts)], config=config)
    return _extract_images(response)


class VeoVideoModel:
  """Veo long-running video generation."""

  def __init__(self, *, project: str | None, location: str) -> None:
    self._project = project
    self._location = location
    self._client: genai.Client | None = None

  @property
  def client(self) -> genai.Client:
    if self._client is None:
      self._client = build_genai_client(project=self._project, location=self._location)
    return self._client

  async def start(self, request: VideoGenerationRequest) -> VideoOperation:
    config_kwargs: dict[str, Any] = {
      "aspect_ratio": request.aspect_ratio,
      "duration_seconds": request.duration_seconds,
      "person_generation": "allow_adult",
      "number_of_videos": 1,
      "output_gcs_uri": request.output_gcs_uri,
    }
    if request.reference_images:
      config_kwargs["reference_images"] = [types.VideoGenerationReferenceImage(image=_to_image(ref), reference_type=types.VideoGenerationReferenceType.ASSET) for ref in request.reference_images]
    image = _to_image(request.image) if request.image and not request.reference_images else None
    logger.info("Calling Veo model=%s aspect_ratio=%s duration=%ss references=%d output=%s", request.model, request.aspect_ratio, request.duration_seconds, len(request.reference_images), request.output_gcs_uri)
    operation = await _with_backoff(self.client.aio.models.generate_videos, model=request.model, prompt=request.prompt, image=image, config=types.GenerateVideosConfig(**config_kwargs))
    return _to_video_operation(operation)

  async def refresh(self, operation: VideoOperation) -> VideoOperation:
    latest = await _with_backoff(self.client.aio.operations.get, operation.raw)
    return _to_video_operation(latest)


def _to_image(ref: ImageInput) -> types.Image:
  return types.Image(gcs_uri=ref.gcs_uri, mime_type=ref.mime_type)


def _build_content_parts(prompt: str, images: list[ImageInput]) -> list[types.Part]:
  """Interleave labels and file parts; the prompt always comes last."""
  parts: list[types.Part] = []
  for image in images:
    if image.label:
      parts.append(types.Part.from_text(text=f"Image Reference ID: {image.label}"))
    parts.append(types.Part.from_uri(file_uri=image.gcs_uri, mime_type=image.mime_type))
  parts.append(types.Part.from_text(text=prompt))
  return parts


def _extract_images(response: types.GenerateContentResponse) -> list[bytes]:
  if not response.candidates:
    return []
  content = response.candidates[0].content
  if content is None or not content.parts:
    return []
  return [part.inline_data.data for part in content.parts if part.inline_data and part.inline_data.data]


def _to_video_operation(operation: types.GenerateVideosOperation) -> VideoOperation:
  error_message = None
  if operation.error:
    error_message = str(operation.error.get("message") or "Unknown error")
  videos: list[GeneratedVideo] = []
  if operation.response and operation.response.generated_videos:
    for generated in operation.response.generated_videos:
      video = generated.video
      videos.append(GeneratedVideo(uri=video.uri if video else None, video_bytes=video.video_bytes if video else None))
  return VideoOperation(name=operation.name or "", done=bool(operation.done), error_message=error_message, videos=videos, raw=operation)


async def _with_backoff(func, *args, **kwargs):
  retries = 3
  base_delay = 1
  for i in range(retries):
    try:
      return await func(*args, **kwargs)
    except genai_errors.APIError as e:
      # Only rate limits are retried in-process; everything else is classified by the caller.
      if e.code != 429 or i == retries - 1:
        raise
      delay = base_delay * (2**i) + random.uniform(0, 1)
      logger.warning("Rate limited by Vertex AI, retrying in %.1fs (attempt %d/%d)", delay, i + 1, retries)
      await asyncio.sleep(delay)
  return await func(*args, **kwargs)
