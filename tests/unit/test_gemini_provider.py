"""Request shaping and response parsing for the Gemini and Veo adapters."""

from __future__ import annotations

from google.genai import types

from app.ai.providers import gemini
from app.ai.providers.base import ImageInput


def test_content_parts_label_each_image_and_end_with_prompt() -> None:
  images = [ImageInput(gcs_uri="gs://b/capture.jpg", label="<source_image>"), ImageInput(gcs_uri="gs://b/hat.png", label="<ref_Hat>", mime_type="image/png")]

  parts = gemini._build_content_parts("Add the hat", images)

  assert [part.text for part in parts if part.text] == ["Image Reference ID: <source_image>", "Image Reference ID: <ref_Hat>", "Add the hat"]
  assert [part.file_data.file_uri for part in parts if part.file_data] == ["gs://b/capture.jpg", "gs://b/hat.png"]
  assert parts[-1].text == "Add the hat"


def test_extract_images_returns_inline_payloads() -> None:
  response = types.GenerateContentResponse(candidates=[types.Candidate(content=types.Content(role="model", parts=[types.Part(text="here you go"), types.Part(inline_data=types.Blob(data=b"png-bytes", mime_type="image/png"))]))])

  assert gemini._extract_images(response) == [b"png-bytes"]
  assert gemini._extract_images(types.GenerateContentResponse(candidates=[])) == []


def test_video_operation_is_converted_with_results_and_errors() -> None:
  done = types.GenerateVideosOperation(name="ops/1", done=True, response=types.GenerateVideosResponse(generated_videos=[types.GeneratedVideo(video=types.Video(uri="gs://b/sample_0.mp4"))]))
  failed = types.GenerateVideosOperation(name="ops/2", done=True, error={"code": 3, "message": "prompt rejected"})

  converted = gemini._to_video_operation(done)
  assert converted.done
  assert converted.videos[0].uri == "gs://b/sample_0.mp4"
  assert converted.raw is done
  assert gemini._to_video_operation(failed).error_message == "prompt rejected"
  assert gemini._to_video_operation(types.GenerateVideosOperation(name="ops/3")).done is False


def test_global_only_models_use_global_location(monkeypatch) -> None:
  built: list[str] = []

  def _fake_client(*, project, location):
    built.append(location)
    return object()

  monkeypatch.setattr(gemini, "build_genai_client", _fake_client)
  model = gemini.GeminiImageModel(project="demo", location="us-central1")

  model._client_for("gemini-3-pro-image-preview")
  model._client_for("gemini-2.5-flash-image")
  model._client_for("gemini-2.5-flash-image")

  assert built == ["global", "us-central1"]
