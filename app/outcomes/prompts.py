"""Prompt mention resolution.

``@{step:<stepName>}`` is replaced with the guest's answer for that step and
``@{ref:<displayName>}`` with a placeholder for a configured reference image.
Images referenced either way are collected, in first-mention order, so they
can be sent alongside the prompt.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from app.schema.media import MediaReference
from app.schema.snapshot import SessionResponse

logger = logging.getLogger(__name__)

_STEP_PATTERN = re.compile(r"@\{step:([^}]+)\}")
_REF_PATTERN = re.compile(r"@\{ref:([^}]+)\}")


@dataclass
class ResolvedPrompt:
  text: str
  media_refs: list[MediaReference] = field(default_factory=list)


class _MediaCollector:
  def __init__(self) -> None:
    self.refs: list[MediaReference] = []
    self._seen: set[str] = set()

  def add(self, ref: MediaReference) -> None:
    if ref.media_asset_id in self._seen:
      return
    self._seen.add(ref.media_asset_id)
    self.refs.append(ref)


def _image_placeholder(name: str) -> str:
  return f"[IMAGE: {name}]"


def _resolve_step_data(response: SessionResponse, collector: _MediaCollector) -> str:
  data = response.data
  if data is None:
    return ""
  if isinstance(data, str):
    return data
  if isinstance(data, list):
    if not data:
      # Capture steps keep their placeholder even when nothing was captured.
      return _image_placeholder(response.step_name) if response.step_type.startswith("capture.") else ""
    first: Any = data[0]
    if isinstance(first, dict) and "value" in first:
      return ", ".join(str(option.get("value", "")) for option in data if isinstance(option, dict))
    if isinstance(first, MediaReference) or (isinstance(first, dict) and "mediaAssetId" in first):
      for raw in data:
        if isinstance(raw, MediaReference):
          collector.add(raw)
          continue
        try:
          collector.add(MediaReference.model_validate(raw))
        except ValidationError:
          logger.warning("Skipping malformed media in step %s (%s)", response.step_name, response.step_type)
      return _image_placeholder(response.step_name)

  logger.warning("Unknown response data type for step %s (%s): %s", response.step_name, response.step_type, type(data).__name__)
  return ""


def resolve_prompt_mentions(prompt: str, responses: list[SessionResponse], ref_media: list[MediaReference]) -> ResolvedPrompt:
  """Replace step and reference mentions; unknown mentions are left untouched."""
  collector = _MediaCollector()
  responses_by_name = {}
  for response in responses:
    responses_by_name.setdefault(response.step_name, response)
  refs_by_name = {}
  for ref in ref_media:
    refs_by_name.setdefault(ref.display_name, ref)

  def _replace_step(match: re.Match[str]) -> str:
    step_name = match.group(1)
    response = responses_by_name.get(step_name)
    if response is None:
      logger.warning("Step %s not found, preserving mention %s", step_name, match.group(0))
      return match.group(0)
    return _resolve_step_data(response, collector)

  def _replace_ref(match: re.Match[str]) -> str:
    display_name = match.group(1)
    ref = refs_by_name.get(display_name)
    if ref is None:
      logger.warning("Reference %s not found, preserving mention %s", display_name, match.group(0))
      return match.group(0)
    collector.add(ref)
    return _image_placeholder(display_name)

  text = _STEP_PATTERN.sub(_replace_step, prompt)
  text = _REF_PATTERN.sub(_replace_ref, text)
  return ResolvedPrompt(text=text, media_refs=collector.refs)
