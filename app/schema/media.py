"""Media reference schema shared by sessions, snapshots and job results.

Stored records come in two shapes. Current records look like
``{mediaAssetId, url, filePath, displayName}``; older result records were
written as ``{stepId, assetId, url, createdAt}``. Both are decoded into the
same ``MediaReference`` so nothing past the repository layer sees the legacy
shape, and stored data is never rewritten just because it was read.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

UNTITLED_DISPLAY_NAME = "Untitled"

# Braces and colons would break @{ref:...} prompt mentions.
_DISPLAY_NAME_RE = re.compile(r"^[A-Za-z0-9 ._-]{1,100}$")


def normalize_display_name(raw: Any) -> str:
  """Return a trimmed, mention-safe display name or the Untitled fallback."""
  if not isinstance(raw, str):
    return UNTITLED_DISPLAY_NAME
  trimmed = raw.strip()
  if not _DISPLAY_NAME_RE.match(trimmed):
    return UNTITLED_DISPLAY_NAME
  return trimmed


class MediaReference(BaseModel):
  """Platform-standard pointer to a stored asset."""

  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True)

  media_asset_id: str
  url: str
  file_path: str | None = None
  display_name: str = UNTITLED_DISPLAY_NAME

  @model_validator(mode="before")
  @classmethod
  def _upgrade_legacy_shape(cls, data: Any) -> Any:
    # Legacy result records used assetId and carried step/created metadata we no longer keep.
    if isinstance(data, dict) and "assetId" in data and "mediaAssetId" not in data and "media_asset_id" not in data:
      return {"mediaAssetId": data["assetId"], "url": data.get("url"), "filePath": data.get("filePath"), "displayName": data.get("displayName")}
    return data

  @field_validator("display_name", mode="before")
  @classmethod
  def _validate_display_name(cls, value: Any) -> str:
    return normalize_display_name(value)


def parse_media_reference(raw: Any) -> MediaReference | None:
  """Decode a stored media record of either shape; ``None`` stays ``None``."""
  if raw is None:
    return None
  if isinstance(raw, MediaReference):
    return raw
  return MediaReference.model_validate(raw)


def serialize_media_reference(ref: MediaReference) -> dict[str, Any]:
  """Encode a media reference in the current storage shape."""
  return ref.model_dump(mode="json", by_alias=True)
