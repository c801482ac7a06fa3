"""Pillow helpers for produced images."""

from __future__ import annotations

import io

from PIL import Image, UnidentifiedImageError

from app.jobs.models import MediaDimensions

THUMBNAIL_SIZE = 300


def convert_to_jpeg(image_bytes: bytes) -> bytes:
  """Convert provider image bytes into a JPEG payload."""
  image = Image.open(io.BytesIO(image_bytes))
  # JPEG has no alpha channel.
  converted = image.convert("RGB") if image.mode != "RGB" else image
  output = io.BytesIO()
  converted.save(output, format="JPEG", quality=92)
  return output.getvalue()


def read_image_dimensions(path: str) -> MediaDimensions | None:
  """Return the pixel size of an image file, or None when it cannot be decoded."""
  try:
    with Image.open(path) as image:
      width, height = image.size
  except (UnidentifiedImageError, OSError):
    return None
  return MediaDimensions(width=width, height=height)


def write_thumbnail(source_path: str, thumb_path: str, size: int = THUMBNAIL_SIZE) -> None:
  """Write a JPEG thumbnail that fits within ``size`` x ``size``."""
  with Image.open(source_path) as image:
    thumb = image.convert("RGB")
    thumb.thumbnail((size, size))
    thumb.save(thumb_path, format="JPEG", quality=85)


def apply_overlay(base_path: str, overlay_path: str, output_path: str) -> None:
  """Composite a transparent overlay, stretched to the base size, onto a JPEG output."""
  with Image.open(base_path) as base, Image.open(overlay_path) as overlay:
    canvas = base.convert("RGBA")
    frame = overlay.convert("RGBA").resize(canvas.size)
    composed = Image.alpha_composite(canvas, frame).convert("RGB")
    composed.save(output_path, format="JPEG", quality=92)
