"""Identifier utilities."""

from __future__ import annotations

import uuid


def generate_job_id() -> str:
  """Return a new job identifier."""
  return str(uuid.uuid4())


def output_asset_id(session_id: str, purpose: str = "output") -> str:
  """Return the stable asset id for a session output."""
  return f"{session_id}-{purpose}"
