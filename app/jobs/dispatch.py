"""Outcome dispatcher registry.

The registry is built once at process start and cannot be mutated afterwards.
Adding an outcome type is a single entry in ``build_default_registry``; the
task runner never branches on outcome type.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Final, Protocol

from app.jobs.models import JobOutput

if TYPE_CHECKING:
  from app.outcomes.context import OutcomeContext


class OutcomeExecutor(Protocol):
  """Uniform executor contract shared by every outcome type."""

  async def execute(self, ctx: OutcomeContext) -> JobOutput:
    """Produce the job output or raise a pipeline error."""


class _NotImplementedType(Enum):
  NOT_IMPLEMENTED = "not_implemented"

  def __repr__(self) -> str:
    return "NOT_IMPLEMENTED"


# Returned for outcome types the schema recognizes but that have no executor yet.
NOT_IMPLEMENTED: Final = _NotImplementedType.NOT_IMPLEMENTED

# Every outcome discriminator the job schema accepts.
KNOWN_OUTCOME_TYPES: frozenset[str] = frozenset({"photo", "gif", "video", "ai.image", "ai.video"})


class OutcomeRegistry:
  """Immutable mapping from outcome type to executor."""

  def __init__(self, executors: Mapping[str, OutcomeExecutor]) -> None:
    self._executors: Mapping[str, OutcomeExecutor] = MappingProxyType(dict(executors))

  def resolve(self, outcome_type: str) -> OutcomeExecutor | _NotImplementedType:
    """Return the executor for ``outcome_type`` or ``NOT_IMPLEMENTED``; never raises."""
    executor = self._executors.get(outcome_type)
    if executor is None:
      return NOT_IMPLEMENTED
    return executor

  @property
  def outcome_types(self) -> frozenset[str]:
    return frozenset(self._executors)


def build_default_registry(*, storage, image_model, video_model, settings) -> OutcomeRegistry:
  """Wire the production executors; gif and video stay NOT_IMPLEMENTED."""
  from app.outcomes.ai_image import AIImageOutcome
  from app.outcomes.ai_video import AIVideoOutcome
  from app.outcomes.photo import PhotoOutcome

  return OutcomeRegistry(
    {
      "photo": PhotoOutcome(storage=storage),
      "ai.image": AIImageOutcome(storage=storage, model=image_model),
      "ai.video": AIVideoOutcome(storage=storage, model=video_model, poll_interval_seconds=settings.video_poll_interval_seconds, poll_timeout_seconds=settings.video_poll_timeout_seconds),
    }
  )
