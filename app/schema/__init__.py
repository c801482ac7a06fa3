"""Schema package exports."""

from .media import MediaReference, parse_media_reference, serialize_media_reference
from .snapshot import JobSnapshot, OutcomeConfig, SessionResponse

__all__ = ["MediaReference", "parse_media_reference", "serialize_media_reference", "JobSnapshot", "OutcomeConfig", "SessionResponse"]
