"""Provider implementations."""

from app.ai.providers.base import ImageGenerationRequest, ImageInput, ImageModel, VideoGenerationRequest, VideoModel, VideoOperation
from app.ai.providers.gemini import GeminiImageModel, VeoVideoModel

__all__ = ["ImageGenerationRequest", "ImageInput", "ImageModel", "VideoGenerationRequest", "VideoModel", "VideoOperation", "GeminiImageModel", "VeoVideoModel"]
