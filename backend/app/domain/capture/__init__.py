"""Upload capture for journal entries."""

from .pipeline import (
    DEFAULT_IMAGE_MIME,
    ImageClassifier,
    LlmGatewayClassifier,
    capture_image_upload,
)

__all__ = [
    "DEFAULT_IMAGE_MIME",
    "ImageClassifier",
    "LlmGatewayClassifier",
    "capture_image_upload",
]
