"""LLM content generation with strict validation and marked fallbacks."""

from reelpipe.generation.schemas import CONTENT_MODELS, ContentBase, content_model
from reelpipe.generation.service import ContentGenerator, GeneratedContent
from reelpipe.generation.validator import ContentValidationError, fallback_content, parse_and_validate

__all__ = [
    "CONTENT_MODELS",
    "ContentBase",
    "ContentGenerator",
    "ContentValidationError",
    "GeneratedContent",
    "content_model",
    "fallback_content",
    "parse_and_validate",
]
