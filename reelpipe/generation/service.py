"""Content generation: prompt the LLM, validate, fall back when allowed."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from reelpipe.formats.definitions import get_format
from reelpipe.generation.prompts import build_prompt
from reelpipe.generation.schemas import ContentBase
from reelpipe.generation.validator import ContentValidationError, fallback_content, parse_and_validate
from reelpipe.llm.base import LLMProvider

logger = logging.getLogger(__name__)


@dataclass
class GeneratedContent:
    content: ContentBase
    format_type: str
    validation_error: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.content.is_fallback


class ContentGenerator:
    """Turns (persona, topic, format) into validated content."""

    def __init__(self, llm: LLMProvider, allow_fallback: bool = True, temperature: float = 0.9):
        self._llm = llm
        self._allow_fallback = allow_fallback
        self._temperature = temperature

    def generate(
        self,
        persona_name: str,
        topic_name: str,
        format_type: str,
        branding: dict[str, Any] | None = None,
    ) -> GeneratedContent:
        """Generate content for one unit of work.

        LLM transport errors propagate. A response that fails validation is
        replaced by fallback content when fallback is allowed, otherwise
        ContentValidationError is raised.
        """
        prompt = build_prompt(get_format(format_type), persona_name, topic_name, branding)
        raw = self._llm.complete(prompt, temperature=self._temperature)
        try:
            content = parse_and_validate(raw, format_type)
            return GeneratedContent(content=content, format_type=format_type)
        except ContentValidationError as e:
            if not self._allow_fallback:
                raise
            logger.warning(
                "Generated %s content for '%s' failed validation (%s); using fallback",
                format_type,
                topic_name,
                e,
            )
            return GeneratedContent(
                content=fallback_content(format_type, persona_name, topic_name),
                format_type=format_type,
                validation_error=str(e),
            )
