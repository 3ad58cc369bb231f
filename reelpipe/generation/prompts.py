"""Prompt construction for content generation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader

from reelpipe.formats.definitions import ContentFormat
from reelpipe.generation.schemas import content_model

PROMPTS_DIR = Path(__file__).resolve().parent.parent.parent / "prompts"

_SKIP_FIELDS = {"format_type", "is_fallback"}


def _field_specs(format_type: str) -> dict[str, dict[str, Any]]:
    schema = content_model(format_type).model_json_schema()
    props = schema.get("properties", {})
    return {name: spec for name, spec in props.items() if name not in _SKIP_FIELDS}


def build_prompt(
    content_format: ContentFormat,
    persona_name: str,
    topic_name: str,
    branding: dict[str, Any] | None = None,
    avoid: list[str] | None = None,
) -> str:
    branding = branding or {}
    env = Environment(loader=FileSystemLoader(str(PROMPTS_DIR)))
    template = env.get_template("generate_content.j2")
    return template.render(
        format=content_format,
        persona_name=persona_name,
        topic_name=topic_name,
        channel_name=branding.get("channel_name", ""),
        audience=branding.get("audience", ""),
        tone=branding.get("tone", ""),
        fields=_field_specs(content_format.type),
        avoid=avoid or [],
    )
