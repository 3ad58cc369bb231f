"""Per tenant/persona format rules and per-topic format preferences."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from reelpipe.config import get_settings
from reelpipe.formats.definitions import DEFAULT_FORMAT, FORMATS


class PersonaFormatRule(BaseModel):
    formats: list[str]
    weights: dict[str, float] = Field(default_factory=dict)
    fallback: str = DEFAULT_FORMAT

    def distribution(self) -> dict[str, float]:
        """Configured weights as percentages of their sum."""
        total = sum(self.weights.get(f, 0.0) for f in self.formats)
        if total <= 0:
            return {f: 0.0 for f in self.formats}
        return {f: round(self.weights.get(f, 0.0) / total * 100, 1) for f in self.formats}


class FormatRules(BaseModel):
    default_fallback: str = DEFAULT_FORMAT
    rules: dict[str, dict[str, PersonaFormatRule]] = Field(default_factory=dict)
    topic_preferences: dict[str, list[str]] = Field(default_factory=dict)

    def rule_for(self, tenant_id: str | None, persona: str) -> PersonaFormatRule | None:
        if tenant_id is None:
            return None
        return self.rules.get(tenant_id, {}).get(persona)

    def preferences(self, topic: str) -> list[str]:
        return self.topic_preferences.get(topic, [])

    def is_suitable(self, format_type: str, topic: str) -> bool:
        """A ranked preference list decides when present, else the format's own topic list."""
        prefs = self.preferences(topic)
        if prefs:
            return format_type in prefs
        definition = FORMATS.get(format_type)
        return definition is None or definition.suits(topic)

    def validate_selection(self, tenant_id: str | None, persona: str, format_type: str) -> bool:
        rule = self.rule_for(tenant_id, persona)
        return rule is not None and format_type in rule.formats


def load_format_rules(path: Path | None = None) -> FormatRules:
    path = path or get_settings().config_dir / "format_rules.yaml"
    if not path.exists():
        return FormatRules()
    with open(path, encoding="utf-8") as f:
        return FormatRules.model_validate(yaml.safe_load(f) or {})
