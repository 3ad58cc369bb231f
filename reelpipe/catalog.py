"""Persona catalog: which topics each persona covers and how they are labelled."""

from __future__ import annotations

import random
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from reelpipe.config import get_settings


class UnknownPersonaError(KeyError):
    pass


class Topic(BaseModel):
    key: str
    display_name: str = ""


class Persona(BaseModel):
    key: str
    display_name: str = ""
    topics: list[Topic] = Field(default_factory=list)

    def topic(self, key: str) -> Topic | None:
        for t in self.topics:
            if t.key == key:
                return t
        return None


class PersonaCatalog:
    def __init__(self, personas: dict[str, Persona]):
        self._personas = personas

    def __contains__(self, key: str) -> bool:
        return key in self._personas

    def keys(self) -> list[str]:
        return list(self._personas)

    def get(self, key: str) -> Persona:
        persona = self._personas.get(key)
        if persona is None:
            raise UnknownPersonaError(key)
        return persona

    def pick_topic(self, persona_key: str, rng: random.Random | None = None) -> Topic:
        persona = self.get(persona_key)
        if not persona.topics:
            return Topic(key=persona_key, display_name=persona.display_name or persona_key)
        return (rng or random.Random()).choice(persona.topics)

    def topic_display_name(self, persona_key: str, topic_key: str) -> str:
        """Human label for a topic, falling back to the key itself."""
        if persona_key not in self._personas:
            return topic_key
        topic = self._personas[persona_key].topic(topic_key)
        return topic.display_name if topic and topic.display_name else topic_key

    def display_name(self, persona_key: str) -> str:
        persona = self._personas.get(persona_key)
        return persona.display_name if persona and persona.display_name else persona_key


def load_catalog(path: Path | None = None) -> PersonaCatalog:
    path = path or get_settings().config_dir / "personas.yaml"
    if not path.exists():
        return PersonaCatalog({})
    with open(path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return PersonaCatalog({key: Persona(key=key, **(value or {})) for key, value in raw.items()})
