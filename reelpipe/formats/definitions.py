"""Content format definitions: frame layout, timing and topic suitability."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, computed_field

ContentKind = Literal["quiz", "tip"]


class FrameVisual(BaseModel):
    text_size: Literal["small", "medium", "large"] = "medium"
    text_weight: Literal["normal", "bold", "extra-bold"] = "bold"
    layout: Literal["centered", "top-bottom", "left-right", "stacked"] = "centered"
    background: str = "#1a1a2e"
    accent: str = "#f9c74f"


class FrameSpec(BaseModel):
    role: str
    duration: float = Field(gt=0)
    # content fields rendered on this frame; drives reading-time extension
    content_fields: list[str] = Field(default_factory=list)
    visual: FrameVisual = Field(default_factory=FrameVisual)


class ContentFormat(BaseModel):
    type: str
    name: str
    description: str = ""
    content_kind: ContentKind = "quiz"
    frames: list[FrameSpec]
    suitable_topics: list[str] = Field(default_factory=lambda: ["all"])

    @computed_field
    @property
    def total_duration(self) -> float:
        return sum(f.duration for f in self.frames)

    @property
    def frame_roles(self) -> list[str]:
        return [f.role for f in self.frames]

    def suits(self, topic: str) -> bool:
        return "all" in self.suitable_topics or topic in self.suitable_topics


_HOOK = FrameVisual(text_size="large", text_weight="extra-bold")
_ANSWER = FrameVisual(accent="#43aa8b")
_WRONG = FrameVisual(accent="#f94144", layout="top-bottom")

FORMATS: dict[str, ContentFormat] = {
    "mcq": ContentFormat(
        type="mcq",
        name="Multiple Choice Quiz",
        description="Question with four options, answer reveal and explanation.",
        frames=[
            FrameSpec(role="hook", duration=2.5, content_fields=["hook"], visual=_HOOK),
            FrameSpec(role="question", duration=4, content_fields=["question", "options"],
                      visual=FrameVisual(layout="stacked")),
            FrameSpec(role="answer", duration=2, content_fields=["answer"], visual=_ANSWER),
            FrameSpec(role="explanation", duration=3.5, content_fields=["explanation", "cta"]),
        ],
        suitable_topics=["all"],
    ),
    "common_mistake": ContentFormat(
        type="common_mistake",
        name="Common Mistake",
        description="Show a frequent error, the correction and a practice prompt.",
        frames=[
            FrameSpec(role="hook", duration=2, content_fields=["hook"], visual=_HOOK),
            FrameSpec(role="mistake", duration=3, content_fields=["mistake"], visual=_WRONG),
            FrameSpec(role="correct", duration=3, content_fields=["correct", "explanation"], visual=_ANSWER),
            FrameSpec(role="practice", duration=4, content_fields=["practice", "cta"]),
        ],
        suitable_topics=["eng_vocab_confusing_words", "eng_vocab_register", "eng_vocab_phrases"],
    ),
    "quick_fix": ContentFormat(
        type="quick_fix",
        name="Quick Fix",
        description="Upgrade a basic word to a stronger alternative.",
        frames=[
            FrameSpec(role="hook", duration=2, content_fields=["hook"], visual=_HOOK),
            FrameSpec(role="before", duration=3, content_fields=["basic_word"], visual=_WRONG),
            FrameSpec(role="after", duration=4, content_fields=["advanced_word", "example", "cta"],
                      visual=_ANSWER),
        ],
        suitable_topics=["eng_vocab_synonyms", "eng_vocab_register", "eng_vocab_shades_of_meaning"],
    ),
    "usage_demo": ContentFormat(
        type="usage_demo",
        name="Usage Demo",
        description="Wrong and right usage of a word side by side.",
        frames=[
            FrameSpec(role="hook", duration=2, content_fields=["hook", "target_word"], visual=_HOOK),
            FrameSpec(role="wrong_example", duration=3, content_fields=["wrong_example"], visual=_WRONG),
            FrameSpec(role="right_example", duration=3, content_fields=["right_example"], visual=_ANSWER),
            FrameSpec(role="practice", duration=3, content_fields=["practice", "cta"]),
        ],
        suitable_topics=["eng_vocab_collocations", "eng_vocab_phrasal_verbs", "eng_vocab_word_forms"],
    ),
    "challenge": ContentFormat(
        type="challenge",
        name="Challenge",
        description="A timed challenge followed by the reveal.",
        frames=[
            FrameSpec(role="hook", duration=2, content_fields=["hook"], visual=_HOOK),
            FrameSpec(role="challenge", duration=4, content_fields=["challenge", "hint"],
                      visual=FrameVisual(layout="stacked")),
            FrameSpec(role="reveal", duration=3, content_fields=["reveal", "explanation"], visual=_ANSWER),
            FrameSpec(role="cta", duration=2, content_fields=["cta"]),
        ],
        suitable_topics=["all"],
    ),
    "quick_tip": ContentFormat(
        type="quick_tip",
        name="Quick Tip",
        description="One actionable habit and the result it brings.",
        content_kind="tip",
        frames=[
            FrameSpec(role="hook", duration=2.5, content_fields=["hook"], visual=_HOOK),
            FrameSpec(role="action", duration=4, content_fields=["action"]),
            FrameSpec(role="result", duration=3.5, content_fields=["result", "cta"], visual=_ANSWER),
        ],
        suitable_topics=[
            "memory_techniques", "focus_tips", "brain_lifestyle", "mental_exercises",
            "screen_protection", "eye_exercises", "eye_care_habits", "workplace_vision",
        ],
    ),
    "before_after": ContentFormat(
        type="before_after",
        name="Before / After",
        description="Contrast a bad habit with a better one and its impact.",
        content_kind="tip",
        frames=[
            FrameSpec(role="hook", duration=2.5, content_fields=["hook"], visual=_HOOK),
            FrameSpec(role="before", duration=3, content_fields=["before"], visual=_WRONG),
            FrameSpec(role="after", duration=3, content_fields=["after"], visual=_ANSWER),
            FrameSpec(role="result", duration=3.5, content_fields=["result", "cta"]),
        ],
        suitable_topics=["brain_lifestyle", "screen_protection", "eye_care_habits", "workplace_vision"],
    ),
}

DEFAULT_FORMAT = "mcq"


def get_format(format_type: str) -> ContentFormat:
    """Return the definition for ``format_type``; unknown types get the default format."""
    return FORMATS.get(format_type) or FORMATS[DEFAULT_FORMAT]
