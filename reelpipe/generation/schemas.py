"""Strict content schemas, one per format.

The language model is asked for exactly these fields; anything that fails
validation is rejected before a job is written.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

OptionKey = Literal["A", "B", "C", "D"]


class ContentBase(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    hook: str = Field(min_length=3, max_length=120)
    cta: str = Field(default="Follow for a new one every day!", min_length=3, max_length=100)
    is_fallback: bool = False


class MCQOptions(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    A: str = Field(min_length=1, max_length=80)
    B: str = Field(min_length=1, max_length=80)
    C: str = Field(min_length=1, max_length=80)
    D: str = Field(min_length=1, max_length=80)


class MCQContent(ContentBase):
    format_type: Literal["mcq"] = "mcq"
    question: str = Field(min_length=10, max_length=220)
    options: MCQOptions
    answer: OptionKey
    explanation: str = Field(min_length=10, max_length=320)


class CommonMistakeContent(ContentBase):
    format_type: Literal["common_mistake"] = "common_mistake"
    mistake: str = Field(min_length=5, max_length=160)
    correct: str = Field(min_length=5, max_length=160)
    explanation: str = Field(min_length=10, max_length=280)
    practice: str = Field(min_length=5, max_length=200)


class QuickFixContent(ContentBase):
    format_type: Literal["quick_fix"] = "quick_fix"
    basic_word: str = Field(min_length=1, max_length=40)
    advanced_word: str = Field(min_length=1, max_length=40)
    example: str = Field(min_length=10, max_length=200)


class UsageDemoContent(ContentBase):
    format_type: Literal["usage_demo"] = "usage_demo"
    target_word: str = Field(min_length=1, max_length=40)
    wrong_example: str = Field(min_length=5, max_length=180)
    right_example: str = Field(min_length=5, max_length=180)
    practice: str = Field(min_length=5, max_length=200)


class ChallengeContent(ContentBase):
    format_type: Literal["challenge"] = "challenge"
    challenge: str = Field(min_length=10, max_length=220)
    hint: str = Field(default="", max_length=120)
    reveal: str = Field(min_length=1, max_length=160)
    explanation: str = Field(min_length=10, max_length=280)


class QuickTipContent(ContentBase):
    format_type: Literal["quick_tip"] = "quick_tip"
    action: str = Field(min_length=10, max_length=220)
    result: str = Field(min_length=10, max_length=220)


class BeforeAfterContent(ContentBase):
    format_type: Literal["before_after"] = "before_after"
    before: str = Field(min_length=10, max_length=200)
    after: str = Field(min_length=10, max_length=200)
    result: str = Field(min_length=10, max_length=220)


CONTENT_MODELS: dict[str, type[ContentBase]] = {
    "mcq": MCQContent,
    "common_mistake": CommonMistakeContent,
    "quick_fix": QuickFixContent,
    "usage_demo": UsageDemoContent,
    "challenge": ChallengeContent,
    "quick_tip": QuickTipContent,
    "before_after": BeforeAfterContent,
}


def content_model(format_type: str) -> type[ContentBase]:
    try:
        return CONTENT_MODELS[format_type]
    except KeyError:
        raise ValueError(f"No content schema for format '{format_type}'") from None
