"""Parse and validate language-model output, and build marked fallback content."""

from __future__ import annotations

import json
import re

from pydantic import ValidationError

from reelpipe.generation.schemas import ContentBase, content_model


class ContentValidationError(ValueError):
    pass


def _extract_json(raw: str) -> str:
    """Return the outermost {...} block, tolerating code fences and chatter around it."""
    text = raw.strip()
    if text.startswith("```"):
        text = re.sub(r"^```\w*\n?", "", text)
        text = re.sub(r"\n?```\s*$", "", text)
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last < first:
        raise ContentValidationError("No JSON object found in the response")
    return text[first : last + 1]


def parse_and_validate(raw: str, format_type: str) -> ContentBase:
    """Parse ``raw`` and validate it against the schema of ``format_type``."""
    model = content_model(format_type)
    try:
        data = json.loads(_extract_json(raw))
    except json.JSONDecodeError as e:
        raise ContentValidationError(f"JSON parsing failed: {e}") from e
    if not isinstance(data, dict):
        raise ContentValidationError("Response JSON is not an object")
    data.pop("is_fallback", None)
    data["format_type"] = format_type
    try:
        return model.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ContentValidationError(f"{format_type} content invalid: {problems}") from e


# ---------------------------------------------------------------------------
# Fallback content
# ---------------------------------------------------------------------------

def fallback_content(format_type: str, persona_name: str, topic_name: str) -> ContentBase:
    """A complete, schema-valid record built from catalog labels, marked ``is_fallback``."""
    topic = topic_name or persona_name or "today's topic"
    hook = f"Quick {topic} check!"[:120]
    data: dict[str, object]
    if format_type == "mcq":
        data = {
            "question": f"Which habit helps most with {topic}?"[:220],
            "options": {
                "A": "Practising a little every day",
                "B": "Cramming once a month",
                "C": "Never reviewing",
                "D": "Skipping the basics",
            },
            "answer": "A",
            "explanation": "Small, regular practice builds lasting results faster than occasional bursts.",
        }
    elif format_type == "common_mistake":
        data = {
            "mistake": "Trying to learn everything at once.",
            "correct": "Focus on one small improvement at a time.",
            "explanation": "Narrow focus makes progress visible and easier to keep up.",
            "practice": f"Pick one {topic} idea and use it three times today."[:200],
        }
    elif format_type == "quick_fix":
        data = {
            "basic_word": "good",
            "advanced_word": "excellent",
            "example": "Her presentation was excellent, clear and well organised.",
        }
    elif format_type == "usage_demo":
        data = {
            "target_word": "affect",
            "wrong_example": "The weather effected my mood.",
            "right_example": "The weather affected my mood.",
            "practice": "Write one sentence using 'affect' correctly.",
        }
    elif format_type == "challenge":
        data = {
            "challenge": f"Name three facts about {topic} in ten seconds!"[:220],
            "hint": "Think about what you learned this week.",
            "reveal": "Every answer counts: keep learning!",
            "explanation": "Recalling facts under light time pressure strengthens memory.",
        }
    elif format_type == "quick_tip":
        data = {
            "action": "Spend two focused minutes on it before you start your day.",
            "result": "Tiny daily sessions add up to noticeable progress within weeks.",
        }
    elif format_type == "before_after":
        data = {
            "before": "Ignoring the problem until it becomes hard to fix.",
            "after": "Spending a few minutes on it every single day.",
            "result": "Consistent small steps prevent big setbacks later.",
        }
    else:
        raise ValueError(f"No content schema for format '{format_type}'")
    return content_model(format_type).model_validate(
        {**data, "hook": hook, "format_type": format_type, "is_fallback": True}
    )
