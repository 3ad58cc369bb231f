"""Per-frame display durations for assembled videos."""

from __future__ import annotations

from typing import Any

from reelpipe.formats.definitions import get_format

HOOK_SECONDS = 1.5
SECOND_FRAME_SECONDS = 3.0
DEFAULT_SECONDS = 2.0
MAX_FRAME_SECONDS = 6.0
WORDS_PER_SECOND = 3.0


def _text_of(value: Any) -> str:
    if isinstance(value, dict):
        return " ".join(_text_of(v) for v in value.values())
    if isinstance(value, list):
        return " ".join(_text_of(v) for v in value)
    return str(value) if value is not None else ""


def _base_seconds(index: int) -> float:
    if index == 0:
        return HOOK_SECONDS
    if index == 1:
        return SECOND_FRAME_SECONDS
    return DEFAULT_SECONDS


def frame_durations(format_type: str, content: dict[str, Any], frame_count: int) -> list[float]:
    """Seconds each of ``frame_count`` frames stays on screen.

    The hook is always short. Later frames get at least their positional
    base and are stretched to the reading time of the content they show,
    capped at MAX_FRAME_SECONDS.
    """
    specs = get_format(format_type).frames
    durations: list[float] = []
    for index in range(frame_count):
        base = _base_seconds(index)
        if index == 0 or index >= len(specs):
            durations.append(base)
            continue
        text = " ".join(_text_of(content.get(name)) for name in specs[index].content_fields)
        reading = len(text.split()) / WORDS_PER_SECOND
        durations.append(round(min(MAX_FRAME_SECONDS, max(base, reading)), 2))
    return durations
