"""Tests for per-frame display durations."""

from reelpipe.formats.timing import (
    DEFAULT_SECONDS,
    HOOK_SECONDS,
    MAX_FRAME_SECONDS,
    SECOND_FRAME_SECONDS,
    frame_durations,
)


def test_short_content_uses_positional_bases():
    content = {"hook": "Quick one", "question": "Pick one", "options": {"A": "a", "B": "b"},
               "answer": "A", "explanation": "Short."}
    assert frame_durations("mcq", content, 4) == [HOOK_SECONDS, SECOND_FRAME_SECONDS, DEFAULT_SECONDS, DEFAULT_SECONDS]


def test_long_text_stretches_frame_up_to_cap():
    long_explanation = " ".join(["word"] * 12)
    content = {"hook": " ".join(["very"] * 40), "explanation": long_explanation, "cta": "Follow"}
    durations = frame_durations("mcq", content, 4)
    assert durations[0] == HOOK_SECONDS
    assert durations[3] == round(13 / 3.0, 2)

    content["explanation"] = " ".join(["word"] * 100)
    assert frame_durations("mcq", content, 4)[3] == MAX_FRAME_SECONDS


def test_extra_frames_get_default():
    assert frame_durations("quick_fix", {}, 5) == [HOOK_SECONDS, SECOND_FRAME_SECONDS, DEFAULT_SECONDS,
                                                   DEFAULT_SECONDS, DEFAULT_SECONDS]


def test_unknown_format_uses_default_layout():
    assert len(frame_durations("no_such_format", {"hook": "h"}, 4)) == 4
