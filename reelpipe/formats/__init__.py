"""Content formats: definitions, selection rules and the weighted selector."""

from reelpipe.formats.definitions import DEFAULT_FORMAT, FORMATS, ContentFormat, FrameSpec, get_format
from reelpipe.formats.rules import FormatRules, PersonaFormatRule, load_format_rules
from reelpipe.formats.selector import format_distribution, score_formats, select_format
from reelpipe.formats.timing import frame_durations

__all__ = [
    "DEFAULT_FORMAT",
    "FORMATS",
    "ContentFormat",
    "FormatRules",
    "FrameSpec",
    "PersonaFormatRule",
    "format_distribution",
    "frame_durations",
    "get_format",
    "load_format_rules",
    "score_formats",
    "select_format",
]
