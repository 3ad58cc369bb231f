"""Upload metadata (title, description, tags) filled from templates.

The title variant is chosen by a stable hash of the job id, so re-running an
upload for the same job produces the same metadata.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader
from pydantic import BaseModel, Field

PROMPTS_DIR = Path(__file__).resolve().parent.parent.parent / "prompts"

TITLE_MAX = 100
DESCRIPTION_MAX = 5000
TAGS_MAX_CHARS = 450

_QUIZ_TITLES = [
    "{{ hook }}",
    "{{ topic_name }} Quiz: Can You Get This Right?",
    "Only 1 in 10 Get This {{ topic_name }} Question Right",
    "{{ persona_name }}: {{ topic_name }} in 15 Seconds",
]
_TIP_TITLES = [
    "{{ hook }}",
    "{{ topic_name }}: One Tip in 15 Seconds",
    "Try This {{ topic_name }} Habit Today",
]


class VideoMetadata(BaseModel):
    title: str = Field(max_length=TITLE_MAX)
    description: str = Field(default="", max_length=DESCRIPTION_MAX)
    tags: list[str] = Field(default_factory=list)
    category_id: str = "27"
    privacy: str = "public"


def variant_index(job_id: str, count: int) -> int:
    digest = hashlib.sha256(job_id.encode("utf-8")).hexdigest()
    return int(digest, 16) % count


def _clip(text: str, limit: int) -> str:
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


def _hashtag(text: str) -> str:
    return "#" + re.sub(r"[^0-9A-Za-z]", "", text.title())


def build_tags(*groups: list[str]) -> list[str]:
    """Flatten, de-duplicate case-insensitively and cap the combined length."""
    seen: set[str] = set()
    tags: list[str] = []
    total = 0
    for group in groups:
        for raw in group:
            tag = raw.lstrip("#").strip()
            if not tag or tag.lower() in seen:
                continue
            if total + len(tag) + 1 > TAGS_MAX_CHARS:
                return tags
            seen.add(tag.lower())
            tags.append(tag)
            total += len(tag) + 1
    return tags


def build_metadata(
    job_id: str,
    content: dict[str, Any],
    persona_name: str,
    topic_name: str,
    branding: dict[str, Any] | None = None,
    content_kind: str = "quiz",
    category_id: str = "27",
    privacy: str = "public",
) -> VideoMetadata:
    branding = branding or {}
    env = Environment(loader=FileSystemLoader(str(PROMPTS_DIR)))
    fields = {
        "hook": content.get("hook") or topic_name,
        "persona_name": persona_name,
        "topic_name": topic_name,
    }

    variants = _TIP_TITLES if content_kind == "tip" else _QUIZ_TITLES
    title_template = variants[variant_index(job_id, len(variants))]
    title = _clip(env.from_string(title_template).render(**fields), TITLE_MAX - len(" #shorts"))
    title = f"{title} #shorts"

    branded = [h for h in branding.get("hashtags", []) if h]
    hashtags = [_hashtag(topic_name), _hashtag(persona_name), "#shorts"] + [
        h if h.startswith("#") else f"#{h}" for h in branded
    ]
    description = env.get_template("video_description.j2").render(
        **fields,
        question=content.get("question") or content.get("challenge") or content.get("mistake") or "",
        options=content.get("options") or {},
        tip=content.get("action") or content.get("after") or content.get("advanced_word") or "",
        cta=content.get("cta", ""),
        channel_name=branding.get("channel_name", ""),
        hashtags=list(dict.fromkeys(hashtags)),
    )

    tags = build_tags(
        [persona_name, topic_name],
        [content.get("format_type", "").replace("_", " ")],
        ["shorts", "quiz" if content_kind == "quiz" else "tips"],
        branded,
    )
    return VideoMetadata(
        title=title,
        description=description.strip()[:DESCRIPTION_MAX],
        tags=tags,
        category_id=category_id,
        privacy=privacy,
    )
