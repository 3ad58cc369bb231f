"""Typed views over the accumulating job payload.

The payload is stored as a flat JSON object with camelCase keys. Each stage
reads it through the input model for its step and writes back through an
output model, so a missing key fails validation before any collaborator is
called.
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from reelpipe.jobs.models import Job


class PayloadError(ValueError):
    """Job payload is missing data required by its current step."""


class _PayloadModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def dump(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Stage outputs
# ---------------------------------------------------------------------------

class GenerationOutput(_PayloadModel):
    content: dict[str, Any]
    format: str
    frame_roles: list[str] = Field(default_factory=list, alias="frameRoles")
    is_fallback: bool = Field(default=False, alias="isFallback")


class FramesOutput(_PayloadModel):
    frame_urls: list[str] = Field(alias="frameUrls")
    frame_durations: list[float] = Field(alias="frameDurations")
    theme_name: str | None = Field(default=None, alias="themeName")


class AssemblyOutput(_PayloadModel):
    video_url: str = Field(alias="videoUrl")
    video_size: int = Field(alias="videoSize")
    audio_file: str | None = Field(default=None, alias="audioFile")
    assemble_seconds: float | None = Field(default=None, alias="assembleSeconds")


class UploadOutput(_PayloadModel):
    platform_video_id: str = Field(alias="platformVideoId")
    playlist_id: str | None = Field(default=None, alias="playlistId")
    title: str | None = None


# ---------------------------------------------------------------------------
# Stage inputs
# ---------------------------------------------------------------------------

class FramesInput(_PayloadModel):
    content: dict[str, Any] = Field(min_length=1)
    format: str = "mcq"
    frame_roles: list[str] = Field(default_factory=list, alias="frameRoles")


class AssemblyInput(_PayloadModel):
    frame_urls: list[str] = Field(alias="frameUrls", min_length=1)
    frame_durations: list[float] | None = Field(default=None, alias="frameDurations")
    content: dict[str, Any] = Field(default_factory=dict)
    format: str = "mcq"


class UploadInput(_PayloadModel):
    video_url: str = Field(alias="videoUrl", min_length=1)
    frame_urls: list[str] = Field(default_factory=list, alias="frameUrls")
    content: dict[str, Any] = Field(default_factory=dict)
    format: str = "mcq"
    platform_video_id: str | None = Field(default=None, alias="platformVideoId")
    playlist_id: str | None = Field(default=None, alias="playlistId")


StageInput = Union[FramesInput, AssemblyInput, UploadInput]

_INPUT_BY_STEP: dict[int, type[_PayloadModel]] = {
    2: FramesInput,
    3: AssemblyInput,
    4: UploadInput,
}


def payload_for_step(job: Job, step: int | None = None) -> StageInput:
    """Validate ``job.payload`` against the input shape of ``step`` (default: job.step)."""
    step = job.step if step is None else step
    model = _INPUT_BY_STEP.get(step)
    if model is None:
        raise PayloadError(f"Step {step} has no payload input")
    try:
        return model.model_validate(job.payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise PayloadError(f"Payload for step {step} is missing or invalid: {fields}") from e


def has_stage_input(job: Job) -> bool:
    """True when the earlier-stage output needed to resume ``job.step`` is intact."""
    try:
        payload_for_step(job)
    except PayloadError:
        return False
    return True
