"""Frame rendering collaborator: content + format -> uploaded frame images."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from reelpipe.formats.definitions import ContentFormat

logger = logging.getLogger(__name__)


class RenderError(RuntimeError):
    pass


@dataclass
class RenderedFrames:
    urls: list[str]
    theme_name: str | None = None


class FrameRenderer(Protocol):
    def render(
        self,
        job_id: str,
        content: dict[str, Any],
        content_format: ContentFormat,
        branding: dict[str, Any] | None = None,
    ) -> RenderedFrames: ...


class HttpFrameRenderer:
    """Calls the rendering service, which draws and stores each frame.

    Request: ``{jobId, content, format, frames, branding, width, height, folder}``.
    Response: ``{frames: [url, ...], theme?: str}``.
    """

    def __init__(
        self,
        url: str,
        token: str | None = None,
        width: int = 1080,
        height: int = 1920,
        folder: str = "quiz-frames",
        client: httpx.Client | None = None,
        timeout: float = 60.0,
    ):
        self._url = url
        self._width = width
        self._height = height
        self._folder = folder
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client or httpx.Client(timeout=timeout, headers=headers)
        self._headers = headers

    def render(
        self,
        job_id: str,
        content: dict[str, Any],
        content_format: ContentFormat,
        branding: dict[str, Any] | None = None,
    ) -> RenderedFrames:
        body = {
            "jobId": job_id,
            "content": content,
            "format": content_format.type,
            "frames": [f.model_dump() for f in content_format.frames],
            "branding": branding or {},
            "width": self._width,
            "height": self._height,
            "folder": self._folder,
        }
        try:
            response = self._client.post(self._url, json=body, headers=self._headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise RenderError(
                f"Renderer returned {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise RenderError(f"Renderer request failed: {e}") from e
        urls = data.get("frames") if isinstance(data, dict) else None
        if not urls or not all(isinstance(u, str) and u for u in urls):
            raise RenderError("Renderer returned no frame URLs")
        logger.info("[Job %s] Rendered %d frames", job_id, len(urls))
        return RenderedFrames(urls=list(urls), theme_name=data.get("theme"))
