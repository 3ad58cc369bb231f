"""YouTube Data API v3 client over httpx (OAuth2 refresh-token flow)."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import httpx

from reelpipe.publish.metadata import VideoMetadata
from reelpipe.tenants.models import TenantCredentials

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
API_BASE = "https://www.googleapis.com/youtube/v3"
UPLOAD_BASE = "https://www.googleapis.com/upload/youtube/v3"


class PlatformError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class Collection:
    id: str
    title: str
    description: str = ""


class VideoPlatform(Protocol):
    def upload(self, path: Path, metadata: VideoMetadata) -> str: ...
    def set_thumbnail(self, video_id: str, image: bytes, mime_type: str = "image/png") -> None: ...
    def list_collections(self) -> list[Collection]: ...
    def create_collection(self, title: str, description: str, privacy: str = "public") -> str: ...
    def add_to_collection(self, video_id: str, collection_id: str) -> None: ...


class YouTubeClient:
    """Minimal YouTube client: resumable upload, thumbnails and playlists."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        client: httpx.Client | None = None,
        timeout: float = 120.0,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._http = client or httpx.Client(timeout=timeout)
        self._access_token: str | None = None
        self._expires_at = 0.0
        self._token_lock = threading.Lock()

    @classmethod
    def from_credentials(cls, creds: TenantCredentials, **kwargs) -> "YouTubeClient":
        if not creds.has_platform:
            raise PlatformError(f"Tenant {creds.tenant_id} has no YouTube OAuth credentials")
        return cls(creds.google_client_id, creds.google_client_secret, creds.refresh_token, **kwargs)

    # -- auth ---------------------------------------------------------------

    def _token(self) -> str:
        with self._token_lock:
            if self._access_token and time.monotonic() < self._expires_at - 60:
                return self._access_token
            response = self._http.post(
                TOKEN_URL,
                data={
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "refresh_token": self._refresh_token,
                    "grant_type": "refresh_token",
                },
            )
            if response.status_code != 200:
                raise PlatformError(
                    f"OAuth token refresh failed: {response.text[:200]}", response.status_code
                )
            data = response.json()
            self._access_token = data["access_token"]
            self._expires_at = time.monotonic() + float(data.get("expires_in", 3600))
            return self._access_token

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        headers = {**kwargs.pop("headers", {}), "Authorization": f"Bearer {self._token()}"}
        try:
            response = self._http.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise PlatformError(f"{method} {url} failed: {e}") from e
        if response.status_code >= 400:
            raise PlatformError(
                f"{method} {url.split('?')[0]} returned {response.status_code}: {response.text[:300]}",
                response.status_code,
            )
        return response

    # -- videos -------------------------------------------------------------

    def upload(self, path: Path, metadata: VideoMetadata) -> str:
        """Resumable upload in a single PUT; returns the new video id."""
        size = path.stat().st_size
        init = self._request(
            "POST",
            f"{UPLOAD_BASE}/videos?uploadType=resumable&part=snippet,status",
            json={
                "snippet": {
                    "title": metadata.title,
                    "description": metadata.description,
                    "tags": metadata.tags,
                    "categoryId": metadata.category_id,
                },
                "status": {
                    "privacyStatus": metadata.privacy,
                    "selfDeclaredMadeForKids": False,
                },
            },
            headers={
                "X-Upload-Content-Type": "video/mp4",
                "X-Upload-Content-Length": str(size),
            },
        )
        session_url = init.headers.get("location")
        if not session_url:
            raise PlatformError("Resumable upload session was not created")
        with open(path, "rb") as f:
            response = self._request(
                "PUT",
                session_url,
                content=f.read(),
                headers={"Content-Type": "video/mp4"},
            )
        video_id = response.json().get("id")
        if not video_id:
            raise PlatformError("Upload finished without a video id")
        logger.info("Uploaded video %s (%d bytes)", video_id, size)
        return video_id

    def set_thumbnail(self, video_id: str, image: bytes, mime_type: str = "image/png") -> None:
        self._request(
            "POST",
            f"{UPLOAD_BASE}/thumbnails/set?videoId={video_id}",
            content=image,
            headers={"Content-Type": mime_type},
        )

    # -- playlists ----------------------------------------------------------

    def list_collections(self) -> list[Collection]:
        collections: list[Collection] = []
        page_token: str | None = None
        while True:
            params = {"part": "snippet", "mine": "true", "maxResults": "50"}
            if page_token:
                params["pageToken"] = page_token
            data = self._request("GET", f"{API_BASE}/playlists", params=params).json()
            for item in data.get("items", []):
                snippet = item.get("snippet", {})
                collections.append(
                    Collection(
                        id=item["id"],
                        title=snippet.get("title", ""),
                        description=snippet.get("description", ""),
                    )
                )
            page_token = data.get("nextPageToken")
            if not page_token:
                return collections

    def create_collection(self, title: str, description: str, privacy: str = "public") -> str:
        data = self._request(
            "POST",
            f"{API_BASE}/playlists?part=snippet,status",
            json={
                "snippet": {"title": title[:150], "description": description[:5000]},
                "status": {"privacyStatus": privacy},
            },
        ).json()
        return data["id"]

    def add_to_collection(self, video_id: str, collection_id: str) -> None:
        self._request(
            "POST",
            f"{API_BASE}/playlistItems?part=snippet",
            json={
                "snippet": {
                    "playlistId": collection_id,
                    "resourceId": {"kind": "youtube#video", "videoId": video_id},
                }
            },
        )
