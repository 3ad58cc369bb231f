"""Media storage: Cloudinary (signed REST) or a local directory."""

from __future__ import annotations

import hashlib
import logging
import re
import time
from pathlib import Path
from typing import Literal, Protocol
from urllib.parse import unquote, urlparse

import httpx

from reelpipe.config import Settings
from reelpipe.tenants.models import TenantCredentials

logger = logging.getLogger(__name__)

ResourceType = Literal["image", "video", "raw"]


class StorageError(RuntimeError):
    pass


class Storage(Protocol):
    def get(self, url: str) -> bytes: ...
    def put(self, data: bytes, destination: str, resource_type: ResourceType = "image") -> str: ...
    def delete(self, url: str, resource_type: ResourceType = "image") -> bool: ...


def _http_get(client: httpx.Client, url: str) -> bytes:
    try:
        response = client.get(url, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise StorageError(f"Download failed for {url}: {e}") from e
    return response.content


# ---------------------------------------------------------------------------
# Cloudinary
# ---------------------------------------------------------------------------

_VERSION_RE = re.compile(r"^v\d+$")


def cloudinary_public_id(url: str) -> str:
    """``https://res.cloudinary.com/<c>/image/upload/v17/quiz-frames/a.png`` -> ``quiz-frames/a``."""
    path = unquote(urlparse(url).path)
    if "/upload/" not in path:
        raise StorageError(f"Not a Cloudinary delivery URL: {url}")
    parts = path.split("/upload/", 1)[1].split("/")
    if parts and _VERSION_RE.match(parts[0]):
        parts = parts[1:]
    tail = "/".join(parts)
    return tail.rsplit(".", 1)[0] if "." in parts[-1] else tail


def cloudinary_signature(params: dict[str, str], api_secret: str) -> str:
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryStorage:
    """Signed uploads and destroys against the Cloudinary upload API."""

    API_BASE = "https://api.cloudinary.com/v1_1"

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        client: httpx.Client | None = None,
        timeout: float = 60.0,
        clock=time.time,
    ):
        self._cloud = cloud_name
        self._key = api_key
        self._secret = api_secret
        self._client = client or httpx.Client(timeout=timeout)
        self._clock = clock

    def _signed(self, params: dict[str, str]) -> dict[str, str]:
        params = {**params, "timestamp": str(int(self._clock()))}
        return {**params, "api_key": self._key, "signature": cloudinary_signature(params, self._secret)}

    def get(self, url: str) -> bytes:
        return _http_get(self._client, url)

    def put(self, data: bytes, destination: str, resource_type: ResourceType = "image") -> str:
        folder, _, name = destination.rpartition("/")
        params = {"public_id": name.rsplit(".", 1)[0]}
        if folder:
            params["folder"] = folder
        try:
            response = self._client.post(
                f"{self.API_BASE}/{self._cloud}/{resource_type}/upload",
                data=self._signed(params),
                files={"file": (name, data)},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageError(f"Cloudinary upload failed for {destination}: {e}") from e
        url = response.json().get("secure_url")
        if not url:
            raise StorageError(f"Cloudinary upload returned no URL for {destination}")
        return url

    def delete(self, url: str, resource_type: ResourceType = "image") -> bool:
        public_id = cloudinary_public_id(url)
        try:
            response = self._client.post(
                f"{self.API_BASE}/{self._cloud}/{resource_type}/destroy",
                data=self._signed({"public_id": public_id}),
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageError(f"Cloudinary delete failed for {public_id}: {e}") from e
        return response.json().get("result") == "ok"


# ---------------------------------------------------------------------------
# Local directory (development and tests)
# ---------------------------------------------------------------------------

class LocalStorage:
    """Stores objects under ``root`` and hands out ``file://`` URLs."""

    def __init__(self, root: Path, client: httpx.Client | None = None):
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._client = client

    def _path_for(self, url: str) -> Path:
        parsed = urlparse(url)
        if parsed.scheme != "file":
            raise StorageError(f"LocalStorage cannot resolve {url}")
        path = Path(unquote(parsed.path)).resolve()
        if self._root not in path.parents:
            raise StorageError(f"{url} is outside the storage root")
        return path

    def get(self, url: str) -> bytes:
        if urlparse(url).scheme in ("http", "https"):
            if self._client is None:
                self._client = httpx.Client(timeout=60.0)
            return _http_get(self._client, url)
        path = self._path_for(url)
        if not path.exists():
            raise StorageError(f"Not found: {url}")
        return path.read_bytes()

    def put(self, data: bytes, destination: str, resource_type: ResourceType = "image") -> str:
        path = (self._root / destination).resolve()
        if self._root not in path.parents:
            raise StorageError(f"Destination escapes the storage root: {destination}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path.as_uri()

    def delete(self, url: str, resource_type: ResourceType = "image") -> bool:
        path = self._path_for(url)
        if not path.exists():
            return False
        path.unlink()
        return True


def storage_for(credentials: TenantCredentials | None, settings: Settings) -> Storage:
    """Cloudinary when configured and the tenant has storage credentials, else local."""
    if settings.reelpipe_storage_backend == "cloudinary":
        if credentials is None or not credentials.has_storage:
            raise StorageError("Cloudinary storage selected but tenant has no storage credentials")
        return CloudinaryStorage(
            credentials.cloudinary_cloud_name,
            credentials.cloudinary_api_key,
            credentials.cloudinary_api_secret,
            timeout=settings.reelpipe_http_timeout,
        )
    return LocalStorage(settings.storage_dir)
