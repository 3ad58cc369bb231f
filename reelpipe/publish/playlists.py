"""Tenant-managed playlists, found by a key tag in their description."""

from __future__ import annotations

import logging
import re
import threading
from collections import defaultdict

from reelpipe.cache import Clock, TTLCache
from reelpipe.publish.youtube import VideoPlatform

logger = logging.getLogger(__name__)

MANAGED_TAG_PREFIX = "[managed-by:reelpipe; key:"
MANAGED_TAG_SUFFIX = "]"


def canonical_key(*parts: str) -> str:
    """``("brain_health_tips", "Focus & Tips")`` -> ``brain_health_tips-focus-tips``."""
    cleaned = [re.sub(r"[\s&]+", "-", p.lower().strip()) for p in parts]
    return "-".join(p for p in cleaned if p)


def managed_tag(key: str) -> str:
    return f"{MANAGED_TAG_PREFIX}{key}{MANAGED_TAG_SUFFIX}"


def parse_managed_key(description: str | None) -> str | None:
    if not description:
        return None
    start = description.find(MANAGED_TAG_PREFIX)
    if start == -1:
        return None
    start += len(MANAGED_TAG_PREFIX)
    end = description.find(MANAGED_TAG_SUFFIX, start)
    if end == -1:
        return None
    return description[start:end]


class PlaylistManager:
    """Resolve or create one playlist per (persona, topic) for each tenant.

    The key -> playlist id map is cached per tenant. Creation for a given
    tenant/key is serialised so two uploads never create duplicates.
    """

    def __init__(self, cache_ttl: float = 300.0, clock: Clock | None = None):
        self._maps: TTLCache[dict[str, str]] = TTLCache(cache_ttl, clock)
        self._locks: dict[tuple[str, str], threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    def _lock_for(self, tenant_id: str, key: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks[(tenant_id, key)]

    def managed_playlists(self, tenant_id: str, platform: VideoPlatform) -> dict[str, str]:
        def load() -> dict[str, str]:
            found: dict[str, str] = {}
            for collection in platform.list_collections():
                key = parse_managed_key(collection.description)
                if key:
                    found[key] = collection.id
            logger.info("Tenant %s: %d managed playlists", tenant_id, len(found))
            return found

        return self._maps.get_or_load(tenant_id, load)

    def get_or_create(
        self,
        tenant_id: str,
        platform: VideoPlatform,
        persona: str,
        topic: str,
        title: str,
        description: str = "",
    ) -> str:
        key = canonical_key(persona, topic)
        playlists = self.managed_playlists(tenant_id, platform)
        if key in playlists:
            return playlists[key]
        with self._lock_for(tenant_id, key):
            playlists = self.managed_playlists(tenant_id, platform)
            if key in playlists:
                return playlists[key]
            body = f"{description}\n\n{managed_tag(key)}".strip()
            playlist_id = platform.create_collection(title, body)
            playlists[key] = playlist_id
            logger.info("Tenant %s: created playlist %s for %s", tenant_id, playlist_id, key)
            return playlist_id

    def invalidate(self, tenant_id: str | None = None) -> None:
        if tenant_id is None:
            self._maps.clear()
        else:
            self._maps.invalidate(tenant_id)
