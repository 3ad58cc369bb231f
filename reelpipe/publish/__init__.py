"""Publishing to the video platform: client, metadata and managed playlists."""

from reelpipe.publish.metadata import VideoMetadata, build_metadata
from reelpipe.publish.playlists import PlaylistManager, canonical_key
from reelpipe.publish.youtube import Collection, PlatformError, VideoPlatform, YouTubeClient

__all__ = [
    "Collection",
    "PlatformError",
    "PlaylistManager",
    "VideoMetadata",
    "VideoPlatform",
    "YouTubeClient",
    "build_metadata",
    "canonical_key",
]
