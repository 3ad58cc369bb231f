"""Media handling: the ffmpeg encoder and storage backends."""

from reelpipe.media.encoder import Encoder, EncoderError, EncoderTimeoutError
from reelpipe.media.storage import CloudinaryStorage, LocalStorage, Storage, StorageError, storage_for

__all__ = [
    "CloudinaryStorage",
    "Encoder",
    "EncoderError",
    "EncoderTimeoutError",
    "LocalStorage",
    "Storage",
    "StorageError",
    "storage_for",
]
