"""ffmpeg invocations with a hard wall-clock deadline."""

from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path

logger = logging.getLogger(__name__)


class EncoderError(RuntimeError):
    """Encoder could not be started or exited non-zero."""


class EncoderTimeoutError(EncoderError):
    """Encoder exceeded its deadline and was killed."""


class Encoder:
    def __init__(self, binary: str = "ffmpeg", timeout: float = 40.0):
        self.binary = binary
        self.timeout = timeout

    def run(self, args: list[str], cwd: Path | None = None, timeout: float | None = None) -> None:
        """Run ``binary *args``; raise EncoderTimeoutError after the deadline.

        subprocess.run kills the child when the timeout expires, so nothing
        outlives the call.
        """
        deadline = self.timeout if timeout is None else timeout
        cmd = [self.binary, *args]
        start = time.monotonic()
        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                timeout=deadline,
            )
        except subprocess.TimeoutExpired:
            raise EncoderTimeoutError(
                f"Encoder timed out after {deadline:.0f}s and was killed: {Path(self.binary).name} "
                + " ".join(args[-1:])
            ) from None
        except OSError as e:
            raise EncoderError(f"Could not start encoder '{self.binary}': {e}") from e
        if result.returncode != 0:
            tail = (result.stderr or "").strip()[-400:]
            raise EncoderError(f"Encoder exited with code {result.returncode}: {tail}")
        logger.debug("Encoder finished in %.2fs: %s", time.monotonic() - start, args[-1:])


# ---------------------------------------------------------------------------
# Command builders
# ---------------------------------------------------------------------------

def clip_args(image: Path, duration: float, output: Path, width: int, height: int, fps: int) -> list[str]:
    """Still image -> fixed-length H.264 clip at the target resolution."""
    return [
        "-y",
        "-loop", "1",
        "-i", str(image),
        "-t", f"{duration:.2f}",
        "-vf", f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
               f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2,format=yuv420p",
        "-r", str(fps),
        "-c:v", "libx264",
        "-preset", "ultrafast",
        "-crf", "28",
        "-an",
        str(output),
    ]


def concat_list(clips: list[Path]) -> str:
    """Concat-demuxer list file contents for ``clips`` in order."""
    return "".join(f"file '{c.name}'\n" for c in clips)


def concat_args(list_file: Path, output: Path, audio: Path | None = None, volume: float = 0.3) -> list[str]:
    """Join clips listed in ``list_file``; optionally mix in a looped background track."""
    args = ["-y", "-f", "concat", "-safe", "0", "-i", str(list_file)]
    if audio is None:
        return args + ["-c", "copy", "-movflags", "+faststart", str(output)]
    return args + [
        "-stream_loop", "-1",
        "-i", str(audio),
        "-filter:a", f"volume={volume}",
        "-map", "0:v:0",
        "-map", "1:a:0",
        "-c:v", "copy",
        "-c:a", "aac",
        "-shortest",
        "-movflags", "+faststart",
        str(output),
    ]
