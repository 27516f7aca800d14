"""Audio segmentation: decide pass-through vs. split, and split with ffmpeg."""

import logging
import re
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from app.config import get_settings
from app.exceptions import SegmentationFailed
from app.services.storage import SEGMENT_NAME_PATTERN

logger = logging.getLogger("splitscribe")


class Segmenter(ABC):
    """Splits audio above a size threshold into time-bounded segments.

    The threshold only gates whether splitting happens; segment length is a
    time interval chosen by the concrete splitter.
    """

    def __init__(self, threshold_bytes: int) -> None:
        self.threshold_bytes = threshold_bytes

    def needs_split(self, source: Path) -> bool:
        return source.stat().st_size > self.threshold_bytes

    def segment(self, source: Path, output_dir: Path) -> list[Path]:
        """Return the ordered segments for ``source``.

        Files at or below the threshold are returned unchanged as a single
        segment. An empty list means the splitter produced nothing.
        """
        if not self.needs_split(source):
            return [source]
        return self.split(source, output_dir)

    @abstractmethod
    def split(self, source: Path, output_dir: Path) -> list[Path]:
        """Split ``source`` into ``output_dir``. Raises SegmentationFailed."""
        raise NotImplementedError

    def probe_duration(self, source: Path) -> float | None:
        """Audio duration in seconds, if the implementation can tell."""
        return None


def collect_segments(output_dir: Path) -> list[Path]:
    """Segment files in ``output_dir`` in lexical (= temporal) order."""
    return sorted(
        (path for path in output_dir.iterdir() if path.is_file() and SEGMENT_NAME_PATTERN.match(path.name)),
        key=lambda path: path.name,
    )


class FFmpegSegmenter(Segmenter):
    """Fixed-interval splitter using ffmpeg's segment muxer with stream copy."""

    def __init__(
        self,
        threshold_bytes: int,
        segment_time: int = 600,
        ffmpeg_bin: str = "ffmpeg",
        ffprobe_bin: str = "ffprobe",
        timeout_s: float | None = None,
    ) -> None:
        super().__init__(threshold_bytes)
        self.segment_time = segment_time
        self.ffmpeg_bin = ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin
        self.timeout_s = timeout_s

    def build_command(self, source: Path, output_dir: Path) -> list[str]:
        ext = source.suffix.lower() or ".mp3"
        return [
            self.ffmpeg_bin,
            "-hide_banner",
            "-nostdin",
            "-i",
            str(source),
            "-f",
            "segment",
            "-segment_time",
            str(self.segment_time),
            "-c",
            "copy",
            "-map",
            "0",
            str(output_dir / f"chunk_%03d{ext}"),
        ]

    def split(self, source: Path, output_dir: Path) -> list[Path]:
        output_dir.mkdir(parents=True, exist_ok=True)
        args = self.build_command(source, output_dir)
        logger.info("Splitting %s into %ss segments", source.name, self.segment_time)
        try:
            result = subprocess.run(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
                timeout=self.timeout_s,
            )
        except FileNotFoundError as exc:
            raise SegmentationFailed(f"ffmpeg binary not found: {self.ffmpeg_bin}") from exc
        except subprocess.TimeoutExpired as exc:
            raise SegmentationFailed(f"ffmpeg timed out after {self.timeout_s}s") from exc

        stderr = (result.stderr or b"").decode(errors="ignore")
        if stderr:
            logger.debug("FFmpeg: %s", stderr)
        if result.returncode != 0:
            message = f"FFmpeg failed with code {result.returncode}"
            last_line = stderr.strip().splitlines()[-1:]
            if last_line:
                message += f": {last_line[0]}"
            raise SegmentationFailed(message, exit_code=result.returncode)

        segments = collect_segments(output_dir)
        logger.info("Audio split into %d parts in %s", len(segments), output_dir.name)
        return segments

    def probe_duration(self, source: Path) -> float | None:
        """Best-effort duration via ffprobe; None when ffprobe is missing or fails."""
        args = [
            self.ffprobe_bin,
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(source),
        ]
        try:
            result = subprocess.run(args, stdout=subprocess.PIPE, stderr=subprocess.PIPE, check=False, timeout=60)
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.debug("ffprobe unavailable for %s: %s", source.name, exc)
            return None
        match = re.search(r"\d+(?:\.\d+)?", (result.stdout or b"").decode(errors="ignore"))
        if result.returncode != 0 or not match:
            return None
        return float(match.group())


_segmenter: Segmenter | None = None


def get_segmenter() -> Segmenter:
    """Get singleton segmenter instance."""
    global _segmenter
    if _segmenter is None:
        settings = get_settings()
        _segmenter = FFmpegSegmenter(
            threshold_bytes=settings.split_threshold_bytes,
            segment_time=settings.SEGMENT_TIME_SECONDS,
            ffmpeg_bin=settings.FFMPEG_BINARY,
            ffprobe_bin=settings.FFPROBE_BINARY,
            timeout_s=settings.SEGMENT_TIMEOUT_SECONDS,
        )
    return _segmenter
