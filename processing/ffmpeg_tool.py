"""
Thin wrapper around the ffmpeg and ffprobe binaries.

Every interaction with the external transcode tool goes through FFmpegTool so
that the rest of the pipeline can be tested with a mock in its place.
"""

import json
import logging
import os
import subprocess
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from models.video_metadata import VideoMetadata
from processing.errors import ExtractionError, ExtractionUnavailable, ProbeError, TranscodeError

logger = logging.getLogger(__name__)


@dataclass
class FFmpegToolConfig:
    """Binary locations and timeouts for the transcode tool."""

    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    probe_timeout: int = 30
    extraction_timeout: int = 30
    reencode_timeout: int = 3600

    @classmethod
    def from_settings(cls, settings: Any) -> 'FFmpegToolConfig':
        return cls(
            ffmpeg_binary=settings.FFMPEG_BINARY,
            ffprobe_binary=settings.FFPROBE_BINARY,
            probe_timeout=settings.PROBE_TIMEOUT,
            extraction_timeout=settings.EXTRACTION_TIMEOUT,
            reencode_timeout=settings.REENCODE_TIMEOUT
        )


def _parse_frame_rate(rate: Optional[str]) -> float:
    """Parse an ffprobe rational such as ``30000/1001``."""
    if not rate:
        return 0.0
    try:
        if '/' in rate:
            numerator, denominator = rate.split('/', 1)
            denominator_value = float(denominator)
            return float(numerator) / denominator_value if denominator_value else 0.0
        return float(rate)
    except ValueError:
        return 0.0


class FFmpegTool:
    """Probe, frame extraction and filtered re-encode through ffmpeg."""

    def __init__(self, config: Optional[FFmpegToolConfig] = None):
        self.config = config or FFmpegToolConfig()

    def probe(self, video_ref: str) -> VideoMetadata:
        """
        Read stream metadata with ffprobe.

        Args:
            video_ref: Local path or URI of the video

        Returns:
            VideoMetadata for the first video stream

        Raises:
            ProbeError: If ffprobe is missing, fails, times out, or reports no video stream
        """
        cmd = [
            self.config.ffprobe_binary,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            video_ref,
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True,
                                    timeout=self.config.probe_timeout)
        except subprocess.TimeoutExpired:
            raise ProbeError(f"ffprobe timed out after {self.config.probe_timeout}s for {video_ref}")
        except FileNotFoundError:
            raise ProbeError(f"ffprobe binary not found: {self.config.ffprobe_binary}")

        if result.returncode != 0:
            raise ProbeError(f"ffprobe failed for {video_ref}: {result.stderr[:200]}")

        try:
            info = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ProbeError(f"ffprobe returned invalid JSON for {video_ref}: {e}")

        return self._metadata_from_probe(video_ref, info)

    def _metadata_from_probe(self, video_ref: str, info: Dict[str, Any]) -> VideoMetadata:
        streams = info.get("streams") or []
        video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
        if video_stream is None:
            raise ProbeError(f"No video stream found in {video_ref}")

        format_info = info.get("format") or {}

        fps = _parse_frame_rate(video_stream.get("avg_frame_rate"))
        if fps <= 0:
            fps = _parse_frame_rate(video_stream.get("r_frame_rate"))

        try:
            duration = float(video_stream.get("duration") or format_info.get("duration") or 0.0)
        except ValueError:
            duration = 0.0

        try:
            frame_count = int(video_stream["nb_frames"]) if video_stream.get("nb_frames") else None
        except ValueError:
            frame_count = None

        if format_info.get("size"):
            file_size = int(format_info["size"])
        elif os.path.exists(video_ref):
            file_size = os.path.getsize(video_ref)
        else:
            file_size = 0

        format_name = Path(video_ref).suffix.lower().lstrip('.')
        if not format_name:
            format_name = (format_info.get("format_name") or "unknown").split(',')[0]

        metadata = VideoMetadata(
            duration=duration,
            fps=fps,
            resolution=(int(video_stream.get("width") or 0), int(video_stream.get("height") or 0)),
            format=format_name,
            file_size=file_size,
            frame_count=frame_count
        )

        logger.info(f"Probed {video_ref}: {metadata.width}x{metadata.height}, "
                    f"{fps:.2f}fps, {duration:.1f}s, {metadata.total_frames} frames")
        return metadata

    def extract_frame(self, video_ref: str, timestamp: float, output_path: Path) -> Path:
        """
        Write a single still taken at ``timestamp`` seconds.

        Args:
            video_ref: Local path or URI of the video
            timestamp: Seek position in seconds
            output_path: Where the still image is written

        Returns:
            The path of the written still

        Raises:
            ExtractionUnavailable: If ffmpeg is missing or times out
            ExtractionError: If ffmpeg fails or writes nothing
        """
        output_path = Path(output_path)
        cmd = [
            self.config.ffmpeg_binary,
            "-hide_banner", "-v", "error", "-y",
            "-ss", f"{timestamp:.3f}",
            "-i", video_ref,
            "-frames:v", "1",
            str(output_path),
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True,
                                    timeout=self.config.extraction_timeout)
        except subprocess.TimeoutExpired:
            raise ExtractionUnavailable(
                f"Frame extraction at {timestamp:.2f}s timed out after {self.config.extraction_timeout}s"
            )
        except FileNotFoundError:
            raise ExtractionUnavailable(f"ffmpeg binary not found: {self.config.ffmpeg_binary}")

        if result.returncode != 0:
            raise ExtractionError(f"Frame extraction at {timestamp:.2f}s failed: {result.stderr[:200]}")

        if not output_path.exists() or output_path.stat().st_size == 0:
            raise ExtractionError(f"Frame extraction at {timestamp:.2f}s produced no image")

        return output_path

    def reencode(self, input_ref: str, output_path: Path, filter_chain: str,
                 progress_callback: Optional[Callable[[int], None]] = None,
                 timeout: Optional[int] = None) -> Path:
        """
        Re-encode the video through a filter chain, copying the audio track.

        Args:
            input_ref: Source video
            output_path: Destination file, overwritten if present
            filter_chain: ffmpeg ``-vf`` expression
            progress_callback: Called with the number of frames encoded so far
            timeout: Seconds before the encode is killed (defaults to the configured value)

        Returns:
            The output path

        Raises:
            TranscodeError: If ffmpeg is missing, exits non-zero, or runs past the timeout
        """
        timeout = timeout if timeout is not None else self.config.reencode_timeout
        output_path = Path(output_path)
        cmd = [
            self.config.ffmpeg_binary,
            "-hide_banner", "-v", "error", "-y",
            "-i", input_ref,
            "-vf", filter_chain,
            "-c:a", "copy",
            "-progress", "pipe:1",
            "-nostats",
            str(output_path),
        ]
        logger.debug(f"Running re-encode: {' '.join(cmd)}")

        timed_out = threading.Event()

        with tempfile.TemporaryFile(mode="w+") as stderr_file:
            try:
                process = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=stderr_file, text=True)
            except FileNotFoundError:
                raise TranscodeError(f"ffmpeg binary not found: {self.config.ffmpeg_binary}")

            def _kill():
                timed_out.set()
                process.kill()

            timer = threading.Timer(timeout, _kill)
            timer.daemon = True
            timer.start()
            try:
                for line in process.stdout:
                    key, _, value = line.strip().partition("=")
                    if key == "frame" and progress_callback:
                        try:
                            progress_callback(int(value))
                        except ValueError:
                            continue
                process.wait()
            finally:
                timer.cancel()
                process.stdout.close()

            if timed_out.is_set():
                raise TranscodeError(f"Re-encode timed out after {timeout}s")

            if process.returncode != 0:
                stderr_file.seek(0)
                stderr = stderr_file.read().strip()
                raise TranscodeError(stderr[-500:] or f"ffmpeg exited with code {process.returncode}")

        if not output_path.exists() or output_path.stat().st_size == 0:
            raise TranscodeError("Output video file was not created successfully")

        logger.info(f"Re-encode finished: {output_path}")
        return output_path
