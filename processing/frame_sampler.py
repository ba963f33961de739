"""
Evenly spaced still extraction for watermark detection.

The sampler never raises for tool failures: probing problems fall back to
estimated metadata and extraction problems are reported on the returned
SamplingOutcome for the caller to act on.
"""

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Tuple

from models.video_metadata import VideoMetadata
from processing.errors import ExtractionError, ExtractionUnavailable, ProbeError
from processing.estimators import estimate_video_metadata
from processing.ffmpeg_tool import FFmpegTool

logger = logging.getLogger(__name__)


@dataclass
class FrameSamplerConfig:
    """Configuration parameters for frame sampling."""

    min_samples: int = 3
    max_samples: int = 10
    seconds_per_sample: float = 10.0  # Default density when no count is requested
    assumed_fps: float = 30.0
    default_resolution: Tuple[int, int] = (1920, 1080)
    image_format: str = 'png'

    @classmethod
    def from_settings(cls, settings: Any) -> 'FrameSamplerConfig':
        return cls(
            min_samples=settings.MIN_SAMPLE_FRAMES,
            max_samples=settings.MAX_SAMPLE_FRAMES,
            assumed_fps=settings.ASSUMED_FPS
        )


@dataclass(frozen=True)
class SampledFrame:
    """A still written to scratch storage."""

    index: int
    frame_number: int
    timestamp: float
    path: Path


@dataclass
class SamplingOutcome:
    """Frames extracted from a video plus the metadata used to place them."""

    metadata: VideoMetadata
    frames_requested: int
    frames: List[SampledFrame] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return len(self.frames) > 0

    @property
    def total_frames(self) -> int:
        return self.metadata.total_frames

    @property
    def frames_estimated(self) -> bool:
        return self.metadata.estimated


class FrameSampler:
    """Pulls a small, evenly spaced set of stills out of a video."""

    def __init__(self, tool: FFmpegTool, config: Optional[FrameSamplerConfig] = None):
        self.tool = tool
        self.config = config or FrameSamplerConfig()

    def resolve_sample_count(self, requested: Optional[int], duration: float,
                             total_frames: int = 0) -> int:
        """
        Clamp the requested sample count to the configured bounds.

        Without a request, one frame per ``seconds_per_sample`` of duration is used.
        A known ``total_frames`` caps the count so no frame is sampled twice.
        """
        if requested is None:
            requested = math.ceil(duration / self.config.seconds_per_sample) if duration > 0 else 0
        count = max(self.config.min_samples, min(self.config.max_samples, int(requested)))
        if total_frames > 0:
            count = min(count, total_frames)
        return count

    def probe_or_estimate(self, video_ref: str) -> VideoMetadata:
        """Probe the video, falling back to a size-based estimate."""
        try:
            metadata = self.tool.probe(video_ref)
        except ProbeError as e:
            logger.warning(f"Probe failed for {video_ref}, estimating metadata: {e}")
            return estimate_video_metadata(video_ref, self.config.assumed_fps, self.config.default_resolution)

        if metadata.fps <= 0:
            metadata.fps = self.config.assumed_fps
            metadata.estimated = True
        if metadata.width <= 0 or metadata.height <= 0:
            metadata.resolution = self.config.default_resolution
            metadata.estimated = True
        if metadata.total_frames <= 0:
            estimate = estimate_video_metadata(video_ref, metadata.fps, metadata.resolution)
            metadata.duration = estimate.duration
            metadata.estimated = True

        return metadata

    def frame_positions(self, total_frames: int, sample_count: int, fps: float) -> List[Tuple[int, float]]:
        """
        Compute (frame_number, timestamp) pairs spaced ``total_frames / sample_count`` apart.
        """
        if total_frames <= 0 or sample_count <= 0:
            return []

        interval = total_frames / sample_count
        positions = []
        for i in range(sample_count):
            frame_number = min(int(i * interval), total_frames - 1)
            positions.append((frame_number, frame_number / fps if fps > 0 else 0.0))
        return positions

    def sample(self, video_ref: str, scratch_dir: Path, sample_count: Optional[int] = None) -> SamplingOutcome:
        """
        Extract evenly spaced stills into ``scratch_dir``.

        Args:
            video_ref: Local path or URI of the video
            scratch_dir: Existing directory receiving the stills
            sample_count: Requested number of stills, clamped to the configured bounds

        Returns:
            SamplingOutcome; ``ok`` is False when no still could be extracted
        """
        metadata = self.probe_or_estimate(video_ref)
        count = self.resolve_sample_count(sample_count, metadata.duration, metadata.total_frames)
        outcome = SamplingOutcome(metadata=metadata, frames_requested=count)

        positions = self.frame_positions(metadata.total_frames, count, metadata.fps)
        if not positions:
            outcome.error = f"No frames to sample in {video_ref}"
            logger.warning(outcome.error)
            return outcome

        failures = []
        for index, (frame_number, timestamp) in enumerate(positions):
            still_path = scratch_dir / f"frame_{index:03d}.{self.config.image_format}"
            try:
                self.tool.extract_frame(video_ref, timestamp, still_path)
            except ExtractionUnavailable as e:
                failures.append(str(e))
                logger.warning(f"Stopping extraction for {video_ref} after {index + 1} attempts: {e}")
                break
            except ExtractionError as e:
                failures.append(str(e))
                continue
            outcome.frames.append(SampledFrame(index, frame_number, timestamp, still_path))

        if failures and outcome.frames:
            logger.warning(f"Extracted {len(outcome.frames)}/{len(positions)} frames from {video_ref}; "
                           f"last error: {failures[-1]}")
        elif failures:
            outcome.error = failures[-1]
            logger.error(f"Frame extraction failed for {video_ref}: {outcome.error}")
        else:
            logger.info(f"Extracted {len(outcome.frames)} frames from {video_ref}")

        return outcome
