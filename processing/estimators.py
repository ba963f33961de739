"""
Approximation functions used for planning and fallbacks.

Nothing in this module measures anything. Every value returned here is a
deterministic estimate derived from static tables, file size, or watermark
counts, and callers label the results as estimates.
"""

import logging
import os
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Tuple

import psutil

from models.removal_method import METHOD_PROFILES, RemovalMethod
from models.report import ResourceEstimate
from models.video_metadata import VideoMetadata
from models.watermark import RemovalDifficulty, WatermarkCandidate

logger = logging.getLogger(__name__)


# Nominal container bitrates in bits per second
CONTAINER_BITRATES: Mapping[str, int] = MappingProxyType({
    'mp4': 4_000_000,
    'm4v': 4_000_000,
    'mov': 8_000_000,
    'mkv': 5_000_000,
    'webm': 2_000_000,
    'avi': 6_000_000,
})
DEFAULT_BITRATE = 4_000_000

DIFFICULTY_MULTIPLIERS: Mapping[RemovalDifficulty, float] = MappingProxyType({
    RemovalDifficulty.EASY: 1.0,
    RemovalDifficulty.MEDIUM: 1.5,
    RemovalDifficulty.HARD: 2.0,
})
BASE_SECONDS_PER_DIFFICULTY_UNIT = 60

CPU_PERCENT_PER_WATERMARK = 25
MEMORY_MB_PER_WATERMARK = 512
MAX_MEMORY_MB = 4096


def estimate_video_metadata(video_ref: str, assumed_fps: float = 30.0,
                            default_resolution: Tuple[int, int] = (1920, 1080)) -> VideoMetadata:
    """
    Estimate stream metadata when the video could not be probed.

    Duration comes from the file size divided by a nominal bitrate for the
    container; frame count is duration times ``assumed_fps``.

    Args:
        video_ref: Local path or URI of the video
        assumed_fps: Frame rate to assume
        default_resolution: Frame size to assume

    Returns:
        VideoMetadata flagged as estimated
    """
    container = Path(video_ref.split('?', 1)[0]).suffix.lower().lstrip('.') or 'unknown'
    bitrate = CONTAINER_BITRATES.get(container, DEFAULT_BITRATE)

    try:
        file_size = os.path.getsize(video_ref)
    except OSError:
        file_size = 0

    duration = (file_size * 8) / bitrate if file_size else 0.0
    metadata = VideoMetadata(
        duration=duration,
        fps=assumed_fps,
        resolution=default_resolution,
        format=container,
        file_size=file_size,
        estimated=True
    )
    logger.info(f"Estimated metadata for {video_ref}: {duration:.1f}s at {assumed_fps}fps "
                f"({metadata.total_frames} frames, {container} @ {bitrate // 1_000_000} Mbit/s)")
    return metadata


def estimate_removal_seconds(method: RemovalMethod, watermark_count: int) -> int:
    """Base seconds of the method profile times the number of watermarks."""
    return METHOD_PROFILES[method].base_seconds_per_watermark * max(0, watermark_count)


def estimate_seconds_by_difficulty(watermarks: Iterable[WatermarkCandidate]) -> int:
    """Sum of 60 seconds per watermark weighted by its removal difficulty."""
    total = sum(
        BASE_SECONDS_PER_DIFFICULTY_UNIT * DIFFICULTY_MULTIPLIERS[watermark.removal_difficulty]
        for watermark in watermarks
    )
    return int(round(total))


def estimate_resources(watermark_count: int) -> ResourceEstimate:
    """
    Advisory CPU and memory figures for a removal of ``watermark_count`` watermarks.

    Host figures come from psutil and are reported alongside the estimate;
    they do not change it.
    """
    memory = psutil.virtual_memory()
    return ResourceEstimate(
        cpu_percent=min(watermark_count * CPU_PERCENT_PER_WATERMARK, 100),
        memory_mb=min(watermark_count * MEMORY_MB_PER_WATERMARK, MAX_MEMORY_MB),
        available_memory_mb=int(memory.available / 1024 / 1024),
        cpu_count=psutil.cpu_count() or 1
    )
