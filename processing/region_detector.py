"""Watermark region scoring over sampled stills using OpenCV and numpy."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

import cv2
import numpy as np

from models.watermark import BoundingBox, RemovalDifficulty, WatermarkCandidate, WatermarkType
from processing.errors import MissingCapability

logger = logging.getLogger(__name__)


@dataclass
class RegionDetectorConfig:
    """Configuration parameters for the region heuristic."""

    # Candidate regions
    corner_ratio: float = 0.30  # Corner boxes are this fraction of width and height
    bottom_band_ratio: float = 0.20  # Height of the full-width bottom band

    # Scoring
    score_threshold: float = 70.0  # Regions scoring strictly above this are emitted
    max_score: float = 98.0
    transparency_weight: float = 0.4
    edge_weight: float = 0.3
    color_weight: float = 0.3

    # Sampling strides in pixels
    transparency_stride: int = 5
    edge_stride: int = 3
    color_stride: int = 4

    edge_delta_threshold: int = 30  # Summed RGB difference that counts as an edge

    # Region area / frame area bounds for difficulty classes
    easy_area_ratio: float = 0.05
    medium_area_ratio: float = 0.15

    @classmethod
    def from_settings(cls, settings: Any) -> 'RegionDetectorConfig':
        return cls(
            corner_ratio=settings.CORNER_REGION_RATIO,
            bottom_band_ratio=settings.BOTTOM_BAND_RATIO,
            score_threshold=settings.DETECTION_SCORE_THRESHOLD
        )


@dataclass(frozen=True)
class Region:
    """A fixed area of the frame that is scored as a whole."""

    name: str
    box: BoundingBox
    watermark_type: WatermarkType


@dataclass(frozen=True)
class RegionScore:
    transparency: float
    edge_density: float
    color_consistency: float
    score: float


@dataclass
class FrameAnalysis:
    """Scores and emitted candidates for one still."""

    frame_index: int
    width: int
    height: int
    candidates: List[WatermarkCandidate] = field(default_factory=list)
    regions_evaluated: int = 0
    max_score: float = 0.0


class PixelReader:
    """Loads stills as RGBA arrays."""

    def read(self, path: Path) -> Optional[np.ndarray]:
        """
        Read an image file into an ``(H, W, 4)`` uint8 RGBA array.

        Returns:
            The pixel array, or None when the file cannot be decoded
        """
        image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if image is None or image.size == 0:
            return None

        if image.dtype != np.uint8:
            image = cv2.convertScaleAbs(image, alpha=255.0 / max(1, int(image.max())))

        if image.ndim == 2:
            return cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
        if image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)


def transparency_score(region: np.ndarray, stride: int) -> float:
    """Percentage of sampled pixels with a non-zero alpha channel."""
    sampled = region[::stride, ::stride, 3]
    if sampled.size == 0:
        return 0.0
    return float(np.count_nonzero(sampled) / sampled.size * 100.0)


def edge_density_score(region: np.ndarray, stride: int, delta_threshold: int) -> float:
    """
    Fraction of right/below neighbour pairs whose channel delta exceeds the
    threshold, scaled by 200 and clamped to 100.
    """
    height, width = region.shape[:2]
    if height < 2 or width < 2:
        return 0.0

    rgb = region[:, :, :3].astype(np.int32)
    ys = np.arange(0, height - 1, stride)
    xs = np.arange(0, width - 1, stride)
    origin = rgb[np.ix_(ys, xs)]
    right = rgb[np.ix_(ys, xs + 1)]
    below = rgb[np.ix_(ys + 1, xs)]

    right_edges = np.abs(origin - right).sum(axis=2) > delta_threshold
    below_edges = np.abs(origin - below).sum(axis=2) > delta_threshold

    pairs = right_edges.size + below_edges.size
    if pairs == 0:
        return 0.0
    fraction = (np.count_nonzero(right_edges) + np.count_nonzero(below_edges)) / pairs
    return float(min(100.0, fraction * 200.0))


def color_consistency_score(region: np.ndarray, stride: int) -> float:
    """``max(0, 100 - variance / 100)`` where variance is the mean per-channel variance."""
    sampled = region[::stride, ::stride, :3].reshape(-1, 3).astype(np.float64)
    if sampled.shape[0] == 0:
        return 0.0
    variance = float(np.var(sampled, axis=0).mean())
    return max(0.0, 100.0 - variance / 100.0)


def score_region(rgba: np.ndarray, box: BoundingBox, config: RegionDetectorConfig) -> RegionScore:
    """
    Score a region of an RGBA frame.

    Args:
        rgba: Frame pixels, ``(H, W, 4)``
        box: Region to score
        config: Weights, strides and thresholds

    Returns:
        RegionScore with the three sub-scores and the weighted total in [0, max_score]
    """
    region = rgba[box.y:box.bottom, box.x:box.right]

    transparency = transparency_score(region, config.transparency_stride)
    edges = edge_density_score(region, config.edge_stride, config.edge_delta_threshold)
    consistency = color_consistency_score(region, config.color_stride)

    total = (config.transparency_weight * transparency
             + config.edge_weight * edges
             + config.color_weight * consistency)
    total = max(0.0, min(config.max_score, total))

    return RegionScore(transparency, edges, consistency, total)


class RegionHeuristicDetector:
    """
    Flags corner and bottom-band regions that look like overlays.

    Every frame is split into four corner boxes and one full-width bottom
    band; each is scored on transparency, edge density and colour
    consistency and emitted as a candidate when the score clears the
    threshold.
    """

    def __init__(self, config: Optional[RegionDetectorConfig] = None,
                 pixel_reader: Optional[PixelReader] = None):
        """
        Initialize the detector.

        Args:
            config: Region geometry and scoring configuration. Uses defaults if None.
            pixel_reader: Reader for stills; without one no frame can be inspected
        """
        self.config = config or RegionDetectorConfig()
        self.pixel_reader = pixel_reader

    @property
    def can_inspect_pixels(self) -> bool:
        return self.pixel_reader is not None

    def regions_for(self, width: int, height: int) -> List[Region]:
        """Build the five scored regions for a frame of the given size."""
        corner_w = max(1, int(width * self.config.corner_ratio))
        corner_h = max(1, int(height * self.config.corner_ratio))
        band_h = max(1, int(height * self.config.bottom_band_ratio))

        return [
            Region('top_left', BoundingBox(0, 0, corner_w, corner_h), WatermarkType.LOGO),
            Region('top_right', BoundingBox(width - corner_w, 0, corner_w, corner_h), WatermarkType.LOGO),
            Region('bottom_left', BoundingBox(0, height - corner_h, corner_w, corner_h), WatermarkType.LOGO),
            Region('bottom_right', BoundingBox(width - corner_w, height - corner_h, corner_w, corner_h),
                   WatermarkType.LOGO),
            Region('bottom_band', BoundingBox(0, height - band_h, width, band_h), WatermarkType.TEXT),
        ]

    def difficulty_for(self, box: BoundingBox, frame_area: int) -> RemovalDifficulty:
        ratio = box.area / frame_area if frame_area > 0 else 1.0
        if ratio <= self.config.easy_area_ratio:
            return RemovalDifficulty.EASY
        if ratio <= self.config.medium_area_ratio:
            return RemovalDifficulty.MEDIUM
        return RemovalDifficulty.HARD

    def analyze_frame(self, rgba: np.ndarray, frame_index: int = 0) -> FrameAnalysis:
        """
        Score every region of a frame.

        Args:
            rgba: Frame as an ``(H, W, 4)`` RGBA array
            frame_index: Position of the frame in the sample

        Returns:
            FrameAnalysis with one candidate per region above the threshold
        """
        height, width = rgba.shape[:2]
        analysis = FrameAnalysis(frame_index=frame_index, width=width, height=height)

        for region in self.regions_for(width, height):
            result = score_region(rgba, region.box, self.config)
            analysis.regions_evaluated += 1
            analysis.max_score = max(analysis.max_score, result.score)

            logger.debug(f"Frame {frame_index} {region.name}: t={result.transparency:.1f} "
                         f"e={result.edge_density:.1f} c={result.color_consistency:.1f} "
                         f"score={result.score:.2f}")

            if result.score > self.config.score_threshold:
                analysis.candidates.append(WatermarkCandidate.create_new(
                    watermark_type=region.watermark_type,
                    confidence=round(result.score, 2),
                    location=region.box,
                    removal_difficulty=self.difficulty_for(region.box, width * height)
                ))

        return analysis

    def analyze_still(self, path: Path, frame_index: int = 0) -> Optional[FrameAnalysis]:
        """
        Read and score a still from disk.

        Returns:
            FrameAnalysis, or None if the still could not be decoded

        Raises:
            MissingCapability: If no pixel reader is available
        """
        if self.pixel_reader is None:
            raise MissingCapability("Pixel inspection is not available")

        rgba = self.pixel_reader.read(path)
        if rgba is None:
            logger.warning(f"Skipping unreadable frame {path}")
            return None

        return self.analyze_frame(rgba, frame_index)

    def default_region_candidate(self, width: int, height: int) -> WatermarkCandidate:
        """Candidate anchored at 85% of width and height, used when no stills exist."""
        box = BoundingBox(
            x=int(width * 0.85),
            y=int(height * 0.85),
            width=max(1, int(width * 0.10)),
            height=max(1, int(height * 0.10))
        )
        return WatermarkCandidate.create_new(
            watermark_type=WatermarkType.LOGO,
            confidence=75.0,
            location=box,
            removal_difficulty=RemovalDifficulty.MEDIUM
        )

    def static_candidate(self) -> WatermarkCandidate:
        """Fixed candidate used when pixels cannot be inspected at all."""
        return WatermarkCandidate.create_new(
            watermark_type=WatermarkType.LOGO,
            confidence=60.0,
            location=BoundingBox(50, 50, 100, 50),
            removal_difficulty=RemovalDifficulty.MEDIUM
        )
