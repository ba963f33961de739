"""Merging of per-frame candidates into canonical watermarks."""

import logging
from dataclasses import replace
from typing import Iterable, List

from models.watermark import WatermarkCandidate

logger = logging.getLogger(__name__)


class WatermarkDeduplicator:
    """
    Collapses candidates that describe the same watermark across frames.

    Two candidates are the same watermark when their overlap exceeds
    ``overlap_threshold`` of the smaller box. The first-seen candidate keeps
    its geometry and confidence; later matches only increment
    ``frames_detected``.
    """

    def __init__(self, overlap_threshold: float = 0.7):
        self.overlap_threshold = overlap_threshold

    def deduplicate(self, candidates: Iterable[WatermarkCandidate],
                    frames_analyzed: int = 0) -> List[WatermarkCandidate]:
        """
        Merge overlapping candidates.

        Args:
            candidates: Raw candidates in frame order
            frames_analyzed: Number of frames the candidates came from; when
                positive, temporal consistency is set from the detection count

        Returns:
            Canonical candidates in first-seen order; inputs are not modified
        """
        merged: List[WatermarkCandidate] = []

        for candidate in candidates:
            match = next(
                (existing for existing in merged
                 if existing.overlaps_with(candidate, self.overlap_threshold)),
                None
            )
            if match is None:
                merged.append(replace(candidate))
            else:
                match.frames_detected += candidate.frames_detected

        if frames_analyzed > 0:
            for candidate in merged:
                candidate.temporal_consistency = round(
                    min(100.0, candidate.frames_detected / frames_analyzed * 100.0), 2
                )

        logger.debug(f"Deduplicated candidates into {len(merged)} watermarks")
        return merged
