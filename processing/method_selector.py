"""Confidence aggregation and removal method selection."""

from typing import Iterable, Mapping, Optional

from models.removal_method import METHOD_PROFILES, MethodProfile, RemovalMethod
from models.watermark import WatermarkCandidate


def aggregate_confidence(candidates: Iterable[WatermarkCandidate]) -> float:
    """Mean candidate confidence rounded to two decimals, 0.0 when empty."""
    confidences = [candidate.confidence for candidate in candidates]
    if not confidences:
        return 0.0
    return round(sum(confidences) / len(confidences), 2)


class MethodSelector:
    """
    Picks a removal method from the mean detection confidence.

    The thresholds are strict: a mean of exactly 90 selects temporal
    coherence, not inpainting.
    """

    THRESHOLDS = (
        (90.0, RemovalMethod.INPAINTING),
        (80.0, RemovalMethod.TEMPORAL_COHERENCE),
        (70.0, RemovalMethod.CONTENT_AWARE),
    )
    FALLBACK = RemovalMethod.FREQUENCY_DOMAIN

    def __init__(self, profiles: Optional[Mapping[RemovalMethod, MethodProfile]] = None):
        self.profiles = profiles if profiles is not None else METHOD_PROFILES

    def method_for_confidence(self, mean_confidence: float) -> RemovalMethod:
        for threshold, method in self.THRESHOLDS:
            if mean_confidence > threshold:
                return method
        return self.FALLBACK

    def select(self, watermarks: Iterable[WatermarkCandidate]) -> RemovalMethod:
        """Select the method for a watermark list; an empty list maps to the fallback."""
        return self.method_for_confidence(aggregate_confidence(watermarks))

    def profile(self, method: RemovalMethod) -> MethodProfile:
        return self.profiles[method]
