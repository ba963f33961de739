# Watermark detection, removal filter synthesis and job execution

from .errors import (
    ExtractionError,
    ExtractionUnavailable,
    MissingCapability,
    ProbeError,
    QualityAssessmentError,
    TranscodeError,
    WatermarkPipelineError,
)
from .region_detector import RegionDetectorConfig, RegionHeuristicDetector
from .watermark_service import DetectionOptions, RemovalOptions, WatermarkService

__all__ = [
    'ExtractionError',
    'ExtractionUnavailable',
    'MissingCapability',
    'ProbeError',
    'QualityAssessmentError',
    'TranscodeError',
    'WatermarkPipelineError',
    'RegionDetectorConfig',
    'RegionHeuristicDetector',
    'DetectionOptions',
    'RemovalOptions',
    'WatermarkService',
]
