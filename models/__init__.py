"""Data models for the watermark detection and removal pipeline."""

from .watermark import (
    BoundingBox,
    RemovalDifficulty,
    WATERMARK_TYPE_PROPERTIES,
    WatermarkCandidate,
    WatermarkType,
)
from .errors import WatermarkPipelineError
from .removal_method import METHOD_PROFILES, MethodProfile, RemovalMethod
from .video_metadata import VideoMetadata
from .detection_result import DetectionPath, DetectionResult, DetectionStatus, FrameAnalysisSummary
from .removal_job import (
    InvalidTransitionError,
    QualityAssessment,
    RemovalJob,
    RemovalNotFound,
    RemovalProgress,
    RemovalStatus,
    WatermarkRemovalResult,
)
from .report import RemovalPlan, RemovalReport
from .validation import ValidationError, parse_watermarks, validate_video_ref

__all__ = [
    'WatermarkPipelineError',
    'BoundingBox',
    'RemovalDifficulty',
    'WATERMARK_TYPE_PROPERTIES',
    'WatermarkCandidate',
    'WatermarkType',
    'METHOD_PROFILES',
    'MethodProfile',
    'RemovalMethod',
    'VideoMetadata',
    'DetectionPath',
    'DetectionResult',
    'DetectionStatus',
    'FrameAnalysisSummary',
    'InvalidTransitionError',
    'QualityAssessment',
    'RemovalJob',
    'RemovalNotFound',
    'RemovalProgress',
    'RemovalStatus',
    'WatermarkRemovalResult',
    'RemovalPlan',
    'RemovalReport',
    'ValidationError',
    'parse_watermarks',
    'validate_video_ref',
]
