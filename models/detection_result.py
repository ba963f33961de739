"""DetectionResult data model for finalized watermark detection runs."""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from models.watermark import WatermarkCandidate


class DetectionStatus(Enum):
    """Outcome of a detection run."""
    COMPLETED = "completed"
    FAILED = "failed"


class DetectionPath(Enum):
    """Which stage of the fallback pipeline produced the candidates."""
    HEURISTIC = "heuristic"
    DEFAULT_REGION = "default_region"
    STATIC_FALLBACK = "static_fallback"


@dataclass(frozen=True)
class FrameAnalysisSummary:
    """Counts and metadata describing how the frames were analyzed."""

    frames_requested: int = 0
    frames_analyzed: int = 0
    total_frames: int = 0
    frames_estimated: bool = False
    regions_evaluated: int = 0
    raw_candidates: int = 0
    max_region_score: float = 0.0
    detection_path: DetectionPath = DetectionPath.HEURISTIC
    fallback_reason: Optional[str] = None
    frame_width: int = 0
    frame_height: int = 0
    processing_time_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'frames_requested': self.frames_requested,
            'frames_analyzed': self.frames_analyzed,
            'total_frames': self.total_frames,
            'frames_estimated': self.frames_estimated,
            'regions_evaluated': self.regions_evaluated,
            'raw_candidates': self.raw_candidates,
            'max_region_score': self.max_region_score,
            'detection_path': self.detection_path.value,
            'fallback_reason': self.fallback_reason,
            'frame_width': self.frame_width,
            'frame_height': self.frame_height,
            'processing_time_seconds': self.processing_time_seconds
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FrameAnalysisSummary':
        return cls(
            frames_requested=data.get('frames_requested', 0),
            frames_analyzed=data.get('frames_analyzed', 0),
            total_frames=data.get('total_frames', 0),
            frames_estimated=data.get('frames_estimated', False),
            regions_evaluated=data.get('regions_evaluated', 0),
            raw_candidates=data.get('raw_candidates', 0),
            max_region_score=data.get('max_region_score', 0.0),
            detection_path=DetectionPath(data.get('detection_path', DetectionPath.HEURISTIC.value)),
            fallback_reason=data.get('fallback_reason'),
            frame_width=data.get('frame_width', 0),
            frame_height=data.get('frame_height', 0),
            processing_time_seconds=data.get('processing_time_seconds', 0.0)
        )


def new_detection_id() -> str:
    return f"detect_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class DetectionResult:
    """
    Data model for the result of a single ``detect()`` call.

    Candidates are stored as a tuple so the result cannot be mutated once
    it is handed back to the caller.
    """

    detection_id: str
    video_ref: str
    status: DetectionStatus
    candidates: Tuple[WatermarkCandidate, ...] = ()
    aggregate_confidence: float = 0.0
    frame_analysis_summary: FrameAnalysisSummary = field(default_factory=FrameAnalysisSummary)
    error: Optional[str] = None

    @classmethod
    def completed(cls, video_ref: str, candidates: List[WatermarkCandidate],
                  aggregate_confidence: float,
                  summary: FrameAnalysisSummary) -> 'DetectionResult':
        """Create a finalized successful result."""
        return cls(
            detection_id=new_detection_id(),
            video_ref=video_ref,
            status=DetectionStatus.COMPLETED,
            candidates=tuple(candidates),
            aggregate_confidence=aggregate_confidence,
            frame_analysis_summary=summary
        )

    @classmethod
    def failed(cls, video_ref: str, error: str) -> 'DetectionResult':
        """Create a failed result carrying the error message."""
        return cls(
            detection_id=new_detection_id(),
            video_ref=video_ref,
            status=DetectionStatus.FAILED,
            error=error
        )

    @property
    def is_successful(self) -> bool:
        return self.status == DetectionStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary for serialization."""
        return {
            'detection_id': self.detection_id,
            'video_ref': self.video_ref,
            'status': self.status.value,
            'candidates': [candidate.to_dict() for candidate in self.candidates],
            'aggregate_confidence': self.aggregate_confidence,
            'frame_analysis_summary': self.frame_analysis_summary.to_dict(),
            'error': self.error
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DetectionResult':
        return cls(
            detection_id=data['detection_id'],
            video_ref=data['video_ref'],
            status=DetectionStatus(data['status']),
            candidates=tuple(WatermarkCandidate.from_dict(c) for c in data.get('candidates', [])),
            aggregate_confidence=data.get('aggregate_confidence', 0.0),
            frame_analysis_summary=FrameAnalysisSummary.from_dict(data.get('frame_analysis_summary') or {}),
            error=data.get('error')
        )
