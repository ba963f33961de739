"""RemovalJob data model for tracking asynchronous watermark removal."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from models.errors import WatermarkPipelineError
from models.removal_method import RemovalMethod
from models.watermark import BoundingBox, WatermarkCandidate


class RemovalStatus(Enum):
    """Status enumeration for removal jobs."""
    INITIALIZATION = "initialization"
    PREPROCESSING = "preprocessing"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Percentage recorded when a job enters each step
STEP_PERCENTAGES = {
    RemovalStatus.INITIALIZATION: 0.0,
    RemovalStatus.PREPROCESSING: 20.0,
    RemovalStatus.PROCESSING: 60.0,
    RemovalStatus.COMPLETED: 100.0,
}

_ALLOWED_TRANSITIONS = {
    RemovalStatus.INITIALIZATION: {RemovalStatus.PREPROCESSING, RemovalStatus.FAILED},
    RemovalStatus.PREPROCESSING: {RemovalStatus.PROCESSING, RemovalStatus.FAILED},
    RemovalStatus.PROCESSING: {RemovalStatus.COMPLETED, RemovalStatus.FAILED},
    RemovalStatus.COMPLETED: set(),
    RemovalStatus.FAILED: set(),
}


class InvalidTransitionError(WatermarkPipelineError):
    """Raised when a removal job is moved along an edge the state machine forbids."""
    pass


@dataclass
class RemovalProgress:
    """Progress snapshot persisted with each job record."""

    current_step: str = RemovalStatus.INITIALIZATION.value
    percentage: float = 0.0
    frames_processed: int = 0
    total_frames: int = 0
    estimated_time_seconds: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'current_step': self.current_step,
            'percentage': self.percentage,
            'frames_processed': self.frames_processed,
            'total_frames': self.total_frames,
            'estimated_time_seconds': self.estimated_time_seconds
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RemovalProgress':
        return cls(
            current_step=data.get('current_step', RemovalStatus.INITIALIZATION.value),
            percentage=float(data.get('percentage', 0.0)),
            frames_processed=int(data.get('frames_processed', 0)),
            total_frames=int(data.get('total_frames', 0)),
            estimated_time_seconds=int(data.get('estimated_time_seconds', 0))
        )


@dataclass(frozen=True)
class WatermarkRemovalResult:
    """Per-watermark outcome of a completed removal."""

    watermark_id: str
    method: RemovalMethod
    directive: str
    filter_expression: str
    region: BoundingBox

    def to_dict(self) -> Dict[str, Any]:
        return {
            'watermark_id': self.watermark_id,
            'method': self.method.value,
            'directive': self.directive,
            'filter_expression': self.filter_expression,
            'region': self.region.to_dict()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WatermarkRemovalResult':
        return cls(
            watermark_id=data['watermark_id'],
            method=RemovalMethod(data['method']),
            directive=data['directive'],
            filter_expression=data['filter_expression'],
            region=BoundingBox.from_dict(data['region'])
        )


@dataclass(frozen=True)
class QualityAssessment:
    """Objective comparison between the original and processed video."""

    overall_score: float
    artifact_score: float
    consistency_score: float
    notes: List[str] = field(default_factory=list)
    mean_ssim: Optional[float] = None
    mean_psnr: Optional[float] = None
    frames_compared: int = 0

    @property
    def is_available(self) -> bool:
        return self.frames_compared > 0

    @classmethod
    def unavailable(cls, reason: str) -> 'QualityAssessment':
        """Assessment placeholder used when the videos could not be compared."""
        return cls(
            overall_score=0.0,
            artifact_score=0.0,
            consistency_score=0.0,
            notes=[f"Quality assessment unavailable: {reason}"]
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overall_score': self.overall_score,
            'artifact_score': self.artifact_score,
            'consistency_score': self.consistency_score,
            'notes': list(self.notes),
            'mean_ssim': self.mean_ssim,
            'mean_psnr': self.mean_psnr,
            'frames_compared': self.frames_compared
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QualityAssessment':
        return cls(
            overall_score=data.get('overall_score', 0.0),
            artifact_score=data.get('artifact_score', 0.0),
            consistency_score=data.get('consistency_score', 0.0),
            notes=list(data.get('notes', [])),
            mean_ssim=data.get('mean_ssim'),
            mean_psnr=data.get('mean_psnr'),
            frames_compared=data.get('frames_compared', 0)
        )


def new_removal_id() -> str:
    return f"removal_{uuid.uuid4().hex}"


@dataclass
class RemovalJob:
    """Data model for watermark removal jobs."""

    removal_id: str
    video_ref: str
    status: RemovalStatus
    selected_method: RemovalMethod
    watermarks: List[WatermarkCandidate]
    progress: RemovalProgress
    created_at: datetime
    completed_at: Optional[datetime] = None
    results: Optional[List[WatermarkRemovalResult]] = None
    quality_assessment: Optional[QualityAssessment] = None
    error: Optional[str] = None
    output_path: Optional[str] = None
    filter_chain: List[str] = field(default_factory=list)

    @classmethod
    def create_new(cls, video_ref: str, watermarks: List[WatermarkCandidate],
                   method: RemovalMethod, estimated_time_seconds: int = 0) -> 'RemovalJob':
        """Create a new removal job with generated ID and current timestamp."""
        return cls(
            removal_id=new_removal_id(),
            video_ref=video_ref,
            status=RemovalStatus.INITIALIZATION,
            selected_method=method,
            watermarks=list(watermarks),
            progress=RemovalProgress(estimated_time_seconds=estimated_time_seconds),
            created_at=datetime.now()
        )

    def _transition(self, status: RemovalStatus) -> None:
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Removal {self.removal_id} cannot move from {self.status.value} to {status.value}"
            )
        if status in STEP_PERCENTAGES:
            self.advance_progress(STEP_PERCENTAGES[status])
        self.status = status
        self.progress.current_step = status.value

    def advance_progress(self, percentage: float, frames_processed: Optional[int] = None) -> None:
        """
        Move the progress percentage forward.

        Values below the current percentage are ignored so that successive
        reads never observe progress going backwards.
        """
        if self.is_complete:
            raise InvalidTransitionError(f"Removal {self.removal_id} is already {self.status.value}")

        clamped = max(0.0, min(100.0, float(percentage)))
        self.progress.percentage = max(self.progress.percentage, clamped)
        if frames_processed is not None:
            self.progress.frames_processed = max(self.progress.frames_processed, int(frames_processed))

    def mark_preprocessing(self) -> None:
        """Mark the job as preparing the filter chain."""
        self._transition(RemovalStatus.PREPROCESSING)

    def mark_processing(self) -> None:
        """Mark the job as currently re-encoding."""
        self._transition(RemovalStatus.PROCESSING)

    def mark_completed(self, output_path: str, results: List[WatermarkRemovalResult],
                       quality_assessment: QualityAssessment) -> None:
        """Mark the job as completed successfully."""
        self._transition(RemovalStatus.COMPLETED)
        self.completed_at = datetime.now()
        self.output_path = output_path
        self.results = list(results)
        self.quality_assessment = quality_assessment
        if self.progress.total_frames:
            self.progress.frames_processed = self.progress.total_frames

    def mark_failed(self, error_message: str) -> None:
        """Mark the job as failed with error message."""
        self._transition(RemovalStatus.FAILED)
        self.completed_at = datetime.now()
        self.error = error_message

    @property
    def is_complete(self) -> bool:
        """Check if the job is in a terminal state (completed or failed)."""
        return self.status in (RemovalStatus.COMPLETED, RemovalStatus.FAILED)

    @property
    def processing_duration(self) -> Optional[float]:
        """Get processing duration in seconds if job is complete."""
        if self.completed_at and self.created_at:
            return (self.completed_at - self.created_at).total_seconds()
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert the full job record to a JSON-compatible dictionary."""
        return {
            'removal_id': self.removal_id,
            'video_ref': self.video_ref,
            'status': self.status.value,
            'selected_method': self.selected_method.value,
            'watermarks': [watermark.to_dict() for watermark in self.watermarks],
            'progress': self.progress.to_dict(),
            'created_at': self.created_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'results': [result.to_dict() for result in self.results] if self.results is not None else None,
            'quality_assessment': self.quality_assessment.to_dict() if self.quality_assessment else None,
            'error': self.error,
            'output_path': self.output_path,
            'filter_chain': list(self.filter_chain)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RemovalJob':
        """Rebuild a job from its serialized record."""
        results = data.get('results')
        quality = data.get('quality_assessment')
        return cls(
            removal_id=data['removal_id'],
            video_ref=data['video_ref'],
            status=RemovalStatus(data['status']),
            selected_method=RemovalMethod(data['selected_method']),
            watermarks=[WatermarkCandidate.from_dict(w) for w in data.get('watermarks', [])],
            progress=RemovalProgress.from_dict(data.get('progress') or {}),
            created_at=datetime.fromisoformat(data['created_at']),
            completed_at=datetime.fromisoformat(data['completed_at']) if data.get('completed_at') else None,
            results=[WatermarkRemovalResult.from_dict(r) for r in results] if results is not None else None,
            quality_assessment=QualityAssessment.from_dict(quality) if quality else None,
            error=data.get('error'),
            output_path=data.get('output_path'),
            filter_chain=list(data.get('filter_chain', []))
        )


@dataclass(frozen=True)
class RemovalNotFound:
    """Returned by progress lookups when no record exists for the ID."""

    removal_id: str
    status: str = "not_found"
    error: str = "Removal process not found"

    def to_dict(self) -> Dict[str, Any]:
        return {'removal_id': self.removal_id, 'status': self.status, 'error': self.error}
