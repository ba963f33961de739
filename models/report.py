"""Planning and reporting records built around removal jobs."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from models.removal_method import RemovalMethod


@dataclass(frozen=True)
class ProcessingStrategy:
    batch_size: int
    parallel_processing: bool
    frame_sampling: str  # "full" or "adaptive"
    quality_preset: str = "high"
    temporal_analysis: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'batch_size': self.batch_size,
            'parallel_processing': self.parallel_processing,
            'frame_sampling': self.frame_sampling,
            'quality_preset': self.quality_preset,
            'temporal_analysis': self.temporal_analysis
        }


@dataclass(frozen=True)
class BatchConfiguration:
    enabled: bool
    batch_size: int
    processing_order: str
    parallel_workers: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enabled': self.enabled,
            'batch_size': self.batch_size,
            'processing_order': self.processing_order,
            'parallel_workers': self.parallel_workers
        }


@dataclass(frozen=True)
class ResourceEstimate:
    """Advisory resource figures; nothing enforces them."""

    cpu_percent: int
    memory_mb: int
    available_memory_mb: int
    cpu_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cpu_percent': self.cpu_percent,
            'memory_mb': self.memory_mb,
            'available_memory_mb': self.available_memory_mb,
            'cpu_count': self.cpu_count
        }


@dataclass(frozen=True)
class RemovalPlan:
    """Recommended settings for removing a set of watermarks."""

    recommended_method: RemovalMethod
    mean_confidence: float
    processing_strategy: ProcessingStrategy
    batch_configuration: BatchConfiguration
    estimated_processing_seconds: int
    resource_estimate: ResourceEstimate
    video_metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'recommended_method': self.recommended_method.value,
            'mean_confidence': self.mean_confidence,
            'processing_strategy': self.processing_strategy.to_dict(),
            'batch_configuration': self.batch_configuration.to_dict(),
            'estimated_processing_seconds': self.estimated_processing_seconds,
            'resource_estimate': self.resource_estimate.to_dict(),
            'video_metadata': dict(self.video_metadata)
        }


@dataclass(frozen=True)
class RemovalReport:
    """Summary of a removal job built from its persisted record."""

    removal_id: str
    generated_at: datetime
    status: str
    selected_method: RemovalMethod
    declared_accuracy: int
    total_watermarks: int
    watermarks_processed: int
    frames_processed: int
    total_frames: int
    mean_detection_confidence: float
    processing_seconds: Optional[float]
    quality: Optional[Dict[str, Any]]
    error: Optional[str]
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'removal_id': self.removal_id,
            'generated_at': self.generated_at.isoformat(),
            'status': self.status,
            'selected_method': self.selected_method.value,
            'declared_accuracy': self.declared_accuracy,
            'total_watermarks': self.total_watermarks,
            'watermarks_processed': self.watermarks_processed,
            'frames_processed': self.frames_processed,
            'total_frames': self.total_frames,
            'mean_detection_confidence': self.mean_detection_confidence,
            'processing_seconds': self.processing_seconds,
            'quality': self.quality,
            'error': self.error,
            'recommendations': list(self.recommendations)
        }
