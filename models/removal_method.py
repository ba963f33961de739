"""Removal method enumeration and static method profiles."""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping


class RemovalMethod(Enum):
    """Named strategies for removing a watermark."""
    INPAINTING = "inpainting"
    CONTENT_AWARE = "content_aware"
    TEMPORAL_COHERENCE = "temporal_coherence"
    FREQUENCY_DOMAIN = "frequency_domain"


class ProcessingTimeClass(Enum):
    """Relative processing cost of a method."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class MethodProfile:
    """
    Static description of a removal method.

    Used for estimation and reporting only; it never changes which method
    gets selected.
    """

    name: str
    description: str
    accuracy: int  # declared accuracy percentage
    processing_time: ProcessingTimeClass
    base_seconds_per_watermark: int
    edge_band: int  # soft-edge band width in pixels

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'accuracy': self.accuracy,
            'processing_time': self.processing_time.value,
            'base_seconds_per_watermark': self.base_seconds_per_watermark,
            'edge_band': self.edge_band
        }


METHOD_PROFILES: Mapping[RemovalMethod, MethodProfile] = MappingProxyType({
    RemovalMethod.INPAINTING: MethodProfile(
        name='AI Inpainting',
        description='Masked removal with a soft-edge band around the watermark',
        accuracy=95,
        processing_time=ProcessingTimeClass.HIGH,
        base_seconds_per_watermark=120,
        edge_band=15
    ),
    RemovalMethod.CONTENT_AWARE: MethodProfile(
        name='Content-Aware Fill',
        description='Background reconstruction from the surrounding border',
        accuracy=88,
        processing_time=ProcessingTimeClass.MEDIUM,
        base_seconds_per_watermark=80,
        edge_band=12
    ),
    RemovalMethod.TEMPORAL_COHERENCE: MethodProfile(
        name='Temporal Coherence',
        description='Masked removal with a wide band for moving backgrounds',
        accuracy=92,
        processing_time=ProcessingTimeClass.HIGH,
        base_seconds_per_watermark=100,
        edge_band=20
    ),
    RemovalMethod.FREQUENCY_DOMAIN: MethodProfile(
        name='Frequency Domain',
        description='Rectangular mask removal over the watermark box',
        accuracy=85,
        processing_time=ProcessingTimeClass.LOW,
        base_seconds_per_watermark=40,
        edge_band=8
    ),
})
