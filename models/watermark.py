"""Watermark candidate data model and bounding box geometry."""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional


class WatermarkType(Enum):
    """Kinds of overlay a candidate region may contain."""
    LOGO = "logo"
    TEXT = "text"
    BRAND = "brand"
    CHANNEL = "channel"


class RemovalDifficulty(Enum):
    """Estimated effort to remove a watermark cleanly."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


@dataclass(frozen=True)
class WatermarkTypeProperties:
    """Static visual profile of a watermark type."""

    transparency: float
    size_ratio: float
    position: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'transparency': self.transparency,
            'size_ratio': self.size_ratio,
            'position': self.position
        }


WATERMARK_TYPE_PROPERTIES: Mapping[WatermarkType, WatermarkTypeProperties] = MappingProxyType({
    WatermarkType.LOGO: WatermarkTypeProperties(transparency=0.3, size_ratio=0.15, position='corner'),
    WatermarkType.TEXT: WatermarkTypeProperties(transparency=0.5, size_ratio=0.25, position='bottom'),
    WatermarkType.BRAND: WatermarkTypeProperties(transparency=0.4, size_ratio=0.20, position='center'),
    WatermarkType.CHANNEL: WatermarkTypeProperties(transparency=0.6, size_ratio=0.12, position='corner'),
})


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned rectangle in pixel space."""

    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        """Get area of the box (zero for degenerate boxes)."""
        return max(0, self.width) * max(0, self.height)

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def intersection_area(self, other: 'BoundingBox') -> int:
        """Calculate the overlapping area between two boxes."""
        x1 = max(self.x, other.x)
        y1 = max(self.y, other.y)
        x2 = min(self.right, other.right)
        y2 = min(self.bottom, other.bottom)

        if x2 <= x1 or y2 <= y1:
            return 0  # No intersection

        return (x2 - x1) * (y2 - y1)

    def overlap_ratio(self, other: 'BoundingBox') -> float:
        """
        Overlap area divided by the smaller of the two box areas.

        Unlike IoU this reaches 1.0 when one box fully contains the other.
        """
        smaller_area = min(self.area, other.area)
        if smaller_area <= 0:
            return 0.0
        return self.intersection_area(other) / smaller_area

    def normalized(self) -> 'BoundingBox':
        """Clamp origin to non-negative values and size to at least one pixel."""
        return BoundingBox(
            x=max(0, int(self.x)),
            y=max(0, int(self.y)),
            width=max(1, int(self.width)),
            height=max(1, int(self.height))
        )

    def expanded(self, margin: int) -> 'BoundingBox':
        """Grow the box by ``margin`` pixels on every edge."""
        return BoundingBox(
            x=self.x - margin,
            y=self.y - margin,
            width=self.width + 2 * margin,
            height=self.height + 2 * margin
        )

    def clipped_to(self, frame_width: int, frame_height: int) -> 'BoundingBox':
        """Clip the box to the frame; the result always keeps a 1x1 minimum."""
        box = self.normalized()
        x = min(box.x, max(0, frame_width - 1))
        y = min(box.y, max(0, frame_height - 1))
        width = min(box.width, frame_width - x)
        height = min(box.height, frame_height - y)
        return BoundingBox(x, y, max(1, width), max(1, height))

    def to_dict(self) -> Dict[str, int]:
        return {'x': self.x, 'y': self.y, 'width': self.width, 'height': self.height}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'BoundingBox':
        return cls(
            x=int(data.get('x', 0)),
            y=int(data.get('y', 0)),
            width=int(data.get('width', 0)),
            height=int(data.get('height', 0))
        )


def new_watermark_id() -> str:
    """Generate an identifier for a watermark candidate."""
    return f"wm_{uuid.uuid4().hex[:12]}"


@dataclass
class WatermarkCandidate:
    """Data model for a region that likely contains an overlay watermark."""

    id: str
    type: WatermarkType
    confidence: float  # 0 to 100
    location: BoundingBox
    temporal_consistency: float = 0.0  # 0 to 100
    removal_difficulty: RemovalDifficulty = RemovalDifficulty.MEDIUM
    frames_detected: int = 1
    properties: Optional[WatermarkTypeProperties] = field(default=None, compare=False)

    def __post_init__(self):
        if self.properties is None:
            self.properties = WATERMARK_TYPE_PROPERTIES.get(self.type)

    @classmethod
    def create_new(cls, watermark_type: WatermarkType, confidence: float,
                   location: BoundingBox,
                   removal_difficulty: RemovalDifficulty = RemovalDifficulty.MEDIUM) -> 'WatermarkCandidate':
        """Create a single-frame candidate with a generated ID."""
        return cls(
            id=new_watermark_id(),
            type=watermark_type,
            confidence=max(0.0, min(100.0, float(confidence))),
            location=location,
            removal_difficulty=removal_difficulty
        )

    @property
    def area(self) -> int:
        return self.location.area

    def overlaps_with(self, other: 'WatermarkCandidate', threshold: float = 0.7) -> bool:
        """Check whether the overlap exceeds ``threshold`` of the smaller box."""
        return self.location.overlap_ratio(other.location) > threshold

    def to_dict(self) -> Dict[str, Any]:
        """Convert candidate to dictionary for serialization."""
        return {
            'id': self.id,
            'type': self.type.value,
            'confidence': self.confidence,
            'location': self.location.to_dict(),
            'temporal_consistency': self.temporal_consistency,
            'removal_difficulty': self.removal_difficulty.value,
            'frames_detected': self.frames_detected,
            'properties': self.properties.to_dict() if self.properties else None
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'WatermarkCandidate':
        """
        Build a candidate from a plain dictionary.

        Missing fields fall back to defaults so externally supplied watermark
        lists only need a location.

        Raises:
            TypeError: If the location is not a mapping or BoundingBox
            ValueError: If type or removal difficulty are not recognised
        """
        location = data.get('location') or {}
        if isinstance(location, BoundingBox):
            box = location
        elif isinstance(location, Mapping):
            box = BoundingBox.from_dict(location)
        else:
            raise TypeError(f"location must be a mapping, got {type(location).__name__}")

        return cls(
            id=str(data.get('id') or new_watermark_id()),
            type=WatermarkType(data.get('type', WatermarkType.LOGO.value)),
            confidence=float(data.get('confidence', 0.0)),
            location=box,
            temporal_consistency=float(data.get('temporal_consistency', 0.0)),
            removal_difficulty=RemovalDifficulty(
                data.get('removal_difficulty', RemovalDifficulty.MEDIUM.value)
            ),
            frames_detected=int(data.get('frames_detected', 1))
        )
