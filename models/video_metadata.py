"""VideoMetadata data model for probed or estimated stream information."""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


@dataclass
class VideoMetadata:
    """Data model for video stream metadata."""

    duration: float  # Duration in seconds
    fps: float  # Frames per second
    resolution: Tuple[int, int]  # (width, height)
    format: str  # Container format
    file_size: int  # File size in bytes
    frame_count: Optional[int] = None  # Frame count reported by the probe
    estimated: bool = False  # True when values come from heuristics, not a probe

    @property
    def width(self) -> int:
        """Get video width."""
        return self.resolution[0]

    @property
    def height(self) -> int:
        """Get video height."""
        return self.resolution[1]

    @property
    def aspect_ratio(self) -> float:
        """Calculate aspect ratio (width/height)."""
        return self.width / self.height if self.height > 0 else 0.0

    @property
    def total_frames(self) -> int:
        """Frame count from the probe, else duration times frame rate."""
        if self.frame_count:
            return int(self.frame_count)
        return int(self.duration * self.fps)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'duration': self.duration,
            'fps': self.fps,
            'width': self.width,
            'height': self.height,
            'format': self.format,
            'file_size': self.file_size,
            'total_frames': self.total_frames,
            'estimated': self.estimated
        }
