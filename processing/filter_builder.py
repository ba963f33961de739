"""Synthesis of ffmpeg filter directives for watermark removal."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Mapping, Optional, Sequence, Tuple

from models.removal_method import METHOD_PROFILES, MethodProfile, RemovalMethod
from models.watermark import BoundingBox, WatermarkCandidate

logger = logging.getLogger(__name__)


class DirectiveKind(Enum):
    """Shape of the removal applied to one region."""
    MASK = "mask"
    BORDER_FILL = "border_fill"
    SOFT_EDGE = "soft_edge"
    SMOOTHING = "smoothing"


METHOD_DIRECTIVES = {
    RemovalMethod.FREQUENCY_DOMAIN: DirectiveKind.MASK,
    RemovalMethod.CONTENT_AWARE: DirectiveKind.BORDER_FILL,
    RemovalMethod.INPAINTING: DirectiveKind.SOFT_EDGE,
    RemovalMethod.TEMPORAL_COHERENCE: DirectiveKind.SOFT_EDGE,
}

SMOOTHING_FILTER = "hqdn3d=1.5:1.5:6:6"


@dataclass(frozen=True)
class FilterDirective:
    """One step of the removal filter chain."""

    kind: DirectiveKind
    region: Optional[BoundingBox] = None  # Area actually filtered, after banding and clipping
    watermark_id: Optional[str] = None
    band: int = 0
    source: Optional[BoundingBox] = None  # Adjacent strip mirrored over the region (border fill)
    flip: str = "hflip"

    def render(self, index: int = 0) -> str:
        """
        Render the directive as an ffmpeg filter expression.

        Border fills become a small filtergraph that crops the strip next to
        the region, mirrors it and overlays it on the region. ``index`` keeps
        their pad labels unique within one chain.
        """
        if self.kind == DirectiveKind.SMOOTHING or self.region is None:
            return SMOOTHING_FILTER
        box = self.region
        if self.kind == DirectiveKind.BORDER_FILL and self.source is not None:
            src = self.source
            main, strip, patch = f"bf{index}m", f"bf{index}s", f"bf{index}p"
            return (f"split[{main}][{strip}];"
                    f"[{strip}]crop={src.width}:{src.height}:{src.x}:{src.y},{self.flip}[{patch}];"
                    f"[{main}][{patch}]overlay={box.x}:{box.y}")
        return f"delogo=x={box.x}:y={box.y}:w={box.width}:h={box.height}:show=0"


class RemovalFilterBuilder:
    """
    Turns a watermark list and a removal method into filter directives.

    One directive is produced per watermark, in input order. Overlapping
    regions are not merged. An empty watermark list yields a single
    smoothing directive.
    """

    def __init__(self, profiles: Optional[Mapping[RemovalMethod, MethodProfile]] = None):
        self.profiles = profiles if profiles is not None else METHOD_PROFILES

    def _banded(self, box: BoundingBox, band: int) -> BoundingBox:
        grown = box.expanded(band)
        x = max(0, grown.x)
        y = max(0, grown.y)
        return BoundingBox(x, y, grown.right - x, grown.bottom - y)

    @staticmethod
    def _mirror_source(box: BoundingBox,
                       frame_size: Optional[Tuple[int, int]]) -> Tuple[Optional[BoundingBox], str]:
        """
        Pick the strip of frame adjacent to ``box`` that is mirrored over it.

        Left and above are always checkable; right and below need the frame size.
        Returns (None, "hflip") when no same-sized neighbour fits in the frame.
        """
        if box.x - box.width >= 0:
            return BoundingBox(box.x - box.width, box.y, box.width, box.height), "hflip"
        if frame_size and box.right + box.width <= frame_size[0]:
            return BoundingBox(box.right, box.y, box.width, box.height), "hflip"
        if box.y - box.height >= 0:
            return BoundingBox(box.x, box.y - box.height, box.width, box.height), "vflip"
        if frame_size and box.bottom + box.height <= frame_size[1]:
            return BoundingBox(box.x, box.bottom, box.width, box.height), "vflip"
        return None, "hflip"

    def directive_for(self, watermark: WatermarkCandidate, method: RemovalMethod,
                      frame_size: Optional[Tuple[int, int]] = None) -> FilterDirective:
        """
        Build the directive for a single watermark.

        Args:
            watermark: Candidate whose location is filtered
            method: Removal method deciding the directive shape
            frame_size: (width, height) used to clip the region, if known

        Returns:
            FilterDirective covering the normalized, possibly banded region
        """
        kind = METHOD_DIRECTIVES[method]
        box = watermark.location.normalized()
        band = 0

        if kind in (DirectiveKind.BORDER_FILL, DirectiveKind.SOFT_EDGE):
            band = self.profiles[method].edge_band
            box = self._banded(box, band)

        if frame_size and frame_size[0] > 0 and frame_size[1] > 0:
            box = box.clipped_to(frame_size[0], frame_size[1])
        else:
            frame_size = None

        if kind == DirectiveKind.BORDER_FILL:
            source, flip = self._mirror_source(box, frame_size)
            if source is None:
                logger.debug(f"No mirror source fits around {box}, falling back to delogo")
            return FilterDirective(kind=kind, region=box, watermark_id=watermark.id, band=band,
                                   source=source, flip=flip)

        return FilterDirective(kind=kind, region=box, watermark_id=watermark.id, band=band)

    def build(self, watermarks: Sequence[WatermarkCandidate], method: RemovalMethod,
              frame_size: Optional[Tuple[int, int]] = None) -> List[FilterDirective]:
        """Build directives for every watermark in order."""
        if not watermarks:
            return [FilterDirective(kind=DirectiveKind.SMOOTHING)]

        directives = [self.directive_for(watermark, method, frame_size) for watermark in watermarks]
        logger.debug(f"Built {len(directives)} {method.value} directives")
        return directives

    @staticmethod
    def render_chain(directives: Sequence[FilterDirective]) -> str:
        """Join rendered directives into a single ``-vf`` expression."""
        return ",".join(directive.render(index) for index, directive in enumerate(directives))
