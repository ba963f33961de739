"""Validation functions for video references and watermark payloads."""

import os
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Union

from models.errors import WatermarkPipelineError
from models.watermark import WatermarkCandidate


class ValidationError(WatermarkPipelineError):
    """Custom exception for validation errors."""
    pass


SUPPORTED_VIDEO_EXTENSIONS = {'.mp4', '.mov', '.m4v', '.avi', '.mkv', '.webm'}

# Schemes the transcode tool can read directly; these refs are not checked on disk
REMOTE_SCHEMES = ('http://', 'https://', 'rtmp://', 'rtsp://', 's3://', 'gs://')


def is_remote_ref(video_ref: str) -> bool:
    """Check whether a video reference points at a URI rather than a local path."""
    return video_ref.lower().startswith(REMOTE_SCHEMES)


def validate_video_ref(video_ref: str) -> None:
    """
    Validate that a video reference can be handed to the transcode tool.

    Args:
        video_ref: Local path or URI of the media asset

    Raises:
        ValidationError: If the reference is empty, missing on disk, empty,
            or has an unsupported extension
    """
    if not video_ref or not str(video_ref).strip():
        raise ValidationError("Video reference cannot be empty")

    if is_remote_ref(video_ref):
        return

    if not os.path.exists(video_ref):
        raise ValidationError(f"Video file not found: {video_ref}")

    if os.path.getsize(video_ref) == 0:
        raise ValidationError(f"Video file is empty: {video_ref}")

    file_extension = Path(video_ref).suffix.lower()
    if file_extension not in SUPPORTED_VIDEO_EXTENSIONS:
        raise ValidationError(
            f"Unsupported video format: {file_extension or 'no extension'}. "
            f"Supported formats: {', '.join(get_supported_formats())}"
        )


def parse_watermarks(
        watermarks: Iterable[Union[WatermarkCandidate, Mapping[str, Any]]]) -> List[WatermarkCandidate]:
    """
    Coerce an externally supplied watermark list into candidates.

    Args:
        watermarks: Candidates or plain dictionaries with at least a location

    Returns:
        List of WatermarkCandidate in input order

    Raises:
        ValidationError: If the input is not a list-like collection, or an entry is
            not a mapping or holds invalid values
    """
    if watermarks is None:
        return []

    if isinstance(watermarks, (str, bytes, Mapping)) or not isinstance(watermarks, Iterable):
        raise ValidationError(f"Watermarks must be a list of entries, got {type(watermarks).__name__}")

    parsed = []
    for index, item in enumerate(watermarks):
        if isinstance(item, WatermarkCandidate):
            parsed.append(item)
            continue

        if not isinstance(item, Mapping):
            raise ValidationError(f"Watermark #{index} must be a mapping, got {type(item).__name__}")

        try:
            parsed.append(WatermarkCandidate.from_dict(item))
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Watermark #{index} is invalid: {e}")

    return parsed


def get_supported_formats() -> List[str]:
    """Get list of supported video file extensions."""
    return sorted(SUPPORTED_VIDEO_EXTENSIONS)
