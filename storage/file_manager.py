"""
Scratch and output file management for the watermark pipeline.

This module owns the on-disk layout: per-run scratch directories holding
sampled stills, and the output directory receiving re-encoded videos.
"""

import shutil
import uuid
from pathlib import Path
from typing import Optional, Union
from datetime import datetime, timedelta
import logging

logger = logging.getLogger(__name__)


class FileManager:
    """
    Manages scratch directories and output paths.

    Scratch directories are created per detection run and deleted after the
    frames have been analyzed; anything left behind is swept by
    ``cleanup_old_scratch``.
    """

    DEFAULT_OUTPUT_SUFFIX = '.mp4'

    def __init__(self, scratch_dir: Optional[Union[str, Path]] = None,
                 output_dir: Optional[Union[str, Path]] = None):
        """
        Initialize FileManager with storage paths.

        Args:
            scratch_dir: Directory holding per-run scratch directories
            output_dir: Directory receiving processed videos
        """
        self.scratch_dir = Path(scratch_dir or 'data/scratch')
        self.output_dir = Path(output_dir or 'data/output')
        self.ensure_directories()

    def create_scratch_dir(self, prefix: str = 'frames') -> Path:
        """
        Create a fresh scratch directory.

        Args:
            prefix: Name prefix, typically the operation using it

        Returns:
            Path to the created directory
        """
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        scratch = self.scratch_dir / f"{prefix}_{timestamp}_{uuid.uuid4().hex[:8]}"
        scratch.mkdir(parents=True, exist_ok=False)
        logger.debug(f"Created scratch directory: {scratch}")
        return scratch

    def remove_scratch_dir(self, scratch: Path) -> bool:
        """Delete a scratch directory and everything in it."""
        if not scratch.exists():
            return True
        try:
            shutil.rmtree(scratch)
            logger.debug(f"Removed scratch directory: {scratch}")
            return True
        except OSError as e:
            logger.error(f"Failed to remove scratch directory {scratch}: {e}")
            return False

    def create_output_path(self, removal_id: str, video_ref: str) -> Path:
        """
        Build the output file path for a removal job.

        Args:
            removal_id: Identifier of the removal job
            video_ref: Source video, used for the container suffix

        Returns:
            Path for the output video (not created)
        """
        suffix = Path(video_ref.split('?', 1)[0]).suffix.lower() or self.DEFAULT_OUTPUT_SUFFIX
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        return self.output_dir / f"{removal_id}_clean_{timestamp}{suffix}"

    def remove_file(self, file_path: Path) -> bool:
        """Delete a single file, logging instead of raising on failure."""
        if not file_path.exists():
            return True
        try:
            file_path.unlink()
            logger.info(f"Cleaned up file: {file_path}")
            return True
        except OSError as e:
            logger.error(f"Failed to clean up file {file_path}: {e}")
            return False

    def cleanup_old_scratch(self, max_age_hours: int = 24) -> int:
        """
        Delete scratch entries older than ``max_age_hours``.

        Args:
            max_age_hours: Maximum age in hours for entries to keep

        Returns:
            Number of entries removed
        """
        cleaned_count = 0
        cutoff_time = datetime.now() - timedelta(hours=max_age_hours)

        for entry in self.scratch_dir.glob('*'):
            try:
                entry_mtime = datetime.fromtimestamp(entry.stat().st_mtime)
                if entry_mtime >= cutoff_time:
                    continue
                if entry.is_dir():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
                cleaned_count += 1
                logger.info(f"Cleaned up old scratch entry: {entry}")
            except OSError as e:
                logger.error(f"Failed to clean up scratch entry {entry}: {e}")

        return cleaned_count

    def ensure_directories(self):
        """Create the scratch and output directories if they don't exist."""
        try:
            self.scratch_dir.mkdir(parents=True, exist_ok=True)
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create directories: {e}")
            raise
