"""
Composition root for the watermark detection and removal pipeline

This module configures logging and wires the processing components, the
progress store and the file manager into a WatermarkService.
"""

import logging
import sys
from typing import Any, Optional

import config
from processing.deduplicator import WatermarkDeduplicator
from processing.ffmpeg_tool import FFmpegTool, FFmpegToolConfig
from processing.frame_sampler import FrameSampler, FrameSamplerConfig
from processing.job_runner import JobRunner, JobRunnerConfig, ProgressTracker
from processing.method_selector import MethodSelector
from processing.quality import FrameQualityAssessor
from processing.region_detector import PixelReader, RegionDetectorConfig, RegionHeuristicDetector
from processing.watermark_service import WatermarkService
from storage.file_manager import FileManager
from storage.progress_store import create_progress_store


# Configure logging based on environment
def setup_logging():
    """Configure logging for the application."""
    log_level = logging.DEBUG if config.DEBUG else getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(config.LOG_FILE) if not config.DEBUG else logging.NullHandler()
        ]
    )

    # Keep client libraries quiet
    logging.getLogger('redis').setLevel(logging.WARNING)

    return logging.getLogger(__name__)


logger = setup_logging()


def create_watermark_service(settings: Optional[Any] = None) -> WatermarkService:
    """
    Build a WatermarkService from configuration.

    Args:
        settings: Configuration object; the active environment's config if None

    Returns:
        Fully wired WatermarkService
    """
    settings = settings or config.get_config_instance()
    logger.info(f"Creating watermark service: {settings.get_config_dict()}")

    file_manager = FileManager(scratch_dir=settings.SCRATCH_DIR, output_dir=settings.OUTPUT_DIR)
    store = create_progress_store(settings)
    tracker = ProgressTracker(store, ttl=settings.PROGRESS_TTL)

    tool = FFmpegTool(FFmpegToolConfig.from_settings(settings))
    sampler = FrameSampler(tool, FrameSamplerConfig.from_settings(settings))
    detector = RegionHeuristicDetector(RegionDetectorConfig.from_settings(settings), PixelReader())
    quality_assessor = FrameQualityAssessor(sample_frames=settings.QUALITY_SAMPLE_FRAMES)

    runner = JobRunner(
        tool=tool,
        tracker=tracker,
        quality_assessor=quality_assessor,
        metadata_provider=sampler.probe_or_estimate,
        file_manager=file_manager,
        config=JobRunnerConfig.from_settings(settings)
    )

    return WatermarkService(
        sampler=sampler,
        detector=detector,
        runner=runner,
        tracker=tracker,
        store=store,
        quality_assessor=quality_assessor,
        deduplicator=WatermarkDeduplicator(settings.MERGE_OVERLAP_THRESHOLD),
        selector=MethodSelector(),
        file_manager=file_manager,
        detection_cache_ttl=settings.DETECTION_CACHE_TTL,
        scratch_retention_hours=settings.SCRATCH_RETENTION_HOURS
    )


# Global service instance
_watermark_service = None


def get_watermark_service() -> WatermarkService:
    """
    Get the global WatermarkService instance.

    Returns:
        WatermarkService instance
    """
    global _watermark_service
    if _watermark_service is None:
        _watermark_service = create_watermark_service()
    return _watermark_service


def shutdown_watermark_service(wait: bool = True) -> None:
    """Stop the global service's worker pool, if one was created."""
    global _watermark_service
    if _watermark_service is not None:
        _watermark_service.shutdown(wait=wait)
        _watermark_service = None
        logger.info("Watermark service shut down")
