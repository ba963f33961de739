"""
Pytest configuration and shared fixtures for the watermark pipeline test suite.
"""

import os

os.environ.setdefault("ENVIRONMENT", "testing")

import pytest
import tempfile
import shutil
import cv2
import numpy as np
from pathlib import Path
from unittest.mock import MagicMock

from models.video_metadata import VideoMetadata
from processing.ffmpeg_tool import FFmpegTool
from processing.frame_sampler import FrameSampler, FrameSamplerConfig
from processing.job_runner import JobRunner, JobRunnerConfig, ProgressTracker
from processing.quality import QualityAssessor
from processing.region_detector import PixelReader, RegionHeuristicDetector
from processing.watermark_service import WatermarkService
from models.removal_job import QualityAssessment
from storage.file_manager import FileManager
from storage.progress_store import MemoryProgressStore


FRAME_WIDTH = 320
FRAME_HEIGHT = 240


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir, ignore_errors=True)


def make_uniform_frame(width: int = FRAME_WIDTH, height: int = FRAME_HEIGHT,
                       color=(40, 40, 40)) -> np.ndarray:
    """Solid BGR frame."""
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    frame[:] = color
    return frame


def make_overlay_frame(width: int = FRAME_WIDTH, height: int = FRAME_HEIGHT) -> np.ndarray:
    """
    BGRA frame with a semi-transparent, high-contrast checkerboard in the
    bottom-right corner region and opaque flat content elsewhere.
    """
    frame = np.zeros((height, width, 4), dtype=np.uint8)
    frame[:, :, :3] = 60
    frame[:, :, 3] = 255

    corner_w = int(width * 0.3)
    corner_h = int(height * 0.3)
    x0 = width - corner_w
    y0 = height - corner_h
    ys, xs = np.mgrid[y0:height, x0:width]
    checker = ((ys + xs) % 2 == 0)
    frame[y0:height, x0:width, :3] = np.where(checker[..., None], 255, 0).astype(np.uint8)
    frame[y0:height, x0:width, 3] = 128
    return frame


@pytest.fixture
def sample_video_file(temp_dir):
    """Create a small sample video file."""
    video_path = temp_dir / "sample_video.mp4"

    fourcc = cv2.VideoWriter_fourcc(*'mp4v')
    writer = cv2.VideoWriter(str(video_path), fourcc, 30.0, (FRAME_WIDTH, FRAME_HEIGHT))
    for i in range(30):
        frame = make_uniform_frame(color=(40 + i, 40, 40))
        cv2.rectangle(frame, (250, 190), (300, 220), (255, 255, 255), -1)
        writer.write(frame)
    writer.release()

    return video_path


@pytest.fixture
def fake_video_file(temp_dir):
    """A non-empty file with a supported extension; its content is never decoded."""
    video_path = temp_dir / "clip.mp4"
    video_path.write_bytes(b"\x00" * 4096)
    return video_path


@pytest.fixture
def large_video_file(temp_dir):
    """A 4 MiB undecodable file, large enough for size-based estimates to yield frames."""
    video_path = temp_dir / "large_clip.mp4"
    video_path.write_bytes(b"\x00" * (4 * 1024 * 1024))
    return video_path


@pytest.fixture
def file_manager(temp_dir):
    """Create FileManager instance with temporary directories."""
    return FileManager(scratch_dir=temp_dir / "scratch", output_dir=temp_dir / "output")


@pytest.fixture
def memory_store():
    return MemoryProgressStore()


@pytest.fixture
def tracker(memory_store):
    return ProgressTracker(memory_store, ttl=300)


@pytest.fixture
def probed_metadata():
    return VideoMetadata(
        duration=10.0,
        fps=30.0,
        resolution=(FRAME_WIDTH, FRAME_HEIGHT),
        format='mp4',
        file_size=4096,
        frame_count=300
    )


@pytest.fixture
def mock_tool(probed_metadata):
    """FFmpegTool mock that writes overlay stills and copies the input on re-encode."""
    tool = MagicMock(spec=FFmpegTool)
    tool.probe.return_value = probed_metadata

    def _extract(video_ref, timestamp, output_path):
        cv2.imwrite(str(output_path), make_overlay_frame())
        return output_path

    def _reencode(input_ref, output_path, filter_chain, progress_callback=None, timeout=None):
        if progress_callback:
            for frames in (100, 200, 300):
                progress_callback(frames)
        shutil.copyfile(input_ref, output_path)
        return output_path

    tool.extract_frame.side_effect = _extract
    tool.reencode.side_effect = _reencode
    return tool


@pytest.fixture
def mock_quality_assessor():
    assessor = MagicMock(spec=QualityAssessor)
    assessor.assess.return_value = QualityAssessment(
        overall_score=96.5,
        artifact_score=8.0,
        consistency_score=98.0,
        notes=["Compared 4 frame pairs"],
        mean_ssim=0.965,
        mean_psnr=38.2,
        frames_compared=4
    )
    return assessor


@pytest.fixture
def sampler(mock_tool):
    return FrameSampler(mock_tool, FrameSamplerConfig())


@pytest.fixture
def job_runner(mock_tool, tracker, mock_quality_assessor, sampler, file_manager):
    runner = JobRunner(
        tool=mock_tool,
        tracker=tracker,
        quality_assessor=mock_quality_assessor,
        metadata_provider=sampler.probe_or_estimate,
        file_manager=file_manager,
        config=JobRunnerConfig(max_concurrent_jobs=1, progress_ttl=300, progress_update_interval=0.0)
    )
    yield runner
    runner.shutdown(wait=True)


@pytest.fixture
def watermark_service(sampler, job_runner, tracker, memory_store, mock_quality_assessor, file_manager):
    """Service wired with mocked ffmpeg and quality collaborators."""
    return WatermarkService(
        sampler=sampler,
        detector=RegionHeuristicDetector(pixel_reader=PixelReader()),
        runner=job_runner,
        tracker=tracker,
        store=memory_store,
        quality_assessor=mock_quality_assessor,
        file_manager=file_manager,
        detection_cache_ttl=60
    )


# Pytest hooks for test organization
def pytest_collection_modifyitems(config, items):
    """Add markers based on test file names."""
    for item in items:
        if "integration" in item.nodeid or "test_watermark_service" in item.nodeid:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
