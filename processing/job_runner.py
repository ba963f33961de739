"""
Asynchronous execution of watermark removal jobs.

The JobRunner owns every write to a job record: the caller gets the
initialization snapshot back immediately while a worker thread walks the
job through preprocessing and processing to a terminal state.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from models.removal_job import RemovalJob, RemovalNotFound, WatermarkRemovalResult
from models.video_metadata import VideoMetadata
from processing.errors import WatermarkPipelineError
from processing.ffmpeg_tool import FFmpegTool
from processing.filter_builder import FilterDirective, RemovalFilterBuilder
from processing.quality import QualityAssessor
from storage.file_manager import FileManager
from storage.progress_store import ProgressStore, ProgressStoreError

logger = logging.getLogger(__name__)

REMOVAL_KEY_PREFIX = "watermark_removal_"


@dataclass
class JobRunnerConfig:
    """Configuration for removal job execution."""

    max_concurrent_jobs: int = 2
    progress_ttl: int = 3600  # Seconds a job record survives without a write
    progress_update_interval: float = 2.0  # Minimum seconds between encode progress writes
    reencode_timeout: int = 3600

    # Percentage range covered while the encoder runs
    processing_start_percentage: float = 60.0
    processing_end_percentage: float = 95.0

    @classmethod
    def from_settings(cls, settings: Any) -> 'JobRunnerConfig':
        return cls(
            max_concurrent_jobs=settings.MAX_CONCURRENT_JOBS,
            progress_ttl=settings.PROGRESS_TTL,
            progress_update_interval=settings.PROGRESS_UPDATE_INTERVAL,
            reencode_timeout=settings.REENCODE_TIMEOUT
        )


class ProgressTracker:
    """Reads and writes full removal job records in the progress store."""

    def __init__(self, store: ProgressStore, ttl: int = 3600):
        self.store = store
        self.ttl = ttl

    @staticmethod
    def key_for(removal_id: str) -> str:
        return f"{REMOVAL_KEY_PREFIX}{removal_id}"

    def save(self, job: RemovalJob) -> None:
        """Overwrite the stored record with the job's current state."""
        self.store.put(self.key_for(job.removal_id), job.to_dict(), self.ttl)

    def load(self, removal_id: str) -> Optional[RemovalJob]:
        data = self.store.get(self.key_for(removal_id))
        if data is None:
            return None
        return RemovalJob.from_dict(data)

    def get_progress(self, removal_id: str):
        """
        Read the current record without side effects.

        Returns:
            RemovalJob, or RemovalNotFound when no record exists
        """
        job = self.load(removal_id)
        if job is None:
            return RemovalNotFound(removal_id)
        return job


class _EncodeProgress:
    """Maps encoder frame counts onto the processing percentage range."""

    def __init__(self, runner: 'JobRunner', job: RemovalJob):
        self.runner = runner
        self.job = job
        self._last_write: Optional[float] = None

    def __call__(self, frames_processed: int) -> None:
        config = self.runner.config
        now = time.monotonic()
        if self._last_write is not None and now - self._last_write < config.progress_update_interval:
            return

        total = self.job.progress.total_frames
        fraction = min(1.0, frames_processed / total) if total > 0 else 0.0
        span = config.processing_end_percentage - config.processing_start_percentage
        self.job.advance_progress(config.processing_start_percentage + span * fraction, frames_processed)
        self._last_write = now

        try:
            self.runner.tracker.save(self.job)
        except ProgressStoreError as e:
            logger.warning(f"Removal {self.job.removal_id}: progress write skipped: {e}")


class JobRunner:
    """Runs removal jobs on a thread pool and records their progress."""

    def __init__(self, tool: FFmpegTool, tracker: ProgressTracker,
                 quality_assessor: QualityAssessor,
                 metadata_provider: Callable[[str], VideoMetadata],
                 filter_builder: Optional[RemovalFilterBuilder] = None,
                 file_manager: Optional[FileManager] = None,
                 config: Optional[JobRunnerConfig] = None):
        """
        Initialize the runner.

        Args:
            tool: Transcode tool used for the re-encode
            tracker: Progress tracker persisting job records
            quality_assessor: Assessor run on the finished output
            metadata_provider: Returns probed or estimated metadata for a video ref
            filter_builder: Builder for the removal filter chain
            file_manager: File manager for output paths and cleanup
            config: Runner configuration
        """
        self.tool = tool
        self.tracker = tracker
        self.quality_assessor = quality_assessor
        self.metadata_provider = metadata_provider
        self.filter_builder = filter_builder or RemovalFilterBuilder()
        self.file_manager = file_manager or FileManager()
        self.config = config or JobRunnerConfig()

        self.executor = ThreadPoolExecutor(max_workers=self.config.max_concurrent_jobs,
                                           thread_name_prefix="removal")
        self._futures: Dict[str, Future] = {}
        self._lock = threading.Lock()

    def submit(self, job: RemovalJob, output_path: Optional[Path] = None) -> RemovalJob:
        """
        Persist the job in its initialization state and schedule it.

        Args:
            job: Freshly created job in the initialization state
            output_path: Destination for the processed video; generated if None

        Returns:
            Snapshot of the job as persisted before any work started

        Raises:
            ProgressStoreError: If the initial record cannot be written
        """
        self.tracker.save(job)
        snapshot = RemovalJob.from_dict(job.to_dict())

        future = self.executor.submit(self.run, job, output_path)
        with self._lock:
            self._futures[job.removal_id] = future
        future.add_done_callback(lambda _: self._forget(job.removal_id))

        logger.info(f"Removal {job.removal_id} scheduled: {len(job.watermarks)} watermarks, "
                    f"method {job.selected_method.value}")
        return snapshot

    def _forget(self, removal_id: str) -> None:
        with self._lock:
            self._futures.pop(removal_id, None)

    def wait_for(self, removal_id: str, timeout: Optional[float] = None) -> None:
        """Block until a scheduled job has finished running, if it is still known."""
        with self._lock:
            future = self._futures.get(removal_id)
        if future is not None:
            future.result(timeout=timeout)

    def _results_for(self, job: RemovalJob,
                     directives: Sequence[FilterDirective]) -> List[WatermarkRemovalResult]:
        return [
            WatermarkRemovalResult(
                watermark_id=watermark.id,
                method=job.selected_method,
                directive=directive.kind.value,
                filter_expression=directive.render(index),
                region=directive.region
            )
            for index, (watermark, directive) in enumerate(zip(job.watermarks, directives))
        ]

    def run(self, job: RemovalJob, output_path: Optional[Path] = None) -> RemovalJob:
        """
        Execute a job to completion on the current thread.

        Failures are recorded on the job instead of being raised.
        """
        try:
            job.mark_preprocessing()
            self.tracker.save(job)

            metadata = self.metadata_provider(job.video_ref)
            job.progress.total_frames = metadata.total_frames

            directives = self.filter_builder.build(job.watermarks, job.selected_method, metadata.resolution)
            job.filter_chain = [directive.render(index) for index, directive in enumerate(directives)]
            output_path = output_path or self.file_manager.create_output_path(job.removal_id, job.video_ref)

            job.mark_processing()
            self.tracker.save(job)

            self.tool.reencode(
                job.video_ref,
                output_path,
                RemovalFilterBuilder.render_chain(directives),
                progress_callback=_EncodeProgress(self, job),
                timeout=self.config.reencode_timeout
            )

            quality = self.quality_assessor.assess(job.video_ref, str(output_path))
            job.mark_completed(str(output_path), self._results_for(job, directives), quality)
            self.tracker.save(job)

            logger.info(f"Removal {job.removal_id} completed: {output_path}")

        except WatermarkPipelineError as e:
            logger.error(f"Removal {job.removal_id} failed during {job.status.value} "
                         f"({job.selected_method.value}, {job.video_ref}): {e}")
            self._fail(job, str(e), output_path)
        except Exception as e:
            logger.exception(f"Removal {job.removal_id} failed unexpectedly during {job.status.value}")
            self._fail(job, str(e), output_path)

        return job

    def _fail(self, job: RemovalJob, message: str, output_path: Optional[Path]) -> None:
        if not job.is_complete:
            job.mark_failed(message)

        # A completed job keeps its output even if the final write failed
        if output_path is not None and job.output_path is None:
            self.file_manager.remove_file(Path(output_path))

        try:
            self.tracker.save(job)
        except ProgressStoreError as e:
            logger.error(f"Could not record failure of removal {job.removal_id}: {e}")

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs and optionally wait for running ones."""
        self.executor.shutdown(wait=wait)
        logger.info("Job runner shut down")
