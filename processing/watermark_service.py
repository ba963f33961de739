"""
Public entry point for watermark detection and removal.

WatermarkService wires the sampler, detector, deduplicator, method selector,
job runner and quality assessor together. ``detect`` and ``remove`` never
raise: failures come back as a failed DetectionResult or RemovalJob.
"""

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Union

from models.detection_result import DetectionPath, DetectionResult, FrameAnalysisSummary
from models.removal_job import QualityAssessment, RemovalJob, RemovalNotFound, RemovalStatus
from models.removal_method import RemovalMethod
from models.report import BatchConfiguration, ProcessingStrategy, RemovalPlan, RemovalReport
from models.validation import ValidationError, parse_watermarks, validate_video_ref
from models.video_metadata import VideoMetadata
from models.watermark import WatermarkCandidate
from processing.deduplicator import WatermarkDeduplicator
from processing.errors import MissingCapability
from processing.estimators import estimate_removal_seconds, estimate_resources, estimate_seconds_by_difficulty
from processing.frame_sampler import FrameSampler, SamplingOutcome
from processing.job_runner import JobRunner, ProgressTracker
from processing.method_selector import MethodSelector, aggregate_confidence
from processing.quality import QualityAssessor
from processing.region_detector import RegionHeuristicDetector
from storage.file_manager import FileManager
from storage.progress_store import ProgressStore, ProgressStoreError

logger = logging.getLogger(__name__)

DETECTION_KEY_PREFIX = "watermark_detection_"

WatermarkInput = Union[WatermarkCandidate, Mapping[str, Any]]


@dataclass
class DetectionOptions:
    """Options accepted by ``detect``."""

    sample_count: Optional[int] = None
    use_cache: bool = True

    @classmethod
    def coerce(cls, options: Union['DetectionOptions', Mapping[str, Any], None]) -> 'DetectionOptions':
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        if not isinstance(options, Mapping):
            raise ValidationError(f"Detection options must be a mapping, got {type(options).__name__}")

        sample_count = options.get('sample_count')
        if sample_count is not None:
            try:
                sample_count = int(sample_count)
            except (TypeError, ValueError):
                raise ValidationError(f"sample_count must be an integer, got {sample_count!r}")
        return cls(sample_count=sample_count, use_cache=bool(options.get('use_cache', True)))


@dataclass
class RemovalOptions:
    """Options accepted by ``remove``."""

    method: Optional[RemovalMethod] = None  # Overrides confidence-based selection
    output_path: Optional[str] = None

    @classmethod
    def coerce(cls, options: Union['RemovalOptions', Mapping[str, Any], None]) -> 'RemovalOptions':
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        if not isinstance(options, Mapping):
            raise ValidationError(f"Removal options must be a mapping, got {type(options).__name__}")

        method = options.get('method')
        if method is not None and not isinstance(method, RemovalMethod):
            try:
                method = RemovalMethod(method)
            except ValueError:
                raise ValidationError(f"Unknown removal method: {method}")

        output_path = options.get('output_path')
        return cls(method=method, output_path=str(output_path) if output_path else None)


class WatermarkService:
    """Facade over the detection pipeline and the removal job runner."""

    def __init__(self, sampler: FrameSampler, detector: RegionHeuristicDetector,
                 runner: JobRunner, tracker: ProgressTracker, store: ProgressStore,
                 quality_assessor: QualityAssessor,
                 deduplicator: Optional[WatermarkDeduplicator] = None,
                 selector: Optional[MethodSelector] = None,
                 file_manager: Optional[FileManager] = None,
                 detection_cache_ttl: int = 600,
                 scratch_retention_hours: int = 24):
        self.sampler = sampler
        self.detector = detector
        self.runner = runner
        self.tracker = tracker
        self.store = store
        self.quality_assessor = quality_assessor
        self.deduplicator = deduplicator or WatermarkDeduplicator()
        self.selector = selector or MethodSelector()
        self.file_manager = file_manager or FileManager()
        self.detection_cache_ttl = detection_cache_ttl
        self.scratch_retention_hours = scratch_retention_hours

    # Detection

    def detect(self, video_ref: str,
               options: Union[DetectionOptions, Mapping[str, Any], None] = None) -> DetectionResult:
        """
        Detect watermark candidates in a video.

        Args:
            video_ref: Local path or URI of the video
            options: DetectionOptions or an equivalent mapping

        Returns:
            A completed DetectionResult, or a failed one carrying the error
        """
        started = time.monotonic()
        try:
            options = DetectionOptions.coerce(options)
            validate_video_ref(video_ref)

            cache_key = self._detection_cache_key(video_ref, options)
            if options.use_cache:
                cached = self._cached_detection(cache_key)
                if cached is not None:
                    logger.info(f"Detection for {video_ref} served from cache")
                    return cached

            result = self._run_detection(video_ref, options, started)
            self._cache_detection(cache_key, result)
            return result

        except ValidationError as e:
            logger.warning(f"Detection rejected for {video_ref}: {e}")
            return DetectionResult.failed(video_ref, str(e))
        except Exception as e:
            logger.exception(f"Detection failed for {video_ref}")
            return DetectionResult.failed(video_ref, f"Detection failed: {e}")

    def _detection_cache_key(self, video_ref: str, options: DetectionOptions) -> str:
        payload = json.dumps({'video_ref': video_ref, 'sample_count': options.sample_count}, sort_keys=True)
        return f"{DETECTION_KEY_PREFIX}{hashlib.sha256(payload.encode()).hexdigest()}"

    def _cached_detection(self, cache_key: str) -> Optional[DetectionResult]:
        try:
            data = self.store.get(cache_key)
        except ProgressStoreError as e:
            logger.warning(f"Detection cache read failed: {e}")
            return None
        return DetectionResult.from_dict(data) if data else None

    def _cache_detection(self, cache_key: str, result: DetectionResult) -> None:
        try:
            self.store.put(cache_key, result.to_dict(), self.detection_cache_ttl)
        except ProgressStoreError as e:
            logger.warning(f"Detection cache write failed: {e}")

    def _run_detection(self, video_ref: str, options: DetectionOptions, started: float) -> DetectionResult:
        if not self.detector.can_inspect_pixels:
            return self._static_fallback(video_ref, started, "Pixel inspection is not available")

        scratch = self.file_manager.create_scratch_dir('detect')
        try:
            outcome = self.sampler.sample(video_ref, scratch, options.sample_count)
            if not outcome.ok:
                return self._default_region_fallback(video_ref, outcome, started, outcome.error)

            raw_candidates: List[WatermarkCandidate] = []
            frames_analyzed = 0
            regions_evaluated = 0
            max_score = 0.0
            frame_size = outcome.metadata.resolution

            for frame in outcome.frames:
                try:
                    analysis = self.detector.analyze_still(frame.path, frame.index)
                except MissingCapability as e:
                    return self._static_fallback(video_ref, started, str(e), outcome)
                if analysis is None:
                    continue

                frames_analyzed += 1
                regions_evaluated += analysis.regions_evaluated
                max_score = max(max_score, analysis.max_score)
                frame_size = (analysis.width, analysis.height)
                raw_candidates.extend(analysis.candidates)

            if frames_analyzed == 0:
                return self._default_region_fallback(
                    video_ref, outcome, started, "No sampled frame could be decoded"
                )
        finally:
            self.file_manager.remove_scratch_dir(scratch)

        candidates = self.deduplicator.deduplicate(raw_candidates, frames_analyzed)
        summary = self._summary(
            outcome, started, DetectionPath.HEURISTIC,
            frames_analyzed=frames_analyzed,
            regions_evaluated=regions_evaluated,
            raw_candidates=len(raw_candidates),
            max_region_score=round(max_score, 2),
            frame_size=frame_size
        )
        logger.info(f"Detected {len(candidates)} watermarks in {video_ref} "
                    f"from {frames_analyzed} frames ({len(raw_candidates)} raw)")
        return DetectionResult.completed(video_ref, candidates, aggregate_confidence(candidates), summary)

    def _summary(self, outcome: Optional[SamplingOutcome], started: float, path: DetectionPath,
                 fallback_reason: Optional[str] = None, frame_size=None, **counts) -> FrameAnalysisSummary:
        if outcome is not None and frame_size is None:
            frame_size = outcome.metadata.resolution
        width, height = frame_size or (0, 0)
        return FrameAnalysisSummary(
            frames_requested=outcome.frames_requested if outcome else 0,
            total_frames=outcome.total_frames if outcome else 0,
            frames_estimated=outcome.frames_estimated if outcome else False,
            detection_path=path,
            fallback_reason=fallback_reason,
            frame_width=width,
            frame_height=height,
            processing_time_seconds=round(time.monotonic() - started, 3),
            **counts
        )

    def _default_region_fallback(self, video_ref: str, outcome: SamplingOutcome, started: float,
                                 reason: Optional[str]) -> DetectionResult:
        logger.warning(f"Using default region for {video_ref}: {reason}")
        width, height = outcome.metadata.resolution
        candidates = [self.detector.default_region_candidate(width, height)]
        summary = self._summary(outcome, started, DetectionPath.DEFAULT_REGION, reason)
        return DetectionResult.completed(video_ref, candidates, aggregate_confidence(candidates), summary)

    def _static_fallback(self, video_ref: str, started: float, reason: str,
                         outcome: Optional[SamplingOutcome] = None) -> DetectionResult:
        logger.warning(f"Using static candidate for {video_ref}: {reason}")
        candidates = [self.detector.static_candidate()]
        summary = self._summary(outcome, started, DetectionPath.STATIC_FALLBACK, reason)
        return DetectionResult.completed(video_ref, candidates, aggregate_confidence(candidates), summary)

    # Removal

    def remove(self, video_ref: str, watermarks: Optional[Iterable[WatermarkInput]] = None,
               options: Union[RemovalOptions, Mapping[str, Any], None] = None) -> RemovalJob:
        """
        Start an asynchronous removal job.

        Args:
            video_ref: Local path or URI of the video
            watermarks: Candidates or plain dictionaries; a DetectionResult's
                candidates can be passed straight through
            options: RemovalOptions or an equivalent mapping

        Returns:
            The job as persisted in its initialization state, or a failed job
            if the request was rejected
        """
        try:
            options = RemovalOptions.coerce(options)
            parsed = parse_watermarks(watermarks)
            validate_video_ref(video_ref)

            method = options.method or self.selector.select(parsed)
            job = RemovalJob.create_new(
                video_ref, parsed, method,
                estimated_time_seconds=estimate_removal_seconds(method, len(parsed))
            )
            output_path = Path(options.output_path) if options.output_path else None
        except ValidationError as e:
            logger.warning(f"Removal rejected for {video_ref}: {e}")
            return self._rejected_job(video_ref, str(e))
        except Exception as e:
            logger.exception(f"Removal request failed for {video_ref}")
            return self._rejected_job(video_ref, f"Removal failed: {e}")

        try:
            return self.runner.submit(job, output_path)
        except (ProgressStoreError, RuntimeError) as e:
            logger.error(f"Removal {job.removal_id} could not be scheduled for {video_ref}: {e}")
            job.mark_failed(f"Removal could not be scheduled: {e}")
            self._record_failure(job)
            return job

    def _rejected_job(self, video_ref: str, error: str) -> RemovalJob:
        job = RemovalJob.create_new(video_ref, [], MethodSelector.FALLBACK)
        job.mark_failed(error)
        self._record_failure(job)
        return job

    def _record_failure(self, job: RemovalJob) -> None:
        try:
            self.tracker.save(job)
        except ProgressStoreError as e:
            logger.error(f"Could not record failed removal {job.removal_id}: {e}")

    def get_progress(self, removal_id: str) -> Union[RemovalJob, RemovalNotFound]:
        """
        Read the latest record of a removal job.

        Raises:
            ProgressStoreError: If the store cannot be read
        """
        return self.tracker.get_progress(removal_id)

    # Planning and reporting

    def optimize_removal_settings(self, watermarks: Iterable[WatermarkInput],
                                  video_metadata: Union[VideoMetadata, Mapping[str, Any], None] = None
                                  ) -> RemovalPlan:
        """
        Recommend removal settings for a watermark list.

        All figures are deterministic approximations.

        Raises:
            ValidationError: If the watermark list is malformed
        """
        parsed = parse_watermarks(watermarks)
        count = len(parsed)
        resources = estimate_resources(count)

        if isinstance(video_metadata, VideoMetadata):
            metadata_dict = video_metadata.to_dict()
        else:
            metadata_dict = dict(video_metadata or {})

        return RemovalPlan(
            recommended_method=self.selector.select(parsed),
            mean_confidence=aggregate_confidence(parsed),
            processing_strategy=ProcessingStrategy(
                batch_size=min(count, 3),
                parallel_processing=count > 2,
                frame_sampling='adaptive' if count > 5 else 'full'
            ),
            batch_configuration=BatchConfiguration(
                enabled=count > 1,
                batch_size=min(count, 4),
                processing_order='difficulty_ascending',
                parallel_workers=min(count, 2, resources.cpu_count)
            ),
            estimated_processing_seconds=estimate_seconds_by_difficulty(parsed),
            resource_estimate=resources,
            video_metadata=metadata_dict
        )

    def generate_removal_report(self, removal_id: str) -> Union[RemovalReport, RemovalNotFound]:
        """Summarize a removal job from its persisted record."""
        job = self.tracker.load(removal_id)
        if job is None:
            return RemovalNotFound(removal_id)

        quality = job.quality_assessment
        return RemovalReport(
            removal_id=removal_id,
            generated_at=datetime.now(),
            status=job.status.value,
            selected_method=job.selected_method,
            declared_accuracy=self.selector.profile(job.selected_method).accuracy,
            total_watermarks=len(job.watermarks),
            watermarks_processed=len(job.results or []),
            frames_processed=job.progress.frames_processed,
            total_frames=job.progress.total_frames,
            mean_detection_confidence=aggregate_confidence(job.watermarks),
            processing_seconds=job.processing_duration,
            quality=quality.to_dict() if quality else None,
            error=job.error,
            recommendations=self._recommendations(job)
        )

    def _recommendations(self, job: RemovalJob) -> List[str]:
        recommendations = []
        quality = job.quality_assessment

        if job.status == RemovalStatus.FAILED:
            recommendations.append("Check the source video and start a new removal")
        elif not job.is_complete:
            recommendations.append("Removal is still running; generate the report again once it completes")

        if quality is not None and not quality.is_available:
            recommendations.append("Quality could not be measured; review the output manually")
        if quality is not None and quality.is_available:
            if quality.artifact_score > 15 and job.selected_method != RemovalMethod.INPAINTING:
                recommendations.append("Consider using inpainting method for complex watermarks")
            if quality.overall_score < 90:
                recommendations.append("Apply post-processing filters to enhance quality")

        if any(w.temporal_consistency < 50 for w in job.watermarks) \
                and job.selected_method != RemovalMethod.TEMPORAL_COHERENCE:
            recommendations.append("Enable temporal coherence for moving watermarks")
        if len(job.watermarks) > 1:
            recommendations.append("Use batch processing for multiple similar watermarks")

        recommendations.append("Verify removal quality on different devices")
        return recommendations

    def assess_quality(self, original_ref: str, processed_ref: str) -> QualityAssessment:
        """Compare a processed video with its source."""
        return self.quality_assessor.assess(original_ref, processed_ref)

    # Housekeeping

    def cleanup_scratch(self, max_age_hours: Optional[int] = None) -> int:
        """Delete scratch entries older than ``max_age_hours`` (defaults to the retention setting)."""
        hours = max_age_hours if max_age_hours is not None else self.scratch_retention_hours
        removed = self.file_manager.cleanup_old_scratch(hours)
        logger.info(f"Scratch cleanup removed {removed} entries older than {hours}h")
        return removed

    def shutdown(self, wait: bool = True) -> None:
        self.runner.shutdown(wait=wait)
