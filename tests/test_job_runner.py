"""Unit tests for JobRunner and ProgressTracker."""

import pytest
from unittest.mock import Mock

from models.removal_job import RemovalJob, RemovalNotFound, RemovalStatus
from models.removal_method import RemovalMethod
from models.watermark import BoundingBox, WatermarkCandidate, WatermarkType
from processing.errors import TranscodeError
from processing.job_runner import JobRunner, JobRunnerConfig, ProgressTracker, REMOVAL_KEY_PREFIX
from storage.progress_store import MemoryProgressStore, ProgressStoreError


def _job(video_ref, count=1, method=RemovalMethod.CONTENT_AWARE):
    watermarks = [
        WatermarkCandidate.create_new(WatermarkType.LOGO, 80.0, BoundingBox(10 + i * 60, 10, 40, 20))
        for i in range(count)
    ]
    return RemovalJob.create_new(str(video_ref), watermarks, method, estimated_time_seconds=80 * count)


class RecordingStore(MemoryProgressStore):
    """Memory store that remembers every written record."""

    def __init__(self):
        super().__init__()
        self.writes = []

    def put(self, key, value, ttl):
        self.writes.append(value)
        super().put(key, value, ttl)


class TestProgressTracker:
    """Test cases for ProgressTracker class."""

    def test_key_for(self):
        assert ProgressTracker.key_for("removal_1") == f"{REMOVAL_KEY_PREFIX}removal_1"

    def test_save_and_load(self, tracker, fake_video_file):
        job = _job(fake_video_file)
        tracker.save(job)
        loaded = tracker.load(job.removal_id)
        assert loaded.to_dict() == job.to_dict()

    def test_get_progress_not_found(self, tracker):
        result = tracker.get_progress("removal_missing")
        assert isinstance(result, RemovalNotFound)
        assert result.status == "not_found"

    def test_get_progress_has_no_side_effects(self, tracker, memory_store, fake_video_file):
        job = _job(fake_video_file)
        tracker.save(job)
        tracker.get_progress(job.removal_id)
        tracker.get_progress(job.removal_id)
        assert memory_store.get(tracker.key_for(job.removal_id)) == job.to_dict()


class TestJobRunner:
    """Test cases for JobRunner class."""

    @pytest.fixture
    def recording_store(self):
        return RecordingStore()

    @pytest.fixture
    def runner(self, mock_tool, recording_store, mock_quality_assessor, sampler, file_manager):
        runner = JobRunner(
            tool=mock_tool,
            tracker=ProgressTracker(recording_store, ttl=300),
            quality_assessor=mock_quality_assessor,
            metadata_provider=sampler.probe_or_estimate,
            file_manager=file_manager,
            config=JobRunnerConfig(max_concurrent_jobs=1, progress_ttl=300, progress_update_interval=0.0)
        )
        yield runner
        runner.shutdown(wait=True)

    def test_run_completes_job(self, runner, fake_video_file, mock_quality_assessor):
        job = _job(fake_video_file, count=2)

        result = runner.run(job)

        assert result.status == RemovalStatus.COMPLETED
        assert result.progress.percentage == 100.0
        assert result.progress.frames_processed == 300
        assert result.progress.total_frames == 300
        assert result.output_path is not None
        assert len(result.results) == 2
        assert result.results[0].directive == "border_fill"
        assert result.results[0].filter_expression.startswith("split[bf0m][bf0s];")
        assert result.results[1].filter_expression.startswith("split[bf1m][bf1s];")
        assert result.quality_assessment.overall_score == 96.5
        assert len(result.filter_chain) == 2
        mock_quality_assessor.assess.assert_called_once_with(str(fake_video_file), result.output_path)

    def test_run_uses_requested_output_path(self, runner, fake_video_file, temp_dir, mock_tool):
        output = temp_dir / "custom_output.mp4"
        result = runner.run(_job(fake_video_file), output)

        assert result.output_path == str(output)
        assert output.exists()
        assert mock_tool.reencode.call_args[0][1] == output

    def test_filter_chain_passed_to_encoder(self, runner, fake_video_file, mock_tool):
        runner.run(_job(fake_video_file, method=RemovalMethod.FREQUENCY_DOMAIN))
        chain = mock_tool.reencode.call_args[0][2]
        assert chain == "delogo=x=10:y=10:w=40:h=20:show=0"

    def test_empty_watermarks_apply_smoothing(self, runner, fake_video_file, mock_tool):
        job = RemovalJob.create_new(str(fake_video_file), [], RemovalMethod.FREQUENCY_DOMAIN)
        result = runner.run(job)

        assert result.status == RemovalStatus.COMPLETED
        assert mock_tool.reencode.call_args[0][2] == "hqdn3d=1.5:1.5:6:6"
        assert result.results == []

    def test_recorded_progress_is_monotonic(self, runner, recording_store, fake_video_file):
        job = _job(fake_video_file)
        runner.run(job)

        percentages = [write['progress']['percentage'] for write in recording_store.writes]
        statuses = [write['status'] for write in recording_store.writes]

        assert percentages == sorted(percentages)
        assert percentages[0] == 20.0
        assert percentages[-1] == 100.0
        assert statuses[0] == "preprocessing"
        assert statuses[-1] == "completed"
        assert any(60.0 < p < 100.0 for p in percentages)

    def test_encoder_progress_is_throttled(self, mock_tool, recording_store, mock_quality_assessor,
                                           sampler, file_manager, fake_video_file):
        runner = JobRunner(
            tool=mock_tool,
            tracker=ProgressTracker(recording_store, ttl=300),
            quality_assessor=mock_quality_assessor,
            metadata_provider=sampler.probe_or_estimate,
            file_manager=file_manager,
            config=JobRunnerConfig(max_concurrent_jobs=1, progress_update_interval=3600.0)
        )
        try:
            runner.run(_job(fake_video_file))
        finally:
            runner.shutdown()

        # preprocessing, processing, one encoder update, completed
        assert len(recording_store.writes) == 4

    def test_transcode_failure_marks_job_failed(self, runner, mock_tool, fake_video_file, temp_dir):
        output = temp_dir / "partial.mp4"

        def _fail(input_ref, output_path, filter_chain, progress_callback=None, timeout=None):
            output_path.write_bytes(b"partial")
            raise TranscodeError("Invalid filter: delogo out of range")

        mock_tool.reencode.side_effect = _fail

        result = runner.run(_job(fake_video_file), output)

        assert result.status == RemovalStatus.FAILED
        assert result.error == "Invalid filter: delogo out of range"
        assert result.completed_at is not None
        assert not output.exists()

    def test_failure_is_persisted(self, runner, mock_tool, fake_video_file):
        mock_tool.reencode.side_effect = TranscodeError("encoder crashed")
        job = _job(fake_video_file)
        runner.run(job)

        stored = runner.tracker.get_progress(job.removal_id)
        assert stored.status == RemovalStatus.FAILED
        assert stored.error == "encoder crashed"

    def test_unexpected_error_marks_job_failed(self, runner, fake_video_file):
        runner.metadata_provider = Mock(side_effect=KeyError("width"))
        result = runner.run(_job(fake_video_file))

        assert result.status == RemovalStatus.FAILED
        assert "width" in result.error

    def test_completed_output_survives_final_write_failure(self, mock_tool, mock_quality_assessor,
                                                           sampler, file_manager, fake_video_file, temp_dir):
        store = MemoryProgressStore()
        tracker = ProgressTracker(store, ttl=300)
        original_save = tracker.save

        def _save(job):
            if job.status == RemovalStatus.COMPLETED:
                raise ProgressStoreError("store unavailable")
            original_save(job)

        tracker.save = _save
        runner = JobRunner(mock_tool, tracker, mock_quality_assessor, sampler.probe_or_estimate,
                           file_manager=file_manager,
                           config=JobRunnerConfig(max_concurrent_jobs=1, progress_update_interval=0.0))
        output = temp_dir / "kept.mp4"
        try:
            result = runner.run(_job(fake_video_file), output)
        finally:
            runner.shutdown()

        assert result.status == RemovalStatus.COMPLETED
        assert output.exists()

    def test_submit_returns_initialization_snapshot(self, runner, fake_video_file):
        job = _job(fake_video_file)
        snapshot = runner.submit(job)

        assert snapshot.removal_id == job.removal_id
        assert snapshot.status == RemovalStatus.INITIALIZATION
        assert snapshot.progress.percentage == 0.0
        assert snapshot is not job

        runner.wait_for(job.removal_id, timeout=10)
        final = runner.tracker.get_progress(job.removal_id)
        assert final.status == RemovalStatus.COMPLETED
        assert final.progress.percentage == 100.0

    def test_submit_fails_when_store_unavailable(self, runner, fake_video_file):
        runner.tracker.save = Mock(side_effect=ProgressStoreError("down"))
        with pytest.raises(ProgressStoreError):
            runner.submit(_job(fake_video_file))

    def test_wait_for_unknown_job(self, runner):
        runner.wait_for("removal_unknown", timeout=1)
