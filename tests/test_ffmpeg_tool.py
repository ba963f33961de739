"""Unit tests for the FFmpegTool wrapper with subprocess mocked."""

import io
import json
import subprocess
import pytest
from unittest.mock import Mock, patch

from processing.errors import ExtractionError, ExtractionUnavailable, ProbeError, TranscodeError
from processing.ffmpeg_tool import FFmpegTool, FFmpegToolConfig, _parse_frame_rate


def _probe_output(**stream_overrides):
    stream = {
        "codec_type": "video",
        "width": 1280,
        "height": 720,
        "avg_frame_rate": "30000/1001",
        "r_frame_rate": "30/1",
        "duration": "12.5",
        "nb_frames": "375",
    }
    stream.update(stream_overrides)
    return json.dumps({
        "streams": [{"codec_type": "audio"}, stream],
        "format": {"duration": "12.6", "size": "2048000", "format_name": "mov,mp4,m4a"}
    })


class TestParseFrameRate:

    @pytest.mark.parametrize("rate,expected", [
        ("30/1", 30.0),
        ("25", 25.0),
        ("0/0", 0.0),
        ("", 0.0),
        (None, 0.0),
        ("abc", 0.0),
    ])
    def test_parse(self, rate, expected):
        assert _parse_frame_rate(rate) == expected

    def test_ntsc_rate(self):
        assert _parse_frame_rate("30000/1001") == pytest.approx(29.97, rel=1e-3)


class TestProbe:
    """Test cases for FFmpegTool.probe."""

    @pytest.fixture
    def tool(self):
        return FFmpegTool(FFmpegToolConfig(ffprobe_binary="ffprobe-test", probe_timeout=5))

    def test_probe_parses_video_stream(self, tool):
        completed = Mock(returncode=0, stdout=_probe_output(), stderr="")
        with patch('processing.ffmpeg_tool.subprocess.run', return_value=completed) as run:
            metadata = tool.probe("/videos/input.mp4")

        cmd = run.call_args[0][0]
        assert cmd[0] == "ffprobe-test"
        assert cmd[-1] == "/videos/input.mp4"
        assert run.call_args[1]["timeout"] == 5

        assert metadata.resolution == (1280, 720)
        assert metadata.fps == pytest.approx(29.97, rel=1e-3)
        assert metadata.duration == 12.5
        assert metadata.total_frames == 375
        assert metadata.file_size == 2048000
        assert metadata.format == "mp4"
        assert not metadata.estimated

    def test_probe_falls_back_to_r_frame_rate_and_format_duration(self, tool):
        output = _probe_output(avg_frame_rate="0/0", duration=None, nb_frames=None)
        completed = Mock(returncode=0, stdout=output, stderr="")
        with patch('processing.ffmpeg_tool.subprocess.run', return_value=completed):
            metadata = tool.probe("/videos/input.mp4")

        assert metadata.fps == 30.0
        assert metadata.duration == 12.6
        assert metadata.frame_count is None
        assert metadata.total_frames == 378

    def test_probe_without_video_stream(self, tool):
        output = json.dumps({"streams": [{"codec_type": "audio"}], "format": {}})
        completed = Mock(returncode=0, stdout=output, stderr="")
        with patch('processing.ffmpeg_tool.subprocess.run', return_value=completed):
            with pytest.raises(ProbeError, match="No video stream"):
                tool.probe("/videos/audio_only.mp4")

    def test_probe_nonzero_exit(self, tool):
        completed = Mock(returncode=1, stdout="", stderr="Invalid data found when processing input")
        with patch('processing.ffmpeg_tool.subprocess.run', return_value=completed):
            with pytest.raises(ProbeError, match="Invalid data"):
                tool.probe("/videos/broken.mp4")

    def test_probe_invalid_json(self, tool):
        completed = Mock(returncode=0, stdout="not json", stderr="")
        with patch('processing.ffmpeg_tool.subprocess.run', return_value=completed):
            with pytest.raises(ProbeError, match="invalid JSON"):
                tool.probe("/videos/input.mp4")

    def test_probe_binary_missing(self, tool):
        with patch('processing.ffmpeg_tool.subprocess.run', side_effect=FileNotFoundError()):
            with pytest.raises(ProbeError, match="not found"):
                tool.probe("/videos/input.mp4")

    def test_probe_timeout(self, tool):
        with patch('processing.ffmpeg_tool.subprocess.run',
                   side_effect=subprocess.TimeoutExpired(cmd="ffprobe", timeout=5)):
            with pytest.raises(ProbeError, match="timed out"):
                tool.probe("/videos/input.mp4")


class TestExtractFrame:
    """Test cases for FFmpegTool.extract_frame."""

    def test_extract_frame_success(self, temp_dir):
        output = temp_dir / "frame_000.png"

        def _run(cmd, **kwargs):
            output.write_bytes(b"png")
            return Mock(returncode=0, stdout="", stderr="")

        with patch('processing.ffmpeg_tool.subprocess.run', side_effect=_run) as run:
            result = FFmpegTool().extract_frame("/videos/input.mp4", 3.3333, output)

        assert result == output
        cmd = run.call_args[0][0]
        assert cmd[cmd.index("-ss") + 1] == "3.333"
        assert cmd[cmd.index("-frames:v") + 1] == "1"
        assert cmd[-1] == str(output)

    def test_extract_frame_failure(self, temp_dir):
        completed = Mock(returncode=1, stdout="", stderr="Conversion failed")
        with patch('processing.ffmpeg_tool.subprocess.run', return_value=completed):
            with pytest.raises(ExtractionError, match="Conversion failed"):
                FFmpegTool().extract_frame("/videos/input.mp4", 1.0, temp_dir / "frame.png")

    def test_extract_frame_without_output(self, temp_dir):
        completed = Mock(returncode=0, stdout="", stderr="")
        with patch('processing.ffmpeg_tool.subprocess.run', return_value=completed):
            with pytest.raises(ExtractionError, match="produced no image"):
                FFmpegTool().extract_frame("/videos/input.mp4", 1.0, temp_dir / "frame.png")

    def test_extract_frame_timeout(self, temp_dir):
        with patch('processing.ffmpeg_tool.subprocess.run',
                   side_effect=subprocess.TimeoutExpired(cmd="ffmpeg", timeout=30)):
            with pytest.raises(ExtractionUnavailable, match="timed out"):
                FFmpegTool().extract_frame("/videos/input.mp4", 1.0, temp_dir / "frame.png")

    def test_extract_frame_binary_missing(self, temp_dir):
        with patch('processing.ffmpeg_tool.subprocess.run', side_effect=FileNotFoundError()):
            with pytest.raises(ExtractionUnavailable, match="not found"):
                FFmpegTool().extract_frame("/videos/input.mp4", 1.0, temp_dir / "frame.png")


class TestReencode:
    """Test cases for FFmpegTool.reencode."""

    def _process(self, progress_lines, returncode=0, stderr_text="", output=None):
        process = Mock()
        process.stdout = io.StringIO("".join(progress_lines))
        process.returncode = returncode

        def _wait():
            if output is not None:
                output.write_bytes(b"video")
            return returncode

        process.wait.side_effect = _wait
        return process

    def test_reencode_reports_progress(self, temp_dir):
        output = temp_dir / "out.mp4"
        lines = ["frame=10\n", "fps=30.0\n", "progress=continue\n", "frame=20\n", "frame=N/A\n", "progress=end\n"]
        process = self._process(lines, output=output)
        frames = []

        with patch('processing.ffmpeg_tool.subprocess.Popen', return_value=process) as popen:
            result = FFmpegTool().reencode("/videos/input.mp4", output, "hqdn3d=1.5:1.5:6:6",
                                           progress_callback=frames.append)

        assert result == output
        assert frames == [10, 20]
        cmd = popen.call_args[0][0]
        assert cmd[cmd.index("-vf") + 1] == "hqdn3d=1.5:1.5:6:6"
        assert cmd[cmd.index("-c:a") + 1] == "copy"
        assert cmd[cmd.index("-progress") + 1] == "pipe:1"

    def test_reencode_accepts_string_output_path(self, temp_dir):
        output = temp_dir / "out.mp4"
        process = self._process([], output=output)
        with patch('processing.ffmpeg_tool.subprocess.Popen', return_value=process):
            result = FFmpegTool().reencode("/videos/input.mp4", str(output), "hqdn3d=1.5:1.5:6:6")
        assert result == output

    def test_reencode_failure_carries_stderr(self, temp_dir):
        process = self._process([], returncode=1)

        def _popen(cmd, stdout, stderr, text):
            stderr.write("[delogo] Logo area is outside of the frame.\n")
            return process

        with patch('processing.ffmpeg_tool.subprocess.Popen', side_effect=_popen):
            with pytest.raises(TranscodeError, match="Logo area is outside of the frame"):
                FFmpegTool().reencode("/videos/input.mp4", temp_dir / "out.mp4", "delogo=x=0:y=0:w=1:h=1:show=0")

    def test_reencode_failure_without_stderr(self, temp_dir):
        process = self._process([], returncode=234)
        with patch('processing.ffmpeg_tool.subprocess.Popen', return_value=process):
            with pytest.raises(TranscodeError, match="exited with code 234"):
                FFmpegTool().reencode("/videos/input.mp4", temp_dir / "out.mp4", "hqdn3d=1.5:1.5:6:6")

    def test_reencode_missing_output(self, temp_dir):
        process = self._process([])
        with patch('processing.ffmpeg_tool.subprocess.Popen', return_value=process):
            with pytest.raises(TranscodeError, match="not created"):
                FFmpegTool().reencode("/videos/input.mp4", temp_dir / "out.mp4", "hqdn3d=1.5:1.5:6:6")

    def test_reencode_binary_missing(self, temp_dir):
        with patch('processing.ffmpeg_tool.subprocess.Popen', side_effect=FileNotFoundError()):
            with pytest.raises(TranscodeError, match="not found"):
                FFmpegTool().reencode("/videos/input.mp4", temp_dir / "out.mp4", "hqdn3d=1.5:1.5:6:6")

    def test_reencode_timeout_kills_process(self, temp_dir):
        process = self._process([], returncode=-9)
        with patch('processing.ffmpeg_tool.subprocess.Popen', return_value=process), \
                patch('processing.ffmpeg_tool.threading.Timer') as timer_cls:
            def _timer(interval, function):
                timer = Mock()
                timer.start.side_effect = function
                return timer

            timer_cls.side_effect = _timer
            with pytest.raises(TranscodeError, match="timed out after 5s"):
                FFmpegTool().reencode("/videos/input.mp4", temp_dir / "out.mp4", "hqdn3d=1.5:1.5:6:6", timeout=5)

        process.kill.assert_called_once()
