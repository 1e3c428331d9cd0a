import pytest
from pathlib import Path
import subprocess
from unittest.mock import patch, MagicMock
from dnxconvert.config.models import JobConfig
from dnxconvert.domain.events import STARTING_FRACTION
from dnxconvert.domain.models import EncodeJob
from dnxconvert.infrastructure.ffmpeg import FFmpegAdapter, SpawnError, select_pix_fmt, select_audio_codec
from conftest import make_process, progress_lines


def _job():
    return EncodeJob(index=0, input_path=Path("in.mp4"), output_path=Path("out/transcoded/in.mov"))


def _value_after(cmd, flag):
    return cmd[cmd.index(flag) + 1]


@pytest.mark.parametrize("profile,expected", [
    ("dnxhr_hqx", "yuv422p10le"),
    ("dnxhr_444", "yuv444p10le"),
    ("dnxhr_hq", "yuv422p"),
    ("dnxhr_sq", "yuv422p"),
    ("dnxhr_lb", "yuv422p"),
])
def test_pix_fmt_selection(profile, expected):
    assert select_pix_fmt(profile) == expected


@pytest.mark.parametrize("bits,expected", [(24, "pcm_s24le"), (16, "pcm_s16le"), (32, "pcm_s16le")])
def test_audio_codec_selection(bits, expected):
    assert select_audio_codec(bits) == expected


def test_ffmpeg_command_generation_defaults():
    adapter = FFmpegAdapter("/app/bin/ffmpeg")
    cmd = adapter.build_encode_command(_job(), JobConfig())

    assert cmd[0] == "/app/bin/ffmpeg"
    assert "-y" in cmd
    assert _value_after(cmd, "-i") == "in.mp4"
    assert _value_after(cmd, "-c:v") == "dnxhd"
    assert _value_after(cmd, "-profile:v") == "dnxhr_hq"
    assert _value_after(cmd, "-pix_fmt") == "yuv422p"
    assert _value_after(cmd, "-c:a") == "pcm_s16le"
    assert _value_after(cmd, "-ac") == "2"
    assert _value_after(cmd, "-progress") == "pipe:1"
    assert "-nostats" in cmd
    assert "-r" not in cmd
    assert "-timecode" not in cmd
    assert "-af" not in cmd
    assert cmd[-1] == str(Path("out/transcoded/in.mov"))


def test_ffmpeg_command_fixed_fps_and_timecode():
    config = JobConfig(profile="dnxhr_444", audio_bits=24, audio_channels=8,
                       preserve_fps=False, target_fps=23.976, timecode="01:00:00:00")
    cmd = FFmpegAdapter().build_encode_command(_job(), config)

    assert _value_after(cmd, "-r") == "23.976"
    assert _value_after(cmd, "-timecode") == "01:00:00:00"
    assert _value_after(cmd, "-pix_fmt") == "yuv444p10le"
    assert _value_after(cmd, "-c:a") == "pcm_s24le"
    assert _value_after(cmd, "-ac") == "8"


def test_ffmpeg_command_fps_three_decimals():
    config = JobConfig(preserve_fps=False, target_fps=25)
    cmd = FFmpegAdapter().build_encode_command(_job(), config)
    assert _value_after(cmd, "-r") == "25.000"


def test_ffmpeg_command_audio_filter_before_output():
    cmd = FFmpegAdapter().build_encode_command(_job(), JobConfig(), audio_filter="loudnorm=I=-23")
    assert _value_after(cmd, "-af") == "loudnorm=I=-23"
    assert cmd.index("-af") < cmd.index("-progress") < len(cmd) - 1


def test_run_pass_success_reports_progress():
    received = []
    process = make_process(progress_lines(4.0, steps=2), returncode=0)

    with patch("subprocess.Popen", return_value=process) as mock_popen:
        code = FFmpegAdapter().run_pass(["ffmpeg"], 4.0, received.append)

    assert code == 0
    assert received[-1] == 1.0
    kwargs = mock_popen.call_args.kwargs
    assert kwargs["stderr"] is not None  # DEVNULL, never left attached
    assert received[:-1] == sorted(received[:-1])


def test_run_pass_returns_exit_code():
    process = make_process(["out_time_us=100\n"], returncode=1)
    with patch("subprocess.Popen", return_value=process):
        assert FFmpegAdapter().run_pass(["ffmpeg"], 10.0, MagicMock()) == 1


def test_run_pass_spawn_failure():
    callback = MagicMock()
    with patch("subprocess.Popen", side_effect=FileNotFoundError("ffmpeg")):
        with pytest.raises(SpawnError) as excinfo:
            FFmpegAdapter("/missing/ffmpeg").run_pass(["/missing/ffmpeg", "-y"], 10.0, callback)

    assert "/missing/ffmpeg" in str(excinfo.value)
    callback.assert_not_called()


def test_run_pass_stops_ffmpeg_when_progress_callback_raises():
    process = make_process(progress_lines(10.0, steps=4), returncode=0)

    def broken_consumer(fraction):
        raise RuntimeError("consumer bug")

    with patch("subprocess.Popen", return_value=process):
        with pytest.raises(RuntimeError, match="consumer bug"):
            FFmpegAdapter().run_pass(["ffmpeg"], 10.0, broken_consumer)

    process.terminate.assert_called_once()
    process.wait.assert_called_once_with(timeout=3)
    process.kill.assert_not_called()
    process.stdout.close.assert_called_once()


def test_run_pass_kills_ffmpeg_that_ignores_terminate():
    process = make_process(["out_time_us=1000000\n"], returncode=0)
    process.wait.side_effect = [subprocess.TimeoutExpired("ffmpeg", 3), -9]

    def broken_consumer(fraction):
        raise ValueError("bad fraction")

    with patch("subprocess.Popen", return_value=process):
        with pytest.raises(ValueError, match="bad fraction"):
            FFmpegAdapter().run_pass(["ffmpeg"], 10.0, broken_consumer)

    process.terminate.assert_called_once()
    process.kill.assert_called_once()
    assert process.wait.call_count == 2


def test_run_pass_closes_stdout_after_normal_exit():
    process = make_process(progress_lines(4.0, steps=2), returncode=0)
    with patch("subprocess.Popen", return_value=process):
        FFmpegAdapter().run_pass(["ffmpeg"], 4.0, MagicMock())

    process.stdout.close.assert_called_once()
    process.terminate.assert_not_called()


def test_run_pass_never_reports_below_starting_fraction():
    received = []
    process = make_process(["out_time_us=0\n", "out_time_us=500000\n", "out_time_us=5000000\n"], returncode=0)

    with patch("subprocess.Popen", return_value=process):
        FFmpegAdapter().run_pass(["ffmpeg"], 10.0, received.append)

    assert received[0] == pytest.approx(STARTING_FRACTION)
    assert received == sorted(received)
    assert received[-1] == pytest.approx(0.5)
