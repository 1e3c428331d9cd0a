import pytest
from pathlib import Path
from unittest.mock import patch
from dnxconvert.infrastructure.ffprobe import FFprobeAdapter
from conftest import make_completed


def test_ffprobe_command_requests_bare_duration():
    adapter = FFprobeAdapter("/app/bin/ffprobe")
    cmd = adapter._build_command(Path("clip.mov"))

    assert cmd[0] == "/app/bin/ffprobe"
    assert cmd[cmd.index("-show_entries") + 1] == "format=duration"
    assert cmd[cmd.index("-of") + 1] == "default=nw=1:nk=1"
    assert cmd[-1] == "clip.mov"


def test_ffprobe_duration_parsed():
    with patch("subprocess.run", return_value=make_completed(stdout="12.480000\n")):
        assert FFprobeAdapter().get_duration(Path("clip.mov")) == pytest.approx(12.48)


@pytest.mark.parametrize("stdout", ["N/A\n", "", "0.000000\n", "-3.5\n", "inf\n", "nan\n"])
def test_ffprobe_unusable_output_is_none(stdout):
    with patch("subprocess.run", return_value=make_completed(stdout=stdout)):
        assert FFprobeAdapter().get_duration(Path("clip.mov")) is None


def test_ffprobe_nonzero_exit_is_none():
    with patch("subprocess.run", return_value=make_completed(stdout="10.0", returncode=1)):
        assert FFprobeAdapter().get_duration(Path("clip.mov")) is None


def test_ffprobe_missing_binary_is_none():
    with patch("subprocess.run", side_effect=FileNotFoundError("ffprobe")):
        assert FFprobeAdapter("/nope/ffprobe").get_duration(Path("clip.mov")) is None
