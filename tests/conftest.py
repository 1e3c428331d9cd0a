import pytest
import yaml
from pathlib import Path
from typing import List, Optional
from unittest.mock import MagicMock
from dnxconvert.config.models import JobConfig
from dnxconvert.infrastructure.event_bus import EventBus
from dnxconvert.domain.events import ProgressEvent

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_job_config(dummy_media_files):
    """Returns a JobConfig with the default encode settings."""
    return JobConfig(
        files=dummy_media_files[:2],
        profile="dnxhr_hq",
        container="mov",
        audio_bits=16,
        audio_channels=2,
        preserve_fps=True,
        target_fps=25.0,
        timecode=None,
        normalize=False,
    )

@pytest.fixture
def config_yaml_path(tmp_path):
    """Creates a temporary YAML config file."""
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "dnxconvert.yaml"

    content = {
        'job': {
            'profile': 'dnxhr_hqx',
            'container': 'mxf',
            'audio_bits': 24,
            'audio_channels': 4,
            'preserve_fps': False,
            'target_fps': 23.976,
            'timecode': '01:00:00:00',
            'normalize': True,
        },
        'binaries': {
            'bundle_dir': str(tmp_path / "bundle"),
        },
        'logging': {
            'debug': True,
        },
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file

# ============================================================================
# EventBus Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

@pytest.fixture
def recorded_events(event_bus):
    """Collects every ProgressEvent published on event_bus."""
    events: List[ProgressEvent] = []
    event_bus.subscribe(ProgressEvent, events.append)
    return events

# ============================================================================
# File System Fixtures
# ============================================================================

@pytest.fixture
def test_input_dir(tmp_path):
    """Creates a test input directory."""
    input_dir = tmp_path / "input"
    input_dir.mkdir()
    return input_dir

@pytest.fixture
def dummy_media_files(test_input_dir):
    """Creates dummy media files in test input directory."""
    files = []
    for name in ("clip_a.mp4", "clip_b.mov", "clip c.MOV"):
        f = test_input_dir / name
        f.write_bytes(b"dummy video content " * 100)
        files.append(f)
    return files

# ============================================================================
# Subprocess Fakes
# ============================================================================

def progress_lines(duration_s: float, steps: int = 4, end: bool = True) -> List[str]:
    """ffmpeg -progress output covering duration_s in *steps* blocks."""
    lines = []
    for i in range(1, steps + 1):
        us = int(duration_s * 1_000_000 * i / steps)
        lines.extend([
            f"frame={i * 25}\n",
            f"out_time_us={us}\n",
            f"out_time_ms={us}\n",
            "out_time=00:00:00.000000\n",
            "progress=continue\n",
        ])
    if end:
        lines.append("progress=end\n")
    return lines

def make_process(stdout_lines: Optional[List[str]] = None, returncode: int = 0) -> MagicMock:
    """Popen stand-in whose stdout pipe yields *stdout_lines* and can be closed."""
    process = MagicMock()
    process.stdout = MagicMock()
    process.stdout.__iter__.return_value = iter(list(stdout_lines or []))
    process.wait.return_value = returncode
    process.returncode = returncode
    return process

def make_completed(stdout: str = "", stderr: str = "", returncode: int = 0) -> MagicMock:
    result = MagicMock()
    result.stdout = stdout
    result.stderr = stderr
    result.returncode = returncode
    return result

LOUDNORM_STDERR = """[Parsed_loudnorm_0 @ 0x55d5c8f0a8c0]
{
	"input_i" : "-18.40",
	"input_tp" : "-0.52",
	"input_lra" : "5.30",
	"input_thresh" : "-28.61",
	"output_i" : "-22.97",
	"output_tp" : "-2.00",
	"output_lra" : "4.80",
	"output_thresh" : "-33.14",
	"normalization_type" : "dynamic",
	"target_offset" : "-0.03"
}
"""

# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
