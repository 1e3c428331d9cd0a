import math
import logging
import subprocess
from pathlib import Path
from typing import List, Optional

class FFprobeAdapter:
    """Wrapper around ffprobe to read the container duration."""

    def __init__(self, ffprobe_path: str = "ffprobe"):
        self.ffprobe_path = ffprobe_path
        self.logger = logging.getLogger(__name__)

    def _build_command(self, file_path: Path) -> List[str]:
        return [
            self.ffprobe_path,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=nw=1:nk=1",  # bare value, no key or section wrapper
            str(file_path),
        ]

    @staticmethod
    def _parse_duration(text: str) -> Optional[float]:
        try:
            value = float(text.strip())
        except ValueError:
            return None
        if not math.isfinite(value) or value <= 0:
            return None
        return value

    def get_duration(self, file_path: Path) -> Optional[float]:
        """Total duration in seconds, or None when it cannot be determined.

        A zero duration is reported as None too; callers switch to
        indeterminate progress either way.
        """
        try:
            result = subprocess.run(self._build_command(file_path), capture_output=True, text=True)
        except OSError as e:
            self.logger.warning(f"PROBE_FAILED: {file_path.name} (cannot run {self.ffprobe_path}: {e})")
            return None

        if result.returncode != 0:
            self.logger.warning(f"PROBE_FAILED: {file_path.name} (exit code {result.returncode})")
            return None

        duration = self._parse_duration(result.stdout or "")
        if duration is None:
            self.logger.warning(f"PROBE_FAILED: {file_path.name} (unusable duration {result.stdout!r})")
        return duration
