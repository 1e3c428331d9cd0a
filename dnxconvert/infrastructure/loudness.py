"""EBU R128 measurement pass (first half of two-pass loudnorm).

ffmpeg prints the loudnorm summary as a JSON-looking block on stderr. Its
exact layout is not a stable contract (values are quoted strings, key names
differ between versions), so numbers are pulled out with a tolerant scanner
instead of a JSON parser.
"""

import logging
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dnxconvert.domain.models import LoudnessParams

# Target: -23 LUFS integrated, -2 dBTP true peak, 7 LU range
LOUDNORM_TARGET = "I=-23:TP=-2:LRA=7"

# field -> (input spelling, measured spelling, default)
LOUDNESS_FIELDS: Dict[str, Tuple[str, str, float]] = {
    "input_i": ("input_i", "measured_I", -23.0),
    "input_lra": ("input_lra", "measured_LRA", 7.0),
    "input_tp": ("input_tp", "measured_TP", -2.0),
    "input_thresh": ("input_thresh", "measured_thresh", -34.0),
}

_NUMBER_CHARS = set("0123456789-.")


def extract_json_number(text: str, key: str) -> Optional[float]:
    """Find `"key"`, skip to the next ':' and read the number that follows.

    Leading non-numeric characters (spaces, quotes) are skipped; accumulation
    stops at the first non-numeric character after the number starts.
    """
    pattern = f'"{key}"'
    pos = text.find(pattern)
    if pos < 0:
        return None
    rest = text[pos + len(pattern):]
    colon = rest.find(":")
    if colon < 0:
        return None

    num = []
    for c in rest[colon + 1:]:
        if c in _NUMBER_CHARS:
            num.append(c)
        elif num:
            break
    try:
        return float("".join(num))
    except ValueError:
        return None


def extract_summary_block(text: str) -> Optional[str]:
    """The text between the first '{' and the last '}' (inclusive)."""
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end < start:
        return None
    return text[start:end + 1]


def parse_loudness_params(block: str) -> LoudnessParams:
    values = {}
    for field, (input_key, measured_key, default) in LOUDNESS_FIELDS.items():
        value = extract_json_number(block, input_key)
        if value is None:
            value = extract_json_number(block, measured_key)
        values[field] = default if value is None else value
    return LoudnessParams(**values)


def build_normalize_filter(params: LoudnessParams) -> str:
    """loudnorm filter for the encode pass, fed with the measured values."""
    return (
        f"loudnorm={LOUDNORM_TARGET}"
        f":measured_I={params.input_i}"
        f":measured_LRA={params.input_lra}"
        f":measured_TP={params.input_tp}"
        f":measured_thresh={params.input_thresh}"
        ":print_format=summary"
    )


class LoudnessMeasurer:
    """Runs the analysis-only loudnorm pass and reads back its summary."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        self.ffmpeg_path = ffmpeg_path
        self.logger = logging.getLogger(__name__)

    def _build_command(self, input_path: Path) -> List[str]:
        return [
            self.ffmpeg_path,
            "-hide_banner",
            "-nostdin",
            "-i", str(input_path),
            "-af", f"loudnorm={LOUDNORM_TARGET}:print_format=json",
            "-f", "null", "-",
        ]

    def measure(self, input_path: Path) -> Optional[LoudnessParams]:
        """Measured parameters, or None when the pass fails or prints no summary."""
        cmd = self._build_command(input_path)
        self.logger.debug(f"LOUDNORM_CMD: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as e:
            self.logger.warning(f"LOUDNORM_FAILED: {input_path.name} (cannot run {self.ffmpeg_path}: {e})")
            return None

        if result.returncode != 0:
            self.logger.warning(f"LOUDNORM_FAILED: {input_path.name} (exit code {result.returncode})")
            return None

        block = extract_summary_block((result.stdout or "") + (result.stderr or ""))
        if block is None:
            self.logger.warning(f"LOUDNORM_FAILED: {input_path.name} (no summary in output)")
            return None

        params = parse_loudness_params(block)
        self.logger.info(
            f"LOUDNORM_MEASURED: {input_path.name} I={params.input_i} LRA={params.input_lra} "
            f"TP={params.input_tp} thresh={params.input_thresh}"
        )
        return params
