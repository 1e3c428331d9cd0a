import subprocess
import logging
import time
from pathlib import Path
from typing import Callable, List, Optional
from dnxconvert.config.models import JobConfig
from dnxconvert.domain.events import STARTING_FRACTION
from dnxconvert.domain.models import EncodeJob
from dnxconvert.infrastructure.progress import ProgressParser

PIX_FMT_BY_PROFILE = {
    "dnxhr_hqx": "yuv422p10le",
    "dnxhr_444": "yuv444p10le",
}
DEFAULT_PIX_FMT = "yuv422p"


def select_pix_fmt(profile: str) -> str:
    """10-bit 4:2:2 for HQX, 10-bit 4:4:4 for 444, 8-bit 4:2:2 otherwise."""
    return PIX_FMT_BY_PROFILE.get(profile, DEFAULT_PIX_FMT)


def select_audio_codec(audio_bits: int) -> str:
    return "pcm_s24le" if audio_bits == 24 else "pcm_s16le"


class SpawnError(RuntimeError):
    """ffmpeg could not be started (missing binary, permissions)."""


class FFmpegAdapter:
    """Wrapper around ffmpeg for DNxHR encode passes."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        self.ffmpeg_path = ffmpeg_path
        self.logger = logging.getLogger(__name__)

    def build_encode_command(self, job: EncodeJob, config: JobConfig, audio_filter: Optional[str] = None) -> List[str]:
        """Constructs the ffmpeg command line arguments."""
        cmd = [
            self.ffmpeg_path,
            "-y",  # Overwrite output files
            "-i", str(job.input_path),
            "-c:v", "dnxhd",
            "-profile:v", config.profile,
            "-pix_fmt", select_pix_fmt(config.profile),
            "-c:a", select_audio_codec(config.audio_bits),
            "-ac", str(config.audio_channels),
        ]

        if not config.preserve_fps:
            cmd.extend(["-r", f"{config.target_fps:.3f}"])

        if config.timecode:
            cmd.extend(["-timecode", config.timecode])

        if audio_filter:
            cmd.extend(["-af", audio_filter])

        # Machine-readable key=value progress on stdout
        cmd.extend([
            "-progress", "pipe:1",
            "-nostats",
            str(job.output_path),
        ])
        return cmd

    def run_pass(self, cmd: List[str], duration: Optional[float], on_progress: Callable[[float], None]) -> int:
        """Runs one ffmpeg pass, feeding its progress stream to on_progress.

        Returns the exit code. Raises SpawnError if the process cannot be started,
        in which case on_progress is never called.
        """
        start_time = time.monotonic()
        self.logger.debug(f"FFMPEG_CMD: {' '.join(cmd)}")

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                universal_newlines=True,
                errors="replace",
                bufsize=1
            )
        except OSError as e:
            raise SpawnError(f"Unable to start ffmpeg ({cmd[0]}): {e}") from e

        parser = ProgressParser(duration, floor=STARTING_FRACTION)
        try:
            updates = parser.consume(process.stdout or [], on_progress)
            returncode = process.wait()
        except BaseException:
            self.logger.warning(f"FFMPEG_ABORTED: stopping {cmd[0]} (pid={process.pid})")
            self._stop(process)
            raise
        finally:
            if process.stdout is not None:
                process.stdout.close()

        elapsed = time.monotonic() - start_time
        self.logger.info(f"FFMPEG_END: code={returncode} updates={updates} elapsed={elapsed:.2f}s")
        return returncode

    @staticmethod
    def _stop(process: subprocess.Popen) -> None:
        """Terminate, then kill if ffmpeg ignores SIGTERM for 3s."""
        process.terminate()
        try:
            process.wait(timeout=3)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
