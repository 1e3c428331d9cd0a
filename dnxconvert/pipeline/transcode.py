"""Single-job transcode: probe -> optional loudness measurement -> encode pass."""

import logging
from typing import Callable, Optional

from dnxconvert.config.models import JobConfig
from dnxconvert.domain.models import EncodeJob, JobOutcome
from dnxconvert.infrastructure.ffmpeg import FFmpegAdapter, SpawnError
from dnxconvert.infrastructure.ffprobe import FFprobeAdapter
from dnxconvert.infrastructure.loudness import LoudnessMeasurer, build_normalize_filter


class TranscodeJob:
    """Runs the one- or two-pass encode for a single input.

    Probe and measurement failures only degrade the job (indeterminate
    progress, un-normalized audio); only the encode pass decides the outcome.
    """

    def __init__(
        self,
        job: EncodeJob,
        config: JobConfig,
        ffmpeg_adapter: FFmpegAdapter,
        ffprobe_adapter: FFprobeAdapter,
        loudness_measurer: Optional[LoudnessMeasurer] = None,
    ):
        self.job = job
        self.config = config
        self.ffmpeg_adapter = ffmpeg_adapter
        self.ffprobe_adapter = ffprobe_adapter
        self.loudness_measurer = loudness_measurer
        self.logger = logging.getLogger(__name__)

    def _audio_filter(self) -> Optional[str]:
        if not self.config.normalize:
            return None
        if self.loudness_measurer is None:
            self.logger.warning(f"LOUDNORM_SKIPPED: {self.job.input_path.name} (no measurer configured)")
            return None
        params = self.loudness_measurer.measure(self.job.input_path)
        if params is None:
            self.logger.warning(f"LOUDNORM_SKIPPED: {self.job.input_path.name} (encoding without normalization)")
            return None
        return build_normalize_filter(params)

    def run(self, on_progress: Callable[[float], None]) -> JobOutcome:
        filename = self.job.input_path.name

        duration = self.ffprobe_adapter.get_duration(self.job.input_path)
        if duration is None:
            self.logger.info(f"JOB_DURATION: {filename} unknown (indeterminate progress)")
        else:
            self.logger.info(f"JOB_DURATION: {filename} {duration:.2f}s")

        audio_filter = self._audio_filter()

        self.job.output_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = self.ffmpeg_adapter.build_encode_command(self.job, self.config, audio_filter=audio_filter)

        try:
            returncode = self.ffmpeg_adapter.run_pass(cmd, duration, on_progress)
        except SpawnError as e:
            self.logger.error(f"JOB_FAILED: {filename} - {e}")
            return JobOutcome.failed(str(e))

        if returncode != 0:
            pass_name = "normalization pass" if audio_filter else "encode pass"
            message = f"ffmpeg exited with code {returncode} on {pass_name}"
            self.logger.error(f"JOB_FAILED: {filename} - {message}")
            return JobOutcome.failed(message, exit_code=returncode)

        return JobOutcome.completed()
