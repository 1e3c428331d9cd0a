"""Sequential batch runner.

Builds EncodeJobs from a JobConfig and runs them one at a time, publishing
ProgressEvents on the EventBus. `JobRunner.start()` moves the whole run onto
a single background thread and forwards every event into a queue, so the
consumer drains at its own pace and never waits on ffmpeg.
"""

import logging
import queue
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional

from dnxconvert.config.models import JobConfig
from dnxconvert.domain.events import (
    Event, JobStarted, JobProgressUpdated, JobCompleted, JobFailed, RunFinished,
)
from dnxconvert.domain.models import EncodeJob, JobOutcome
from dnxconvert.infrastructure.binaries import BinaryResolver
from dnxconvert.infrastructure.event_bus import EventBus
from dnxconvert.infrastructure.ffmpeg import FFmpegAdapter
from dnxconvert.infrastructure.ffprobe import FFprobeAdapter
from dnxconvert.infrastructure.loudness import LoudnessMeasurer
from dnxconvert.pipeline.transcode import TranscodeJob

OUTPUT_SUBDIR = "transcoded"
DEFAULT_STEM = "output"


def resolve_output_dir(config: JobConfig) -> Path:
    """`<output_dir or first input's parent>/transcoded`."""
    if config.output_dir is not None:
        base = Path(config.output_dir)
    elif config.files:
        base = Path(config.files[0]).parent
    else:
        base = Path(".")
    return base / OUTPUT_SUBDIR


def build_jobs(config: JobConfig) -> List[EncodeJob]:
    out_dir = resolve_output_dir(config)
    jobs = []
    for idx, input_path in enumerate(config.files):
        stem = Path(input_path).stem or DEFAULT_STEM
        jobs.append(EncodeJob(
            index=idx,
            input_path=Path(input_path),
            output_path=out_dir / f"{stem}.{config.container}",
        ))
    return jobs


class JobRunner:
    """Runs a batch strictly sequentially and reports through the EventBus.

    Args:
        event_bus: EventBus receiving JobStarted/JobProgressUpdated/JobCompleted/JobFailed.
        resolver: BinaryResolver for ffmpeg/ffprobe (default search order if omitted).
        ffmpeg_adapter, ffprobe_adapter, loudness_measurer: injected for tests;
            built from the resolver when omitted.
    """

    def __init__(
        self,
        event_bus: EventBus,
        resolver: Optional[BinaryResolver] = None,
        ffmpeg_adapter: Optional[FFmpegAdapter] = None,
        ffprobe_adapter: Optional[FFprobeAdapter] = None,
        loudness_measurer: Optional[LoudnessMeasurer] = None,
    ):
        self.event_bus = event_bus
        self.resolver = resolver or BinaryResolver()
        self.ffmpeg_adapter = ffmpeg_adapter
        self.ffprobe_adapter = ffprobe_adapter
        self.loudness_measurer = loudness_measurer
        self.logger = logging.getLogger(__name__)

    def _adapters(self):
        ffmpeg_path = self.resolver.ffmpeg()
        ffmpeg = self.ffmpeg_adapter or FFmpegAdapter(ffmpeg_path)
        ffprobe = self.ffprobe_adapter or FFprobeAdapter(self.resolver.ffprobe())
        measurer = self.loudness_measurer or LoudnessMeasurer(ffmpeg_path)
        return ffmpeg, ffprobe, measurer

    def _progress_callback(self, job_index: int) -> Callable[[float], None]:
        def on_progress(fraction: float) -> None:
            self.event_bus.publish(JobProgressUpdated(job_index=job_index, fraction=fraction))
        return on_progress

    def _run_job(self, job: EncodeJob, config: JobConfig, adapters) -> JobOutcome:
        ffmpeg, ffprobe, measurer = adapters
        task = TranscodeJob(job, config, ffmpeg, ffprobe, measurer)
        try:
            return task.run(self._progress_callback(job.index))
        except Exception as e:
            self.logger.exception(f"Exception processing {job.input_path.name}: {e}")
            return JobOutcome.failed(str(e) or type(e).__name__)

    def run(self, config: JobConfig) -> List[JobOutcome]:
        """Run every job in file-list order; returns one outcome per job."""
        jobs = build_jobs(config)
        if not jobs:
            self.logger.info("No files to process, exiting")
            return []

        adapters = self._adapters()
        self.logger.info(
            f"RUN_START: jobs={len(jobs)} profile={config.profile} container={config.container} "
            f"normalize={config.normalize} ffmpeg={adapters[0].ffmpeg_path}"
        )

        outcomes: List[JobOutcome] = []
        for job in jobs:
            filename = job.input_path.name
            start_time = time.monotonic()
            self.logger.info(f"JOB_START: [{job.index}] {filename} -> {job.output_path}")
            self.event_bus.publish(JobStarted(job_index=job.index))

            outcome = self._run_job(job, config, adapters)
            outcomes.append(outcome)

            elapsed = time.monotonic() - start_time
            if outcome.ok:
                self.logger.info(f"JOB_END: [{job.index}] {filename} status=completed elapsed={elapsed:.2f}s")
                self.event_bus.publish(JobCompleted(job_index=job.index))
            else:
                self.logger.info(f"JOB_END: [{job.index}] {filename} status=failed elapsed={elapsed:.2f}s")
                self.event_bus.publish(JobFailed(job_index=job.index, error_message=outcome.error_message or "unknown error"))

        completed = sum(1 for o in outcomes if o.ok)
        failed = len(outcomes) - completed
        self.logger.info(f"RUN_END: completed={completed} failed={failed}")
        self.event_bus.publish(RunFinished(completed=completed, failed=failed))
        return outcomes

    def start(self, config: JobConfig) -> "RunHandle":
        """Run in a background thread; events arrive on the returned handle's queue."""
        snapshot = config.model_copy(deep=True)
        handle = RunHandle()
        self.event_bus.subscribe(Event, handle.events.put)

        def _worker():
            try:
                handle.outcomes = self.run(snapshot)
            except Exception as e:
                self.logger.exception(f"RUN_FAILED: {e}")
                handle.error = e
            finally:
                self.event_bus.unsubscribe(Event, handle.events.put)

        handle.thread = threading.Thread(target=_worker, name="dnxconvert-runner", daemon=True)
        handle.thread.start()
        return handle


class RunHandle:
    """Consumer side of a background run."""

    def __init__(self):
        self.events: "queue.Queue[Event]" = queue.Queue()
        self.outcomes: List[JobOutcome] = []
        self.thread: Optional[threading.Thread] = None
        self.error: Optional[Exception] = None

    def poll(self) -> List[Event]:
        """All events produced so far, without blocking."""
        drained = []
        while True:
            try:
                drained.append(self.events.get_nowait())
            except queue.Empty:
                return drained

    def is_running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> bool:
        if self.thread is not None:
            self.thread.join(timeout)
        return not self.is_running()
