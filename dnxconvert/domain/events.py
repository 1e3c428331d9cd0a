"""Domain events for the transcode pipeline.

Events flow from the JobRunner through the EventBus to whatever consumes them
(the terminal dashboard, a queue channel, tests). Every per-job event carries
the job's ordinal position in the input file list instead of a reference
to a UI row, so the worker/consumer boundary stays plain data.

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from pydantic import BaseModel

INDETERMINATE = -1.0
STARTING_FRACTION = 0.01

STATUS_STARTING = "starting"
STATUS_IN_PROGRESS = "in progress"
STATUS_DONE = "done"


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class ProgressEvent(Event):
    """`(job_index, status, fraction)` as delivered to the consumer.

    fraction is -1.0 while the duration is unknown (pulse), otherwise 0.0-1.0.
    """

    job_index: int
    status: str
    fraction: float

    @property
    def indeterminate(self) -> bool:
        return self.fraction < 0.0


class JobStarted(ProgressEvent):
    """Emitted right before the job's passes start."""

    status: str = STATUS_STARTING
    fraction: float = STARTING_FRACTION


class JobProgressUpdated(ProgressEvent):
    """Emitted for every update parsed from the ffmpeg progress stream."""

    status: str = STATUS_IN_PROGRESS


class JobCompleted(ProgressEvent):
    """Terminal success."""

    status: str = STATUS_DONE
    fraction: float = 1.0


class JobFailed(ProgressEvent):
    """Terminal failure; status reads "error: <message>"."""

    error_message: str
    status: str = ""
    fraction: float = 0.0

    def model_post_init(self, __context) -> None:
        if not self.status:
            self.status = f"error: {self.error_message}"


class RunFinished(Event):
    """Emitted once after the last job of a non-empty run."""

    completed: int = 0
    failed: int = 0
