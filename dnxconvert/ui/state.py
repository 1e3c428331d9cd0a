import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from dnxconvert.domain.events import Event, ProgressEvent, JobFailed, JobCompleted, RunFinished

WAITING = "waiting"

@dataclass
class JobRow:
    name: str
    status: str = WAITING
    fraction: float = 0.0
    indeterminate: bool = False
    finished: bool = False
    failed: bool = False

class RunState:
    """Thread-safe per-job progress rows fed from the runner's event channel."""

    def __init__(self, files: List[Path]):
        self._lock = threading.RLock()
        self.rows: List[JobRow] = [JobRow(name=Path(f).name) for f in files]
        self.finished = False
        self.completed_count = 0
        self.failed_count = 0

    def apply(self, event: Event) -> None:
        with self._lock:
            if isinstance(event, RunFinished):
                self.finished = True
                self.completed_count = event.completed
                self.failed_count = event.failed
                return
            if not isinstance(event, ProgressEvent):
                return
            if not 0 <= event.job_index < len(self.rows):
                return

            row = self.rows[event.job_index]
            row.status = event.status
            if event.indeterminate:
                # The pulse itself is animated by the renderer, not by the worker
                row.indeterminate = True
                return
            row.indeterminate = False
            row.fraction = min(event.fraction, 1.0)
            if isinstance(event, (JobCompleted, JobFailed)):
                row.finished = True
                row.failed = isinstance(event, JobFailed)

    def snapshot(self) -> List[JobRow]:
        with self._lock:
            return [JobRow(**vars(r)) for r in self.rows]

    def error_rows(self) -> List[JobRow]:
        with self._lock:
            return [JobRow(**vars(r)) for r in self.rows if r.failed]

    @property
    def active_index(self) -> Optional[int]:
        with self._lock:
            for idx, row in enumerate(self.rows):
                if row.status != WAITING and not row.finished:
                    return idx
            return None
