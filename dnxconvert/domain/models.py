from enum import Enum
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, ConfigDict

class JobStatus(str, Enum):
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

class EncodeJob(BaseModel):
    """One input file and the output path derived for it."""

    model_config = ConfigDict(frozen=True)

    index: int
    input_path: Path
    output_path: Path

class LoudnessParams(BaseModel):
    """EBU R128 measurements from the first (analysis-only) loudnorm pass."""

    input_i: float = -23.0
    input_lra: float = 7.0
    input_tp: float = -2.0
    input_thresh: float = -34.0

class JobOutcome(BaseModel):
    status: JobStatus
    error_message: Optional[str] = None
    exit_code: Optional[int] = None

    @classmethod
    def completed(cls) -> "JobOutcome":
        return cls(status=JobStatus.COMPLETED)

    @classmethod
    def failed(cls, error_message: str, exit_code: Optional[int] = None) -> "JobOutcome":
        return cls(status=JobStatus.FAILED, error_message=error_message, exit_code=exit_code)

    @property
    def ok(self) -> bool:
        return self.status == JobStatus.COMPLETED
