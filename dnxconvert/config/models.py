import re
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

PROFILES = ("dnxhr_lb", "dnxhr_sq", "dnxhr_hq", "dnxhr_hqx", "dnxhr_444")
CONTAINERS = ("mov", "mxf")
AUDIO_BITS = (16, 24)
AUDIO_CHANNELS = (2, 4, 8)

# HH:MM:SS:FF, with ';' before the frame field for drop-frame timecode
TIMECODE_RE = re.compile(r"^\d{2}:[0-5]\d:[0-5]\d[:;]\d{2}$")

class JobConfig(BaseModel):
    """Finalized settings for one batch run."""
    files: List[Path] = Field(default_factory=list)
    output_dir: Optional[Path] = None
    profile: str = "dnxhr_hq"
    container: str = "mov"
    audio_bits: int = 16
    audio_channels: int = 2
    preserve_fps: bool = True
    target_fps: float = Field(default=25.0, ge=1.0, le=120.0)
    timecode: Optional[str] = None
    normalize: bool = False

    @field_validator("profile")
    @classmethod
    def validate_profile(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in PROFILES:
            raise ValueError(f"Unsupported profile: {v}. Use one of {list(PROFILES)}")
        return v

    @field_validator("container")
    @classmethod
    def validate_container(cls, v: str) -> str:
        v = v.strip().lower().lstrip(".")
        if v not in CONTAINERS:
            raise ValueError(f"Unsupported container: {v}. Use one of {list(CONTAINERS)}")
        return v

    @field_validator("audio_bits")
    @classmethod
    def validate_audio_bits(cls, v: int) -> int:
        if v not in AUDIO_BITS:
            raise ValueError(f"Invalid audio bit depth {v}. Must be 16 or 24.")
        return v

    @field_validator("audio_channels")
    @classmethod
    def validate_audio_channels(cls, v: int) -> int:
        if v not in AUDIO_CHANNELS:
            raise ValueError(f"Invalid audio channel count {v}. Must be 2, 4 or 8.")
        return v

    @field_validator("timecode")
    @classmethod
    def validate_timecode(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            return None
        if not TIMECODE_RE.match(v):
            raise ValueError(f"Invalid timecode '{v}'. Expected HH:MM:SS:FF.")
        return v

class BinariesConfig(BaseModel):
    """Where to look for ffmpeg/ffprobe before falling back to PATH."""
    bundle_dir: Path = Path("/app/bin")

class LoggingConfig(BaseModel):
    debug: bool = False
    log_path: Optional[str] = None

class AppConfig(BaseModel):
    job: JobConfig = Field(default_factory=JobConfig)
    binaries: BinariesConfig = Field(default_factory=BinariesConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
