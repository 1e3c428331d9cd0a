import sys
from pathlib import Path
from typing import Optional

FFMPEG = "ffmpeg"
FFPROBE = "ffprobe"
DEFAULT_BUNDLE_DIR = Path("/app/bin")


def program_dir() -> Optional[Path]:
    """Directory of the running program (frozen executable or entry script)."""
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    if sys.argv and sys.argv[0]:
        return Path(sys.argv[0]).resolve().parent
    return None


def resolve_binary(name: str, bundle_dir: Optional[Path] = DEFAULT_BUNDLE_DIR, exe_dir: Optional[Path] = None) -> str:
    """
    Return the path to try for *name*.

    Priority: bundle dir (e.g. Flatpak's /app/bin) -> next to the program -> PATH.
    Never raises; a bad result only shows up when the process fails to spawn.
    """
    if bundle_dir is not None:
        bundled = Path(bundle_dir) / name
        if bundled.exists():
            return str(bundled)

    local_dir = exe_dir if exe_dir is not None else program_dir()
    if local_dir is not None:
        local = Path(local_dir) / name
        if local.exists():
            return str(local)

    return name


class BinaryResolver:
    """Resolves ffmpeg/ffprobe using a fixed search order."""

    def __init__(self, bundle_dir: Optional[Path] = DEFAULT_BUNDLE_DIR, exe_dir: Optional[Path] = None):
        self.bundle_dir = bundle_dir
        self.exe_dir = exe_dir

    def resolve(self, name: str) -> str:
        return resolve_binary(name, bundle_dir=self.bundle_dir, exe_dir=self.exe_dir)

    def ffmpeg(self) -> str:
        return self.resolve(FFMPEG)

    def ffprobe(self) -> str:
        return self.resolve(FFPROBE)
