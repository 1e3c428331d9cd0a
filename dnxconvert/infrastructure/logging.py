import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_PREFIX = "transcode"
LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(threadName)s] %(name)s - %(message)s"


def run_log_name(started: Optional[datetime] = None) -> str:
    """`transcode-YYYYmmdd-HHMMSS.log`, so reruns into the same folder keep earlier logs."""
    started = started or datetime.now()
    return f"{LOG_PREFIX}-{started.strftime('%Y%m%d-%H%M%S')}.log"


def setup_logging(output_dir: Path, debug: bool = False, log_path: Optional[Path] = None,
                  started: Optional[datetime] = None) -> logging.Logger:
    """
    Route all dnxconvert logging into one file per run.

    The file lives in *output_dir* (created if needed) and is named after the
    run's start time, unless *log_path* names it explicitly. DEBUG adds the
    ffmpeg command lines and raw progress lines.
    """
    log_file = Path(log_path) if log_path else Path(output_dir) / run_log_name(started)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    Path(output_dir).mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.FileHandler(log_file, encoding="utf-8")],
        force=True
    )

    logger = logging.getLogger(__name__)
    logger.info(f"LOG_START: {log_file} (debug={'ON' if debug else 'OFF'})")
    return logger
