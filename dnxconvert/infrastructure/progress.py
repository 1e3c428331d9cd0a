"""Parser for ffmpeg's `-progress pipe:1` output.

ffmpeg writes blocks of `key=value` lines, each block ending with
`progress=continue` or, for the last one, `progress=end`:

    out_time_us=1520000
    out_time_ms=1520000
    out_time=00:00:01.520000
    progress=continue

`out_time_ms` is microseconds as well, despite its name.
"""

import logging
from typing import Callable, Iterable, Optional

from dnxconvert.domain.events import INDETERMINATE

ELAPSED_KEYS = ("out_time_us", "out_time_ms")
PROGRESS_END = "progress=end"
MAX_RUNNING_FRACTION = 0.999

logger = logging.getLogger(__name__)


class ProgressParser:
    """Turns progress lines into fractions for a single ffmpeg pass.

    With a known duration every elapsed-time line yields a fraction clamped to
    [0.0, 0.999] that never goes backwards. With an unknown duration (None or
    <= 0) the first elapsed-time line yields -1.0 and later ones yield nothing.
    `progress=end` always yields 1.0.

    *floor* is the fraction already shown for the job; known-duration updates
    never report less than it.
    """

    def __init__(self, duration: Optional[float], floor: float = 0.0):
        self.duration = duration if duration and duration > 0 else 0.0
        self._sent_indeterminate = False
        self._last_fraction = min(max(floor, 0.0), MAX_RUNNING_FRACTION)

    @property
    def known_duration(self) -> bool:
        return self.duration > 0

    @staticmethod
    def _elapsed_seconds(line: str) -> Optional[float]:
        key, sep, value = line.partition("=")
        if not sep or key not in ELAPSED_KEYS:
            return None
        try:
            micros = int(value.strip())
        except ValueError:
            # ffmpeg prints N/A before the first frame is muxed
            return None
        return micros / 1_000_000.0

    def parse_line(self, line: str) -> Optional[float]:
        line = line.strip()
        if not line:
            return None

        if line == PROGRESS_END:
            return 1.0

        seconds = self._elapsed_seconds(line)
        if seconds is None:
            return None

        if not self.known_duration:
            if self._sent_indeterminate:
                return None
            self._sent_indeterminate = True
            return INDETERMINATE

        fraction = min(max(seconds / self.duration, 0.0), MAX_RUNNING_FRACTION)
        fraction = max(fraction, self._last_fraction)
        self._last_fraction = fraction
        return fraction

    def consume(self, stream: Iterable[str], on_progress: Callable[[float], None]) -> int:
        """Read *stream* until EOF or a read error; returns the number of updates sent.

        Only read errors end the loop quietly; anything raised by *on_progress*
        propagates to the caller.
        """
        sent = 0
        lines = iter(stream)
        while True:
            try:
                line = next(lines)
            except StopIteration:
                break
            except (OSError, ValueError) as e:
                logger.warning(f"Progress stream read failed: {e}")
                break
            stripped = line.strip()
            if stripped:
                logger.debug(f"ffmpeg progress: {stripped}")
            fraction = self.parse_line(stripped)
            if fraction is not None:
                on_progress(fraction)
                sent += 1
        return sent
