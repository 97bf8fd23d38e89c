"""
Download progress reporting.

ProgressReporter is a write-sink: every chunk written to the destination file
is also written here. It counts bytes and, unless quiet, rewrites a single
status line each time another PROGRESS_INTERVAL_BYTES have gone by. When the
console is not a terminal each status gets its own line instead. Output is
advisory only and never affects the transfer.
"""
import time
from pathlib import Path
from typing import Callable, Optional, Union

from rich.console import Console
from rich.control import Control, ControlType

PROGRESS_INTERVAL_BYTES = 256 * 1000


def format_decimal(value: float) -> str:
    """Two decimals with thousands separators, e.g. ``1,234.50``."""
    return f"{value:,.2f}"


def rewind_line() -> Control:
    """Control codes that erase the current line and return to its start."""
    return Control((ControlType.ERASE_IN_LINE, 2), ControlType.CARRIAGE_RETURN)


class ProgressReporter:
    """Counts bytes of a transfer and prints throughput at fixed byte intervals."""

    def __init__(
        self,
        name: Union[str, Path],
        quiet: bool = False,
        console: Optional[Console] = None,
        interval: int = PROGRESS_INTERVAL_BYTES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = str(name)
        self.quiet = quiet
        self.console = console or Console()
        self.interval = interval
        self.total = 0
        self.emitted = 0
        self._clock = clock
        self.start = clock()

    def write(self, data: bytes) -> int:
        """Record ``data`` as transferred; returns its length like a file write."""
        self.total += len(data)

        if not self.quiet:
            # One line per interval boundary crossed, however the chunks fall
            while self.total >= (self.emitted + 1) * self.interval:
                self.emitted += 1
                self._emit()

        return len(data)

    @property
    def elapsed(self) -> float:
        """Seconds since the transfer started."""
        return self._clock() - self.start

    def kbps(self) -> float:
        """Average throughput so far in kilobytes (1000 bytes) per second."""
        elapsed = self.elapsed
        if elapsed <= 0:
            return 0.0
        return self.total / 1000.0 / elapsed

    def status(self) -> str:
        kb = self.total / 1000.0
        return f"Downloading {self.name} {format_decimal(kb)} KB ({format_decimal(self.kbps())} KB/s)"

    def summary(self) -> str:
        return f"Downloaded {self.name} {self.total:,} bytes ({format_decimal(self.kbps())} KB/s)"

    def _emit(self) -> None:
        # Without a terminal the rewind codes are dropped, so keep one line per status
        end = "" if self.console.is_terminal else "\n"
        self.console.control(rewind_line())
        self.console.print(self.status(), end=end, markup=False, highlight=False, soft_wrap=True)
