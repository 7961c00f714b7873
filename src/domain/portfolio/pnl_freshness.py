import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PnLFreshnessGate:
    """
    Guarda cuándo se calculó el PnL por última vez.

    Es solo un aviso: trade / no-trade consultan `is_recent()` y loguean un
    warning si el PnL está viejo, pero nunca bloquean la operación.
    """

    def __init__(
        self,
        window_seconds: float = 5 * 60,
        clock: Callable[[], float] = time.time,
    ):
        self.window_seconds = window_seconds
        self._clock = clock
        self._last_check: Optional[float] = None

    @property
    def last_check_at(self) -> Optional[datetime]:
        if self._last_check is None:
            return None
        return datetime.fromtimestamp(self._last_check, tz=timezone.utc)

    def record_check(self) -> None:
        self._last_check = self._clock()
        logger.info(f"📊 PnL check recorded at: {self.last_check_at.isoformat()}")

    def seconds_since_check(self) -> Optional[float]:
        if self._last_check is None:
            return None
        return self._clock() - self._last_check

    def is_recent(self) -> bool:
        elapsed = self.seconds_since_check()
        if elapsed is None:
            logger.warning("⚠️ No PnL check has been recorded yet")
            return False

        if elapsed <= self.window_seconds:
            return True

        logger.warning(
            f"⚠️ PnL check is outdated ({round(elapsed)} seconds ago, "
            f"limit is {round(self.window_seconds)} seconds)"
        )
        return False

    def warning_message(self) -> str:
        return (
            f"Warning: portfolio PnL was not checked in the last "
            f"{round(self.window_seconds / 60)} minutes. "
            f"Check PnL before making trading decisions."
        )
