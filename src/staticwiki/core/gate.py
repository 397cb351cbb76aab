"""Capability gate for create/edit access.

Editing is hidden behind a rapid-tap gesture on the logo: enough taps in
quick succession unlock it for the rest of the session. It is a local
capability flag, not authentication.
"""

import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_TAPS = 10
DEFAULT_RESET_SECONDS = 2.5


class CapabilityGate:
    """Counts activations and flips the edit capability on."""

    def __init__(
        self,
        threshold: int = DEFAULT_TAPS,
        reset_after: float = DEFAULT_RESET_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        unlocked: bool = False,
    ):
        self.threshold = threshold
        self.reset_after = reset_after
        self._clock = clock
        self._unlocked = unlocked
        self._taps = 0
        self._last_tap: float | None = None

    @property
    def unlocked(self) -> bool:
        return self._unlocked

    @property
    def taps(self) -> int:
        """Activations counted in the current window."""
        return self._taps

    def tap(self) -> bool:
        """Register one activation.

        Returns:
            True if this activation unlocked the gate.
        """
        now = self._clock()
        if self._last_tap is None or now - self._last_tap > self.reset_after:
            self._taps = 0
        self._last_tap = now
        self._taps += 1

        if self._taps >= self.threshold:
            self._taps = 0
            was_unlocked = self._unlocked
            self._unlocked = True
            if not was_unlocked:
                logger.info("Editor unlocked")
            return not was_unlocked
        return False

    def lock(self) -> None:
        self._unlocked = False
        self._taps = 0
        self._last_tap = None
