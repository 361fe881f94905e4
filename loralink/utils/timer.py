"""One-shot timer services for retransmission timeouts."""

import asyncio
from typing import Callable, Optional


class Timer:
    """Interface for a cancellable one-shot timer."""

    def start(self, delay: float, callback: Callable[[], None]):
        """Schedule callback after delay seconds, replacing any pending one."""
        raise NotImplementedError

    def stop(self):
        """Cancel the pending callback, if any."""
        raise NotImplementedError

    def is_active(self) -> bool:
        """Check whether a callback is pending."""
        raise NotImplementedError


class LoopTimer(Timer):
    """Timer backed by the asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Initialize loop timer.

        Args:
            loop: Event loop to schedule on (running loop if None)
        """
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    def start(self, delay: float, callback: Callable[[], None]):
        self.stop()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire, callback)

    def stop(self):
        if self._handle:
            self._handle.cancel()
            self._handle = None

    def is_active(self) -> bool:
        return self._handle is not None

    def _fire(self, callback: Callable[[], None]):
        self._handle = None
        callback()
