"""Listener callback helpers."""

import logging
from typing import Callable, Optional


logger = logging.getLogger(__name__)


def notify(callback: Optional[Callable], *args):
    """
    Invoke a listener callback if one is set.

    Exceptions raised by the listener are logged and swallowed so a
    faulty listener cannot leave protocol state half updated.

    Args:
        callback: Listener to call (ignored if None)
        *args: Arguments passed to the listener
    """
    if callback is None:
        return

    try:
        callback(*args)
    except Exception:
        logger.exception(f"Listener {getattr(callback, '__name__', callback)!r} failed")
