"""
Frame Scheduler

Drives one per-frame callback, bound once at construction. Reactive inputs
(filters, selection, auto-rotate) are read by the callback from shared state
on each tick, so changing them never re-registers anything.

The display-synced timer comes from a factory (the vispy backend supplies an
``app.Timer``); without one, frames are advanced by calling ``tick()``.
"""

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class FrameScheduler:
    """start() / stop() around a single per-frame callback."""

    def __init__(self, callback: Callable[[], None],
                 timer_factory: Optional[Callable[[Callable], object]] = None):
        self._callback = callback
        self._timer_factory = timer_factory
        self._timer = None
        self._running = False
        self.frame_count = 0

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        if self._running:
            return
        self._running = True
        if self._timer_factory is not None:
            self._timer = self._timer_factory(self._on_timer)
            self._timer.start()
        logger.debug("Frame scheduler started")

    def stop(self):
        if not self._running:
            return
        self._running = False
        if self._timer is not None:
            self._timer.stop()
            self._timer = None
        logger.debug(f"Frame scheduler stopped after {self.frame_count} frames")

    def _on_timer(self, event=None):
        self.tick()

    def tick(self) -> bool:
        """Run one frame; returns False (and does nothing) once stopped."""
        if not self._running:
            return False
        self.frame_count += 1
        self._callback()
        return True
