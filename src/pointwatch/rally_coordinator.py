import time
from typing import Callable, Optional

from loguru import logger

from pointwatch.models import DetectedShot


class ExpiringWindow:
    """A fire-once timer evaluated against a clock instead of a thread.

    Arming an active window replaces its deadline. The window stays active
    while ``now <= deadline``; the first check past the deadline closes it
    and runs ``on_expire`` once.
    """

    def __init__(self, name: str, clock: Callable[[], float] = time.monotonic,
                 on_expire: Optional[Callable[[], None]] = None):
        self.name = name
        self._clock = clock
        self._on_expire = on_expire
        self.deadline: Optional[float] = None

    def _now(self, now: Optional[float]) -> float:
        return self._clock() if now is None else now

    def arm(self, duration: float, now: Optional[float] = None):
        self.deadline = self._now(now) + duration

    def cancel(self):
        self.deadline = None

    def poll(self, now: Optional[float] = None) -> bool:
        """Close the window if it has lapsed. Returns True when it just expired."""
        if self.deadline is None or self._now(now) <= self.deadline:
            return False
        self.deadline = None
        logger.debug(f"{self.name} window expired")
        if self._on_expire:
            self._on_expire()
        return True

    def is_active(self, now: Optional[float] = None) -> bool:
        self.poll(now)
        return self.deadline is not None


class RallyCoordinator:
    def __init__(self, config: dict, clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.serve_window_duration = config['rally']['serve_window']
        self.pending_point_duration = config['rally']['pending_point_window']
        self._clock = clock

        self.serve_window = ExpiringWindow('serve', clock)
        self.pending_point_window = ExpiringWindow(
            'pending point', clock, on_expire=self._discard_buffered_shot)

        self._buffered_shot: Optional[DetectedShot] = None
        self._buffered_expiry: Optional[float] = None

    def _now(self, now: Optional[float]) -> float:
        return self._clock() if now is None else now

    def _discard_buffered_shot(self):
        if self._buffered_shot is not None:
            logger.debug(f"Discarded buffered {self._buffered_shot.type.value} shot")
        self._buffered_shot = None
        self._buffered_expiry = None

    @property
    def buffered_shot(self) -> Optional[DetectedShot]:
        return self._buffered_shot

    @property
    def serve_window_active(self) -> bool:
        return self.serve_window.is_active()

    @property
    def pending_point_window_active(self) -> bool:
        return self.pending_point_window.is_active()

    def arm_serve_window(self, duration: Optional[float] = None, now: Optional[float] = None):
        duration = self.serve_window_duration if duration is None else duration
        self.serve_window.arm(duration, now)
        logger.debug(f"Serve window armed for {duration:.1f}s")

    def consume_pending_serve(self):
        self.serve_window.cancel()

    def register_swing(self, shot: DetectedShot, buffer_for_association: bool,
                       now: Optional[float] = None):
        now = self._now(now)
        self.pending_point_window.arm(self.pending_point_duration, now)

        if buffer_for_association:
            self._buffered_shot = shot
            self._buffered_expiry = now + self.pending_point_duration
            logger.debug(f"Buffered {shot.type.value} shot for point association")

    def resolve_point(self, now: Optional[float] = None) -> Optional[DetectedShot]:
        """Hand out the buffered shot if it is still fresh. Always clears the buffer."""
        now = self._now(now)
        self.pending_point_window.cancel()

        shot = None
        if self._buffered_shot is not None and now <= self._buffered_expiry:
            shot = self._buffered_shot

        self._buffered_shot = None
        self._buffered_expiry = None
        return shot

    def context_active(self, now: Optional[float] = None) -> bool:
        return self.serve_window.is_active(now) or self.pending_point_window.is_active(now)

    def reset(self):
        self.serve_window.cancel()
        self.pending_point_window.cancel()
        self._buffered_shot = None
        self._buffered_expiry = None
        logger.debug("Rally coordinator reset")
