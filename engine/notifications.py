"""
Notifications and rendering seam

Transient notifications are fire-and-forget: sinks that fail are logged
and skipped. Renderers receive read-only state snapshots; a renderer
that lacks a display element raises RenderUnavailable and the update is
skipped.
"""
import logging
import uuid
from collections import deque
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, List

from engine.errors import RenderUnavailable
from monitoring.event_log import iso_timestamp

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = ("info", "success", "warning", "error")


@dataclass(frozen=True)
class Notification:
    id: str
    message: str
    type: str
    timestamp: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class Notifier:
    """Keeps recent notifications and forwards them to sinks"""

    def __init__(self, clock, max_items: int = 50):
        self.clock = clock
        self.items = deque(maxlen=max_items)
        self._sinks: List[Callable[[Notification], None]] = []

    def add_sink(self, sink: Callable[[Notification], None]) -> None:
        self._sinks.append(sink)

    def notify(self, message: str, type: str = "info") -> Notification:
        if type not in NOTIFICATION_TYPES:
            type = "info"
        notification = Notification(
            id=uuid.uuid4().hex[:12],
            message=message,
            type=type,
            timestamp=iso_timestamp(self.clock.now_ms())
        )
        self.items.append(notification)

        for sink in self._sinks:
            try:
                sink(notification)
            except Exception as e:
                logger.warning(f"Notification sink failed: {e}")

        return notification

    def recent(self, count: int = 5) -> List[Notification]:
        return list(self.items)[-count:]


class NullRenderer:
    """Renderer used when no display is attached"""

    def render(self, state: Dict[str, Any]) -> None:
        raise RenderUnavailable("No display attached")


def safe_render(renderer, state: Dict[str, Any]) -> bool:
    """Render a snapshot; returns False when the display is unavailable"""
    try:
        renderer.render(state)
    except RenderUnavailable as e:
        logger.debug(f"Render skipped: {e}")
        return False
    return True
