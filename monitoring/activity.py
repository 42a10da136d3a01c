"""
Activity feed

Simulated background activity shown beside the live metrics.
"""
import logging
import random
from collections import deque
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

ACTIVITY_PROBABILITY = 0.1
FEED_SIZE = 10

ACTIVITY_TEMPLATES = [
    ("info", "Device Status Update", "Security Camera Alpha reported normal operation"),
    ("success", "Threat Neutralized", "Suspicious activity blocked automatically"),
    ("warning", "Threshold Exceeded", "CPU usage above 80% on gateway device"),
]


@dataclass
class ActivityItem:
    type: str
    title: str
    details: str
    timestamp: str


class ActivityFeed:
    """Keeps the most recent simulated activity items, newest first"""

    def __init__(self, rng: Optional[random.Random] = None, size: int = FEED_SIZE):
        self.rng = rng or random.Random()
        self.items = deque(maxlen=size)

    def maybe_add(self, timestamp: str) -> Optional[ActivityItem]:
        if self.rng.random() >= ACTIVITY_PROBABILITY:
            return None
        kind, title, details = self.rng.choice(ACTIVITY_TEMPLATES)
        item = ActivityItem(type=kind, title=title, details=details, timestamp=timestamp)
        self.items.appendleft(item)
        logger.debug(f"Activity: {title} ({kind})")
        return item

    def to_list(self) -> List[Dict[str, str]]:
        return [asdict(item) for item in self.items]
