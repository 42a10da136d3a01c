"""
Attack Replay

Steps through the timeline of a finished attack, one event per tick.
"""
import copy
import logging
from typing import Any, Dict, Optional

from attacks.models import Attack, TimelineEvent
from engine.errors import InvalidRequestError

logger = logging.getLogger(__name__)

TIMER_NAME = "replay.tick"
REPLAY_TICK_MS = 1000


class ReplaySession:
    """Playback state of one historical attack"""

    def __init__(self, scheduler, event_log):
        self.scheduler = scheduler
        self.event_log = event_log
        self.attack: Optional[Attack] = None
        self.position = 0
        self.playing = False

    @property
    def is_active(self) -> bool:
        return self.attack is not None and self.playing

    @property
    def length(self) -> int:
        return len(self.attack.timeline) if self.attack else 0

    def load(self, attack: Attack) -> None:
        if not attack.timeline:
            raise InvalidRequestError(f"Attack {attack.id} has no timeline to replay")
        self.stop()
        self.attack = copy.deepcopy(attack)
        self.position = 0
        self.event_log.append("info", "Replay", f"Replay loaded for {attack.type.upper()} attack {attack.id}")

    def play(self) -> None:
        if self.attack is None:
            raise InvalidRequestError("No replay loaded")
        if self.position >= self.length - 1:
            self.position = 0
        self.playing = True
        self.scheduler.call_every(TIMER_NAME, REPLAY_TICK_MS, self._tick)
        logger.info(f"Replaying {self.attack.id} from event {self.position}")

    def pause(self) -> bool:
        if not self.playing:
            return False
        self.playing = False
        self.scheduler.cancel(TIMER_NAME)
        return True

    def stop(self) -> bool:
        """Stop playback and rewind; returns True if something was playing"""
        was_playing = self.playing
        self.playing = False
        self.scheduler.cancel(TIMER_NAME)
        self.position = 0
        if was_playing:
            self.event_log.append("info", "Replay", "Replay stopped")
        return was_playing

    def step(self, delta: int) -> Optional[TimelineEvent]:
        if self.attack is None:
            raise InvalidRequestError("No replay loaded")
        self.position = min(max(0, self.position + delta), self.length - 1)
        return self.current_event()

    def seek(self, index: int) -> Optional[TimelineEvent]:
        if self.attack is None:
            raise InvalidRequestError("No replay loaded")
        self.position = min(max(0, int(index)), self.length - 1)
        return self.current_event()

    def current_event(self) -> Optional[TimelineEvent]:
        if self.attack is None:
            return None
        return self.attack.timeline[self.position]

    def _tick(self) -> None:
        if self.attack is None or not self.playing:
            self.scheduler.cancel(TIMER_NAME)
            return
        if self.position >= self.length - 1:
            self.playing = False
            self.scheduler.cancel(TIMER_NAME)
            self.event_log.append("info", "Replay", f"Replay of {self.attack.id} completed")
            return
        self.position += 1

    def view(self) -> Dict[str, Any]:
        event = self.current_event()
        return {
            "attack_id": self.attack.id if self.attack else None,
            "playing": self.playing,
            "position": self.position,
            "length": self.length,
            "event": vars(event) if event else None,
        }
