"""
Attack records

Attack, its targets and its stage timeline. Times are epoch milliseconds
taken from the scheduler clock.
"""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from attacks import CURRENT_STATUSES, TERMINAL_STATUSES


@dataclass
class AttackTarget:
    id: str
    name: str


@dataclass
class TimelineEvent:
    time: float
    stage: str
    description: str


@dataclass
class Attack:
    """A simulated attack and its progression"""
    id: str
    type: str
    start_time: float
    status: str
    targets: List[AttackTarget]
    delay: float
    parameters: Dict[str, Any] = field(default_factory=dict)
    timeline: List[TimelineEvent] = field(default_factory=list)
    end_time: Optional[float] = None
    detection_time: Optional[float] = None
    mitigation_time: Optional[float] = None

    @property
    def is_current(self) -> bool:
        return self.status in CURRENT_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def target_ids(self) -> List[str]:
        return [target.id for target in self.targets]

    def elapsed_seconds(self, now_ms: float) -> float:
        end = self.end_time if self.end_time is not None else now_ms
        return max(0.0, (end - self.start_time) / 1000.0)

    def stages_reached(self) -> List[str]:
        return [event.stage for event in self.timeline]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Attack':
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            start_time=float(data["start_time"]),
            status=str(data["status"]),
            targets=[AttackTarget(**target) for target in data.get("targets", [])],
            delay=float(data.get("delay", 0)),
            parameters=dict(data.get("parameters") or {}),
            timeline=[TimelineEvent(**event) for event in data.get("timeline", [])],
            end_time=data.get("end_time"),
            detection_time=data.get("detection_time"),
            mitigation_time=data.get("mitigation_time")
        )
