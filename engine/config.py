"""
Platform configuration

Process-wide settings, loaded from the persisted blob at startup and
merged over the built-in defaults.
"""
import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Mapping

from engine.errors import InvalidRequestError

logger = logging.getLogger(__name__)

MIN_UPDATE_FREQUENCY_MS = 250


@dataclass
class NotificationSettings:
    """Notification channels"""
    email: bool = True
    sms: bool = False
    in_app: bool = True


@dataclass
class PlatformConfig:
    """Runtime configuration of the simulation platform"""
    safe_mode: bool = True
    auto_mitigation: bool = True
    update_frequency_ms: int = 2000
    detection_threshold: float = 0.7
    notifications: NotificationSettings = field(default_factory=NotificationSettings)

    def validate(self) -> None:
        """Raise InvalidRequestError if any value is out of range"""
        if not 0.0 <= self.detection_threshold <= 1.0:
            raise InvalidRequestError(
                f"detection_threshold must be within [0, 1], got {self.detection_threshold}"
            )
        if self.update_frequency_ms < MIN_UPDATE_FREQUENCY_MS:
            raise InvalidRequestError(
                f"update_frequency_ms must be >= {MIN_UPDATE_FREQUENCY_MS}, "
                f"got {self.update_frequency_ms}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PlatformConfig':
        """
        Build a config from a (possibly partial) dictionary.

        Missing keys keep their defaults and unknown keys are ignored.
        """
        config = cls()
        config.apply(data or {})
        return config

    def apply(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply changes after validating them on a copy.

        Returns:
            dict: The changes that were actually applied
        """
        candidate = PlatformConfig(**{
            **asdict(self),
            "notifications": NotificationSettings(**asdict(self.notifications))
        })
        applied: Dict[str, Any] = {}

        for key, value in changes.items():
            if key == "notifications":
                channels = value or {}
                if not isinstance(channels, Mapping):
                    raise InvalidRequestError(f"notifications must be a mapping, got {type(channels).__name__}")
                for channel in ("email", "sms", "in_app"):
                    if channel in channels:
                        setattr(candidate.notifications, channel, bool(channels[channel]))
                applied[key] = asdict(candidate.notifications)
            elif key in ("safe_mode", "auto_mitigation"):
                setattr(candidate, key, bool(value))
                applied[key] = bool(value)
            elif key in ("update_frequency_ms", "detection_threshold"):
                cast = int if key == "update_frequency_ms" else float
                try:
                    setattr(candidate, key, cast(value))
                except (TypeError, ValueError) as e:
                    raise InvalidRequestError(f"Invalid value for {key}: {value!r}") from e
                applied[key] = getattr(candidate, key)
            else:
                logger.debug(f"Ignoring unknown config key: {key}")

        candidate.validate()

        self.safe_mode = candidate.safe_mode
        self.auto_mitigation = candidate.auto_mitigation
        self.update_frequency_ms = candidate.update_frequency_ms
        self.detection_threshold = candidate.detection_threshold
        self.notifications = candidate.notifications
        return applied
