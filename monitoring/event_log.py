"""
Event Log

Append-only, capped record of system / attack / UI events kept
newest-first. Entries are never mutated after creation; the read side
filters, sorts and paginates over a snapshot.
"""
import logging
import math
import uuid
from collections import deque
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from engine.errors import InvalidRequestError

logger = logging.getLogger(__name__)

LOG_TYPES = ("info", "success", "warning", "error")
SEVERITIES = ("low", "medium", "high")
DEFAULT_CAPACITY = 1000
DEFAULT_PAGE_SIZE = 50


def iso_timestamp(epoch_ms: float) -> str:
    """Epoch milliseconds to an ISO-8601 UTC string"""
    return datetime.fromtimestamp(epoch_ms / 1000.0, tz=timezone.utc).isoformat(timespec="milliseconds")


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class LogEntry:
    """A single immutable log record"""
    id: str
    timestamp: str
    type: str
    source: str
    message: str
    severity: str = "medium"

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'LogEntry':
        """
        Rebuild a persisted entry.

        Raises:
            InvalidRequestError: Unparseable timestamp, unknown type or severity
        """
        timestamp = data["timestamp"]
        try:
            parse_timestamp(timestamp)
        except (AttributeError, TypeError, ValueError):
            raise InvalidRequestError(f"Invalid log timestamp: {timestamp!r}")

        entry_type = data.get("type", "info")
        if entry_type not in LOG_TYPES:
            raise InvalidRequestError(f"Unknown log type: {entry_type}")
        severity = data.get("severity") or "medium"
        if severity not in SEVERITIES:
            raise InvalidRequestError(f"Unknown log severity: {severity}")

        return cls(
            id=str(data["id"]),
            timestamp=timestamp,
            type=entry_type,
            source=str(data.get("source", "System")),
            message=str(data.get("message", "")),
            severity=severity
        )


@dataclass
class LogFilter:
    """Read-side filter; None or "all" disables a criterion"""
    type: Optional[str] = None
    severity: Optional[str] = None
    source: Optional[str] = None
    search: Optional[str] = None

    @classmethod
    def from_mapping(cls, filters: Union['LogFilter', Mapping[str, Any], None]) -> 'LogFilter':
        if filters is None:
            return cls()
        if isinstance(filters, LogFilter):
            return filters
        return cls(
            type=filters.get("type"),
            severity=filters.get("severity"),
            source=filters.get("source"),
            search=filters.get("search")
        )

    def matches(self, entry: LogEntry) -> bool:
        if _enabled(self.type) and entry.type != self.type:
            return False
        if _enabled(self.severity) and entry.severity != self.severity:
            return False
        if _enabled(self.source) and entry.source.lower() != self.source.lower():
            return False
        if _enabled(self.search):
            needle = self.search.lower()
            if needle not in entry.message.lower() and needle not in entry.source.lower():
                return False
        return True


def _enabled(value: Optional[str]) -> bool:
    return bool(value) and value != "all"


@dataclass
class LogPage:
    """One page of a log query"""
    entries: List[LogEntry]
    total: int
    page: int
    page_size: int
    total_pages: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": [entry.to_dict() for entry in self.entries],
            "total": self.total,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages
        }


class EventLog:
    """Capped newest-first event store"""

    def __init__(self, clock, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.clock = clock
        self.capacity = capacity
        self._entries: deque = deque(maxlen=capacity)
        self._listeners: List[Callable[[LogEntry], None]] = []

    def __len__(self) -> int:
        return len(self._entries)

    def add_listener(self, listener: Callable[[LogEntry], None]) -> None:
        """Register a fire-and-forget sink called for every new entry"""
        self._listeners.append(listener)

    def append(self, type: str, source: str, message: str, severity: str = "medium") -> LogEntry:
        """
        Insert a new entry at the head, evicting the oldest past the cap.

        Args:
            type: info, success, warning or error
            source: Emitting component (e.g. "Attack", "System")
            message: Human-readable text
            severity: low, medium or high
        """
        if type not in LOG_TYPES:
            raise InvalidRequestError(f"Unknown log type: {type}")
        if severity not in SEVERITIES:
            raise InvalidRequestError(f"Unknown log severity: {severity}")

        now = self.clock.now_ms()
        entry = LogEntry(
            id=f"log_{int(now)}_{uuid.uuid4().hex[:9]}",
            timestamp=iso_timestamp(now),
            type=type,
            source=source,
            message=message,
            severity=severity
        )
        self._entries.appendleft(entry)
        logger.debug(f"[{source}] {type}: {message}")

        for listener in self._listeners:
            try:
                listener(entry)
            except Exception as e:
                logger.warning(f"Log sink failed: {e}")

        return entry

    def snapshot(self) -> List[LogEntry]:
        """Entries newest-first, as a detached list"""
        return list(self._entries)

    def query(
        self,
        filters: Union[LogFilter, Mapping[str, Any], None] = None,
        page: Optional[int] = None,
        page_size: int = DEFAULT_PAGE_SIZE
    ) -> LogPage:
        """
        Filter and sort (newest first) a snapshot of the log.

        Args:
            filters: LogFilter or mapping with type/severity/source/search
            page: 1-based page number; None returns every match on one page
            page_size: Entries per page

        Returns:
            LogPage with the selected entries and pagination info
        """
        criteria = LogFilter.from_mapping(filters)
        matched = [entry for entry in self.snapshot() if criteria.matches(entry)]
        # stable sort keeps insertion order for equal timestamps
        matched.sort(key=lambda entry: parse_timestamp(entry.timestamp), reverse=True)

        total = len(matched)
        if page is None:
            return LogPage(entries=matched, total=total, page=1,
                           page_size=max(total, 1), total_pages=1)

        if page_size <= 0:
            raise InvalidRequestError("page_size must be positive")
        total_pages = max(1, math.ceil(total / page_size))
        page = min(max(1, page), total_pages)
        start = (page - 1) * page_size
        return LogPage(
            entries=matched[start:start + page_size],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages
        )

    def clear(self) -> LogEntry:
        """Drop every entry, then record the clear in the new empty log"""
        dropped = len(self._entries)
        self._entries = deque(maxlen=self.capacity)
        logger.info(f"Event log cleared ({dropped} entries dropped)")
        return self.append("warning", "System", "All logs cleared by user")

    def replace(self, entries: Iterable[LogEntry]) -> None:
        """Load entries given newest-first, keeping at most capacity"""
        self._entries = deque(maxlen=self.capacity)
        for entry in entries:
            if len(self._entries) >= self.capacity:
                break
            self._entries.append(entry)

    def to_list(self) -> List[Dict[str, str]]:
        return [entry.to_dict() for entry in self._entries]


def default_entries(clock) -> List[LogEntry]:
    """Seed entries shown on a fresh installation"""
    now = clock.now_ms()
    return [
        LogEntry(
            id="log_001",
            timestamp=iso_timestamp(now - 300000),
            type="success",
            source="AI Model",
            message="DDoS attack successfully mitigated - 150 malicious requests blocked",
            severity="high"
        ),
        LogEntry(
            id="log_002",
            timestamp=iso_timestamp(now - 600000),
            type="warning",
            source="Network",
            message="Anomaly detected in Security Camera Alpha traffic patterns",
            severity="medium"
        ),
        LogEntry(
            id="log_003",
            timestamp=iso_timestamp(now - 900000),
            type="info",
            source="System",
            message="CNN-LSTM model training completed - accuracy improved to 96.8%",
            severity="low"
        )
    ]
