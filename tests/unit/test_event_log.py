"""Unit tests for the event log"""
import pytest
from engine.errors import InvalidRequestError
from engine.scheduler import Scheduler, simulated_environment
from monitoring.event_log import EventLog, LogEntry, LogFilter, default_entries


def make_log(capacity=1000):
    scheduler = Scheduler(simulated_environment(start_ms=1_700_000_000_000))
    return EventLog(scheduler, capacity=capacity), scheduler


def test_append_inserts_newest_first():
    """Test entries are kept newest-first"""
    log, scheduler = make_log()
    log.append("info", "System", "first")
    scheduler.advance(1000)
    log.append("warning", "Attack", "second")

    messages = [entry.message for entry in log.snapshot()]
    assert messages == ["second", "first"]


def test_append_defaults_and_ids():
    """Test severity default and id format"""
    log, scheduler = make_log()
    entry = log.append("info", "System", "hello")

    assert entry.severity == "medium"
    assert entry.id.startswith(f"log_{int(scheduler.now_ms())}_")
    assert entry.timestamp.startswith("2023-11-14T22:13:20")


def test_append_rejects_unknown_type_and_severity():
    """Test invalid type or severity raises"""
    log, _ = make_log()

    with pytest.raises(InvalidRequestError):
        log.append("fatal", "System", "x")
    with pytest.raises(InvalidRequestError):
        log.append("info", "System", "x", severity="critical")


def test_capacity_evicts_oldest():
    """Test the log never exceeds its capacity"""
    log, scheduler = make_log(capacity=1000)
    for i in range(1001):
        scheduler.advance(1)
        log.append("info", "System", f"entry {i}")

    assert len(log) == 1000
    messages = [entry.message for entry in log.snapshot()]
    assert messages == [f"entry {i}" for i in range(1000, 0, -1)]


def test_clear_leaves_single_entry():
    """Test clearing leaves exactly the clear notice"""
    log, _ = make_log()
    for i in range(20):
        log.append("info", "System", f"entry {i}")

    log.clear()

    entries = log.snapshot()
    assert len(entries) == 1
    assert entries[0].type == "warning"
    assert entries[0].message == "All logs cleared by user"


def test_query_filters_by_type_severity_and_search():
    """Test filter criteria combine"""
    log, scheduler = make_log()
    log.append("info", "System", "Platform started", "low")
    scheduler.advance(1)
    log.append("warning", "Attack", "DDOS attack launched against 1 targets")
    scheduler.advance(1)
    log.append("warning", "Detection", "DDOS attack detected after 4.2s", "high")

    warnings = log.query({"type": "warning"})
    assert warnings.total == 2

    high = log.query({"type": "warning", "severity": "high"})
    assert [e.source for e in high.entries] == ["Detection"]

    search = log.query({"search": "ddos"})
    assert search.total == 2

    by_source = log.query({"search": "system"})
    assert [e.message for e in by_source.entries] == ["Platform started"]


def test_all_disables_criterion():
    """Test 'all' behaves like no filter"""
    log, _ = make_log()
    log.append("info", "System", "a")
    log.append("error", "System", "b", "high")

    result = log.query({"type": "all", "severity": "all", "source": "all", "search": ""})
    assert result.total == 2


def test_query_sorts_by_timestamp_descending():
    """Test replaced entries come back sorted newest-first"""
    log, _ = make_log()
    log.replace([
        LogEntry(id="a", timestamp="2024-01-01T00:00:00+00:00", type="info", source="S", message="old"),
        LogEntry(id="b", timestamp="2024-01-03T00:00:00+00:00", type="info", source="S", message="new"),
        LogEntry(id="c", timestamp="2024-01-02T00:00:00Z", type="info", source="S", message="mid"),
    ])

    result = log.query()
    assert [e.message for e in result.entries] == ["new", "mid", "old"]


def test_pagination():
    """Test page boundaries and page clamping"""
    log, scheduler = make_log()
    for i in range(120):
        scheduler.advance(1)
        log.append("info", "System", f"entry {i}")

    first = log.query(page=1, page_size=50)
    assert first.total == 120
    assert first.total_pages == 3
    assert len(first.entries) == 50
    assert first.entries[0].message == "entry 119"

    last = log.query(page=3, page_size=50)
    assert len(last.entries) == 20
    assert last.entries[-1].message == "entry 0"

    beyond = log.query(page=10, page_size=50)
    assert beyond.page == 3


def test_empty_query_has_one_page():
    """Test an empty result still reports one page"""
    log, _ = make_log()

    result = log.query({"type": "error"}, page=1)
    assert result.total == 0
    assert result.total_pages == 1
    assert result.entries == []


def test_listener_failure_is_swallowed():
    """Test a failing listener does not break appends"""
    log, _ = make_log()
    seen = []

    def broken(entry):
        raise RuntimeError("sink down")

    log.add_listener(broken)
    log.add_listener(seen.append)
    entry = log.append("info", "System", "hello")

    assert seen == [entry]


def test_filter_from_mapping_passthrough():
    """Test LogFilter.from_mapping accepts a LogFilter"""
    criteria = LogFilter(type="info")
    assert LogFilter.from_mapping(criteria) is criteria
    assert LogFilter.from_mapping(None) == LogFilter()


def test_default_entries():
    """Test seed entries are ordered newest-first"""
    entries = default_entries(Scheduler())

    assert [e.id for e in entries] == ["log_001", "log_002", "log_003"]
    assert entries[0].timestamp > entries[1].timestamp > entries[2].timestamp


def test_from_dict_rejects_malformed_records():
    """Test persisted entries are validated on load"""
    valid = {"id": "log_1", "timestamp": "2024-01-01T00:00:00Z", "type": "info",
             "source": "System", "message": "ok", "severity": "low"}
    assert LogEntry.from_dict(valid).timestamp == "2024-01-01T00:00:00Z"

    for override in ({"timestamp": "yesterday"}, {"timestamp": 12345},
                     {"type": "fatal"}, {"severity": "critical"}):
        with pytest.raises(InvalidRequestError):
            LogEntry.from_dict(dict(valid, **override))
