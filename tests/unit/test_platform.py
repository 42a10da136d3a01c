"""Unit tests for the platform command surface"""
import json
import random

from attacks.lifecycle import RESET_GRACE_MS
from engine.errors import RenderUnavailable
from engine.persistence import STORAGE_KEY, MemoryStore
from engine.platform import (
    AUTO_SAVE_MS, EMERGENCY_COOLDOWN_MS, MONITORING_TIMERS, AttackDetectionPlatform,
)
from monitoring.metrics import BASELINE_ACCURACY, BASELINE_CPU


class RecordingRenderer:
    def __init__(self):
        self.states = []

    def render(self, state):
        self.states.append(state)


def make_platform(store=None, renderer=None, start=True):
    platform = AttackDetectionPlatform(
        store=store if store is not None else MemoryStore(),
        rng=random.Random(0),
        renderer=renderer
    )
    if start:
        platform.start()
    return platform


def messages(platform):
    return [entry.message for entry in platform.event_log.snapshot()]


def test_start_seeds_defaults_and_timers():
    """Test a fresh start loads defaults and starts monitoring"""
    platform = make_platform()

    assert platform.initialized is True
    assert len(platform.registry) == 6
    assert platform.monitoring_running()
    assert platform.scheduler.is_scheduled("system.autosave")
    assert messages(platform)[0] == "Platform initialized successfully"


def test_metrics_follow_attack():
    """Test metrics ticks switch to attack-biased samples"""
    platform = make_platform()
    platform.scheduler.advance(2000)
    assert platform.metrics.snapshot.accuracy >= 95.0
    assert platform.metrics.snapshot.devices_label == "6/6"

    platform.launch_attack("ddos", ["device_001"], delay_ms=60000)
    platform.scheduler.advance(4000)

    snapshot = platform.get_metrics_snapshot()
    assert snapshot.accuracy < 95.0
    assert snapshot.devices_label == "5/6"


def test_metrics_snapshot_is_copy():
    """Test the snapshot returned to callers is detached"""
    platform = make_platform()

    snapshot = platform.get_metrics_snapshot()
    snapshot.cpu = 0.0

    assert platform.metrics.snapshot.cpu != 0.0


def test_launch_failure_logged_and_notified():
    """Test a rejected launch returns a failed result with a log entry"""
    platform = make_platform()
    platform.launch_attack("ddos", None, delay_ms=10000)

    result = platform.launch_attack("fgsm", None, delay_ms=10000)

    assert result.ok is False
    assert result.error == "ConflictError"
    assert platform.event_log.snapshot()[0].type == "warning"
    assert platform.notifier.recent(1)[0].message == "Attack already in progress"


def test_pause_attack_toggles():
    """Test the pause command toggles between paused and active"""
    platform = make_platform()
    assert platform.pause_attack().ok is False

    platform.launch_test_attack()

    assert platform.pause_attack().data == {"status": "paused"}
    assert platform.pause_attack().data == {"status": "active"}


def test_stop_attack():
    """Test stop ends the attack and clears it after the grace period"""
    platform = make_platform()
    platform.launch_test_attack()

    assert platform.stop_attack().ok is True
    assert platform.lifecycle.status == "stopped"
    assert platform.stop_attack().ok is False

    platform.scheduler.advance(RESET_GRACE_MS)
    assert platform.lifecycle.current is None


def test_emergency_stop_halts_everything():
    """Test emergency stop cancels timers and resets metrics"""
    platform = make_platform()
    platform.launch_attack("ddos", ["device_001"], delay_ms=10000)
    platform.scheduler.advance(3000)

    result = platform.emergency_stop()

    assert result.ok is True
    assert platform.lifecycle.current is None
    assert platform.scheduler.active_names() == ["system.restart"]
    assert platform.metrics.snapshot.cpu == BASELINE_CPU
    assert platform.metrics.snapshot.accuracy == BASELINE_ACCURACY
    assert platform.registry.get("device_001").status == "online"
    assert platform.lifecycle.history[0].status == "stopped"
    assert platform.event_log.snapshot()[0].type == "error"


def test_emergency_stop_is_idempotent():
    """Test a second emergency stop leaves the same state"""
    platform = make_platform()
    platform.launch_test_attack()
    platform.emergency_stop()
    history_after_first = len(platform.lifecycle.history)

    platform.emergency_stop()

    assert platform.lifecycle.current is None
    assert len(platform.lifecycle.history) == history_after_first
    assert platform.scheduler.active_names() == ["system.restart"]


def test_monitoring_resumes_after_cooldown():
    """Test monitoring and auto-save restart after an emergency stop"""
    platform = make_platform()
    platform.emergency_stop()
    assert not platform.monitoring_running()

    platform.scheduler.advance(EMERGENCY_COOLDOWN_MS)

    assert platform.monitoring_running()
    assert platform.scheduler.is_scheduled("system.autosave")
    assert "System monitoring resumed" in messages(platform)


def test_auto_save_writes_when_dirty():
    """Test the auto-save tick persists state only when changed"""
    store = MemoryStore()
    platform = make_platform(store=store)

    platform.scheduler.advance(AUTO_SAVE_MS)

    blob = json.loads(store.read(STORAGE_KEY))
    assert set(blob) == {"realTimeData", "config", "lastSaved"}
    assert "Auto-save completed" in messages(platform)
    assert len(blob["realTimeData"]["devices"]) == 6


def test_saved_state_restored_on_start():
    """Test history, devices and settings survive a restart"""
    store = MemoryStore()
    first = make_platform(store=store)
    first.update_settings({"safe_mode": False})
    first.launch_attack("fgsm", ["device_002"], delay_ms=5000)
    first.scheduler.advance(5000)
    first.toggle_device("device_006")
    assert first.save_data() is True

    second = make_platform(store=store)

    assert second.config.safe_mode is False
    assert len(second.lifecycle.history) == 1
    assert second.lifecycle.history[0].status == "mitigated"
    assert second.registry.get("device_006").status == "offline"
    assert "FGSM attack successfully mitigated" in messages(second)


def test_corrupt_saved_data_falls_back_to_defaults():
    """Test a corrupt blob is reported and defaults are used"""
    platform = make_platform(store=MemoryStore({STORAGE_KEY: "{broken"}))

    assert len(platform.registry) == 6
    errors = platform.event_log.query({"type": "error"})
    assert errors.total == 1
    assert errors.entries[0].message.startswith("Failed to load saved data")


def test_malformed_saved_data_falls_back_to_defaults():
    """Test a well-formed blob with bad records is rejected as a whole"""
    blob = json.dumps({"realTimeData": {"devices": [{"name": "no id"}]}, "config": {}})
    platform = make_platform(store=MemoryStore({STORAGE_KEY: blob}))

    assert len(platform.registry) == 6
    assert platform.event_log.query({"type": "error"}).total == 1


def test_malformed_attack_record_rejects_whole_blob():
    """Test one bad history record leaves config, devices and logs untouched"""
    blob = json.dumps({
        "realTimeData": {
            "devices": [{"id": "device_x", "name": "Lone Sensor", "type": "sensor",
                         "protocol": "MQTT", "status": "online"}],
            "logs": [{"id": "log_1", "timestamp": "2024-01-01T00:00:00+00:00", "type": "info",
                      "source": "System", "message": "saved entry", "severity": "low"}],
            "attacks": [{"id": "a1"}],
        },
        "config": {"safe_mode": False},
    })
    platform = make_platform(store=MemoryStore({STORAGE_KEY: blob}))

    assert len(platform.registry) == 6
    assert "device_x" not in platform.registry
    assert platform.config.safe_mode is True
    assert "saved entry" not in messages(platform)
    assert platform.lifecycle.history == ()
    assert platform.event_log.query({"type": "error"}).total == 1


def test_saved_log_with_bad_timestamp_rejected():
    """Test an unparseable saved timestamp cannot break log queries"""
    blob = json.dumps({
        "realTimeData": {
            "logs": [{"id": "log_1", "timestamp": "yesterday", "type": "info",
                      "source": "System", "message": "stale entry"}],
        },
        "config": {},
    })
    platform = make_platform(store=MemoryStore({STORAGE_KEY: blob}))

    page = platform.get_filtered_logs()

    assert page.total == len(platform.event_log)
    assert "stale entry" not in [entry.message for entry in page.entries]
    assert platform.event_log.query({"type": "error"}).total == 1


def test_update_settings_validates():
    """Test invalid settings are rejected without partial updates"""
    platform = make_platform()

    result = platform.update_settings({"auto_mitigation": False, "detection_threshold": 2})

    assert result.ok is False
    assert result.error == "InvalidRequestError"
    assert platform.config.auto_mitigation is True

    result = platform.update_settings({"notifications": True})

    assert result.ok is False
    assert result.error == "InvalidRequestError"
    assert platform.config.notifications.in_app is True


def test_update_settings_reschedules_metrics():
    """Test a new update frequency takes effect on the metrics timer"""
    platform = make_platform()

    result = platform.update_settings({"update_frequency_ms": 1000, "auto_mitigation": False})

    assert result.ok is True
    assert platform.scheduler.get("monitor.metrics").interval_ms == 1000
    assert "Auto-mitigation disabled" in messages(platform)


def test_toggle_device_rejected_under_attack():
    """Test targets of the current attack cannot be toggled"""
    platform = make_platform()
    platform.launch_attack("ddos", ["device_001"], delay_ms=10000)

    result = platform.toggle_device("device_001")
    assert result.ok is False
    assert platform.registry.get("device_001").status == "attacking"

    assert platform.toggle_device("device_002").data["status"] == "offline"
    assert platform.toggle_device("device_999").error == "UnknownDeviceError"


def test_device_add_and_remove():
    """Test devices referenced by history cannot be removed"""
    platform = make_platform()
    platform.launch_attack("ddos", ["device_001"], delay_ms=5000)
    platform.scheduler.advance(5000)

    added = platform.add_device("Smart Plug", "plug", "WiFi")
    assert added.data["id"] == "device_007"

    assert platform.remove_device("device_001").error == "DeviceInUseError"
    assert platform.remove_device("device_007").ok is True
    assert "device_007" not in platform.registry


def test_export_logs_records_entry():
    """Test exporting logs returns the payload and logs the export"""
    platform = make_platform()

    result = platform.export_logs("csv", {"type": "info"})

    assert result.ok is True
    assert result.data.filename == "logs_20231114.csv"
    assert result.data.count >= 1
    assert messages(platform)[0] == "Logs exported in CSV format"

    assert platform.export_logs("docx").error == "InvalidRequestError"


def test_export_logs_to_directory(tmp_path):
    """Test exports can be written to disk"""
    platform = make_platform()

    result = platform.export_logs("json", directory=str(tmp_path))

    assert (tmp_path / result.data.filename).exists()


def test_clear_logs_requires_confirmation():
    """Test clearing needs an explicit confirmation"""
    platform = make_platform()

    assert platform.clear_all_logs().ok is False
    assert len(platform.event_log) > 1

    assert platform.clear_all_logs(confirmed=True).ok is True
    assert messages(platform) == ["All logs cleared by user"]


def test_filtered_logs_pagination():
    """Test the log query command pages results"""
    platform = make_platform()

    page = platform.get_filtered_logs({"source": "system"}, page=1, page_size=2)

    assert len(page.entries) <= 2
    assert all(entry.source == "System" for entry in page.entries)


def test_replay_commands():
    """Test replaying a finished attack"""
    platform = make_platform()
    launched = platform.launch_attack("ddos", None, delay_ms=10000).data
    platform.scheduler.advance(10000)

    assert platform.load_replay("attack_missing").ok is False
    assert platform.load_replay(launched["id"]).ok is True
    assert platform.play_replay().data["playing"] is True

    platform.scheduler.advance(10000)

    view = platform.replay.view()
    assert view["playing"] is False
    assert view["position"] == view["length"] - 1


def test_history_summary():
    """Test the history summary counts outcomes"""
    platform = make_platform()
    platform.launch_attack("ddos", None, delay_ms=10000)
    platform.scheduler.advance(10000)
    platform.launch_attack("fgsm", None, delay_ms=10000)
    platform.stop_attack()

    summary = platform.get_history_summary()

    assert summary["total_attacks"] == 2
    assert summary["mitigated"] == 1
    assert summary["stopped"] == 1
    assert summary["avg_time_to_mitigate"] == 10.0


def test_state_changes_are_rendered():
    """Test state changes reach an attached renderer"""
    renderer = RecordingRenderer()
    platform = make_platform(renderer=renderer)

    platform.launch_test_attack()

    state = renderer.states[-1]
    assert state["attack"]["status"] == "active"
    assert state["system_status"] == "Safe Demo Mode"
    assert set(MONITORING_TIMERS) <= set(platform.scheduler.active_names())


def test_missing_display_is_skipped():
    """Test a renderer without its display element does not break commands"""
    class HeadlessRenderer:
        def render(self, state):
            raise RenderUnavailable("chart element missing")

    platform = make_platform(renderer=HeadlessRenderer())

    assert platform.launch_test_attack().ok is True
    platform.scheduler.advance(5000)
