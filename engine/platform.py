"""
Attack Detection Platform

Wires the engine components together and exposes the command surface
used by the dashboard:
- Attack commands (launch, pause/resume, stop, emergency stop)
- Log commands (filter, export, clear)
- Settings, devices and replay commands
- Read-only snapshots for renderers

User-facing failures never raise out of a command: they become a log
entry plus a notification, and the command returns a failed CommandResult.
"""
import dataclasses
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from attacks.lifecycle import AttackLifecycle, clock_label
from attacks.models import Attack
from attacks.replay import ReplaySession
from devices.registry import Device, DeviceRegistry, default_devices
from engine.config import PlatformConfig
from engine.errors import InvalidRequestError, PersistenceError, PlatformError
from engine.notifications import NullRenderer, Notifier, safe_render
from engine.persistence import MemoryStore, load_state, save_state
from engine.scheduler import Scheduler
from evaluation.metrics.attack_metrics import AttackHistoryMetrics
from monitoring.activity import ActivityFeed
from monitoring.event_log import EventLog, LogEntry, LogPage, default_entries, iso_timestamp
from monitoring.export import export_logs
from monitoring.metrics import MetricSnapshot, MetricsMonitor

logger = logging.getLogger(__name__)

VERSION = "2.2.0"

CHART_TICK_MS = 5000
REFRESH_TICK_MS = 1000
REFRESH_COUNTDOWN_S = 30
AUTO_SAVE_MS = 30000
EMERGENCY_COOLDOWN_MS = 2000
MONITORING_TIMERS = ("monitor.metrics", "monitor.chart", "monitor.refresh")


@dataclass
class CommandResult:
    """Outcome of a UI command"""
    ok: bool
    message: str = ""
    data: Any = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": self.ok, "message": self.message, "data": self.data, "error": self.error}


class AttackDetectionPlatform:
    """Simulation engine facade"""

    def __init__(self, store=None, env=None, rng: Optional[random.Random] = None, renderer=None):
        self.scheduler = Scheduler(env)
        self.rng = rng or random.Random()
        self.store = store if store is not None else MemoryStore()
        self.renderer = renderer or NullRenderer()

        self.config = PlatformConfig()
        self.event_log = EventLog(self.scheduler)
        self.notifier = Notifier(self.scheduler)
        self.registry = DeviceRegistry()
        self.metrics = MetricsMonitor(self.rng)
        self.activity = ActivityFeed(self.rng)
        self.lifecycle = AttackLifecycle(
            self.scheduler, self.registry, self.event_log, self.metrics,
            self.config, self.notifier, self.rng
        )
        self.lifecycle.on_change = self._state_changed
        self.replay = ReplaySession(self.scheduler, self.event_log)

        self.started_at = self.scheduler.now_ms()
        self.refresh_countdown = REFRESH_COUNTDOWN_S
        self.data_changed = False
        self.initialized = False
        self._metrics_listeners: List[Callable[[Dict[str, Any]], None]] = []

    # ------------------------------------------------------------------
    # Startup, persistence and monitoring

    def start(self) -> None:
        """Load saved state and start the steady-state timers"""
        self.load_saved_data()
        self.start_monitoring()
        self.setup_auto_save()
        self.initialized = True
        self.notifier.notify("System initialized successfully", "success")
        self.event_log.append("info", "System", "Platform initialized successfully")
        logger.info(f"Attack detection platform v{VERSION} started")

    def load_saved_data(self) -> None:
        """Restore persisted state; missing or corrupt data falls back to defaults"""
        try:
            data = load_state(self.store)
            if data is not None:
                self._apply_saved(data)
        except PersistenceError as e:
            self.handle_error("Failed to load saved data", e)
        except (AttributeError, KeyError, TypeError, ValueError, PlatformError) as e:
            self.handle_error("Failed to load saved data", PersistenceError(f"Invalid saved data: {e}"))

        if not len(self.registry):
            self.registry = DeviceRegistry(default_devices())
            self.lifecycle.registry = self.registry
        if not len(self.event_log):
            self.event_log.replace(default_entries(self.scheduler))

    def _apply_saved(self, data: Dict[str, Any]) -> None:
        """Parse the whole blob first; nothing is applied unless every part is valid"""
        config = PlatformConfig.from_dict(data.get("config") or {})
        real_time = data.get("realTimeData") or {}

        registry = DeviceRegistry(Device.from_dict(d) for d in real_time.get("devices", []))
        entries = [LogEntry.from_dict(e) for e in real_time.get("logs", [])]
        attacks = [Attack.from_dict(a) for a in real_time.get("attacks", [])]
        MetricsMonitor(self.rng).load(real_time)

        self.config.apply(config.to_dict())
        self.registry = registry
        self.lifecycle.registry = registry
        self.event_log.replace(entries)
        self.lifecycle.load_history(attacks)
        self.metrics.load(real_time)
        logger.info(f"Loaded saved data from {data.get('lastSaved', 'unknown time')}")

    def real_time_data(self) -> Dict[str, Any]:
        data = self.metrics.to_dict()
        data.update({
            "devices": self.registry.to_list(),
            "attacks": [attack.to_dict() for attack in self.lifecycle.history],
            "logs": self.event_log.to_list(),
        })
        return data

    def save_data(self) -> bool:
        try:
            save_state(self.store, self.real_time_data(), self.config.to_dict(),
                       iso_timestamp(self.scheduler.now_ms()))
        except PersistenceError as e:
            self.handle_error("Failed to save data", e)
            return False
        self.data_changed = False
        return True

    def setup_auto_save(self) -> None:
        self.scheduler.call_every("system.autosave", AUTO_SAVE_MS, self._auto_save_tick)

    def _auto_save_tick(self) -> None:
        if self.data_changed and self.save_data():
            self.event_log.append("info", "System", "Auto-save completed", "low")

    def start_monitoring(self) -> None:
        self.scheduler.call_every("monitor.metrics", self.config.update_frequency_ms, self._metrics_tick)
        self.scheduler.call_every("monitor.chart", CHART_TICK_MS, self._chart_tick)
        self.scheduler.call_every("monitor.refresh", REFRESH_TICK_MS, self._refresh_tick)

    def monitoring_running(self) -> bool:
        return all(self.scheduler.is_scheduled(name) for name in MONITORING_TIMERS)

    def add_metrics_listener(self, listener: Callable[[Dict[str, Any]], None]) -> None:
        self._metrics_listeners.append(listener)

    def uptime_seconds(self) -> float:
        return (self.scheduler.now_ms() - self.started_at) / 1000.0

    def _metrics_tick(self) -> None:
        snapshot = self.metrics.sample(
            self.lifecycle.active_profile(),
            self.registry.online_count(),
            len(self.registry),
            self.uptime_seconds()
        )
        self.activity.maybe_add(iso_timestamp(self.scheduler.now_ms()))
        self.data_changed = True

        payload = snapshot.to_dict()
        for listener in self._metrics_listeners:
            try:
                listener(payload)
            except Exception as e:
                logger.warning(f"Metrics listener failed: {e}")
        self._render()

    def _chart_tick(self) -> None:
        self.metrics.chart_tick(clock_label(self.scheduler.now_ms()))
        self._render()

    def _refresh_tick(self) -> None:
        self.refresh_countdown = self.refresh_countdown - 1 if self.refresh_countdown > 1 else REFRESH_COUNTDOWN_S

    def _state_changed(self) -> None:
        self.data_changed = True
        self._render()

    def _render(self) -> None:
        safe_render(self.renderer, self.get_state())

    def handle_error(self, message: str, error: Exception) -> None:
        logger.error(f"{message}: {error}")
        self.event_log.append("error", "System", f"{message}: {error}", "high")
        self.notifier.notify(message, "error")

    def _fail(self, source: str, error: PlatformError) -> CommandResult:
        message = str(error)
        logger.warning(f"[{source}] {type(error).__name__}: {message}")
        self.event_log.append("warning", source, message)
        self.notifier.notify(message, "warning")
        return CommandResult(ok=False, message=message, error=type(error).__name__)

    # ------------------------------------------------------------------
    # Attack commands

    def launch_attack(
        self,
        attack_type: str,
        targets: Optional[Sequence[str]] = None,
        delay_ms: float = 10000,
        parameters: Optional[Mapping[str, Any]] = None
    ) -> CommandResult:
        try:
            attack = self.lifecycle.launch(attack_type, targets, delay_ms, dict(parameters or {}))
        except PlatformError as e:
            return self._fail("Attack", e)
        return CommandResult(ok=True, message=f"{attack.type.upper()} attack launched",
                             data=attack.to_dict())

    def launch_test_attack(self) -> CommandResult:
        """DDoS with default parameters against an auto-selected device"""
        return self.launch_attack("ddos", targets=None, delay_ms=10000)

    def pause_attack(self) -> CommandResult:
        status = self.lifecycle.toggle_pause()
        if status is None:
            return CommandResult(ok=False, message="No attack to pause or resume")
        return CommandResult(ok=True, message=f"Attack {status}", data={"status": status})

    def stop_attack(self) -> CommandResult:
        if not self.lifecycle.stop():
            return CommandResult(ok=False, message="No attack to stop")
        return CommandResult(ok=True, message="Attack simulation stopped")

    def emergency_stop(self) -> CommandResult:
        """
        Halt everything: cancel every timer, stop the current attack and
        any replay, reset metrics, then restart monitoring after a cool-down.
        """
        self.scheduler.cancel_all()
        self.lifecycle.stop(reason="Attack simulation stopped by emergency stop", grace=False)
        self.replay.stop()
        self.metrics.reset_to_baseline()
        self.refresh_countdown = REFRESH_COUNTDOWN_S

        self.event_log.append("error", "System", "Emergency stop activated - all operations halted", "high")
        self.notifier.notify("Emergency stop activated - all operations halted", "error")
        self.scheduler.call_later("system.restart", EMERGENCY_COOLDOWN_MS, self._resume_after_emergency)
        self._state_changed()
        return CommandResult(ok=True, message="Emergency stop activated")

    def _resume_after_emergency(self) -> None:
        self.start_monitoring()
        self.setup_auto_save()
        self.event_log.append("info", "System", "System monitoring resumed", "low")
        self.notifier.notify("System monitoring resumed", "success")

    # ------------------------------------------------------------------
    # Log commands

    def get_filtered_logs(self, filters: Optional[Mapping[str, Any]] = None,
                          page: Optional[int] = None, page_size: int = 50) -> LogPage:
        return self.event_log.query(filters, page=page, page_size=page_size)

    def export_logs(self, format: str, filters: Optional[Mapping[str, Any]] = None,
                    directory: Optional[str] = None) -> CommandResult:
        entries = self.event_log.query(filters).entries
        try:
            result = export_logs(entries, format, datetime.fromtimestamp(self.scheduler.now_ms() / 1000.0, tz=timezone.utc))
        except InvalidRequestError as e:
            return self._fail("Export", e)

        if directory:
            try:
                result.write_to(directory)
            except OSError as e:
                self.handle_error("Failed to write export", e)
                return CommandResult(ok=False, message=str(e), error="OSError")

        self.event_log.append("info", "Export", f"Logs exported in {result.format.upper()} format")
        self.notifier.notify(f"Logs exported as {result.format.upper()}", "success")
        return CommandResult(ok=True, message=result.filename, data=result)

    def clear_all_logs(self, confirmed: bool = False) -> CommandResult:
        """Irreversible; the caller must pass confirmed=True"""
        if not confirmed:
            return CommandResult(ok=False, message="Clearing logs requires confirmation")
        self.event_log.clear()
        self.notifier.notify("All logs cleared", "warning")
        self.data_changed = True
        return CommandResult(ok=True, message="All logs cleared")

    # ------------------------------------------------------------------
    # Settings and devices

    def update_settings(self, changes: Mapping[str, Any]) -> CommandResult:
        previous_frequency = self.config.update_frequency_ms
        try:
            applied = self.config.apply(dict(changes))
        except InvalidRequestError as e:
            return self._fail("System", e)

        if "safe_mode" in applied:
            state = "enabled" if self.config.safe_mode else "disabled"
            self.event_log.append("info", "System", f"Safe Demo Mode {state}")
        if "auto_mitigation" in applied:
            state = "enabled" if self.config.auto_mitigation else "disabled"
            self.event_log.append("info", "System", f"Auto-mitigation {state}")
        if (self.config.update_frequency_ms != previous_frequency
                and self.scheduler.is_scheduled("monitor.metrics")):
            self.scheduler.call_every("monitor.metrics", self.config.update_frequency_ms, self._metrics_tick)

        self.notifier.notify("Settings saved", "success")
        self._state_changed()
        return CommandResult(ok=True, message="Settings saved", data=applied)

    def toggle_device(self, device_id: str) -> CommandResult:
        if device_id in self.lifecycle.current_target_ids():
            return self._fail("Device", InvalidRequestError(f"Device {device_id} is under attack"))
        try:
            device = self.registry.toggle(device_id)
        except PlatformError as e:
            return self._fail("Device", e)
        self.event_log.append("info", "Device", f"{device.name} is now {device.status}", "low")
        self._state_changed()
        return CommandResult(ok=True, message=f"{device.name} {device.status}", data=device.to_dict())

    def add_device(self, name: str, type: str, protocol: str, **extra: Any) -> CommandResult:
        try:
            device = self.registry.add(name, type, protocol, **extra)
        except PlatformError as e:
            return self._fail("Device", e)
        self.event_log.append("info", "Device", f"Device {device.name} added", "low")
        self._state_changed()
        return CommandResult(ok=True, message=f"Device {device.name} added", data=device.to_dict())

    def remove_device(self, device_id: str) -> CommandResult:
        try:
            device = self.registry.remove(device_id, self.lifecycle.referenced_device_ids())
        except PlatformError as e:
            return self._fail("Device", e)
        self.event_log.append("warning", "Device", f"Device {device.name} removed")
        self._state_changed()
        return CommandResult(ok=True, message=f"Device {device.name} removed")

    # ------------------------------------------------------------------
    # Replay

    def load_replay(self, attack_id: str) -> CommandResult:
        attack = next((a for a in self.lifecycle.history if a.id == attack_id), None)
        if attack is None:
            return self._fail("Replay", InvalidRequestError(f"No finished attack {attack_id}"))
        try:
            self.replay.load(attack)
        except PlatformError as e:
            return self._fail("Replay", e)
        return CommandResult(ok=True, message="Replay loaded", data=self.replay.view())

    def play_replay(self) -> CommandResult:
        try:
            self.replay.play()
        except PlatformError as e:
            return self._fail("Replay", e)
        return CommandResult(ok=True, message="Replay playing", data=self.replay.view())

    def pause_replay(self) -> CommandResult:
        paused = self.replay.pause()
        return CommandResult(ok=paused, message="Replay paused" if paused else "Replay not playing",
                             data=self.replay.view())

    def stop_replay(self) -> CommandResult:
        stopped = self.replay.stop()
        return CommandResult(ok=stopped, message="Replay stopped" if stopped else "Replay not playing",
                             data=self.replay.view())

    def step_replay(self, delta: int) -> CommandResult:
        try:
            self.replay.step(delta)
        except PlatformError as e:
            return self._fail("Replay", e)
        return CommandResult(ok=True, data=self.replay.view())

    def seek_replay(self, index: int) -> CommandResult:
        try:
            self.replay.seek(index)
        except PlatformError as e:
            return self._fail("Replay", e)
        return CommandResult(ok=True, data=self.replay.view())

    # ------------------------------------------------------------------
    # Read side

    def get_metrics_snapshot(self) -> MetricSnapshot:
        return dataclasses.replace(self.metrics.snapshot)

    def get_current_attack_view(self) -> Dict[str, Any]:
        view = self.lifecycle.view()
        view["impact"] = self.metrics.attack_impact.to_dict()
        view["anomaly"] = self.metrics.anomaly.to_dict()
        return view

    def get_attack_history(self) -> List[Dict[str, Any]]:
        return [attack.to_dict() for attack in self.lifecycle.history]

    def get_history_summary(self) -> Dict[str, float]:
        summary = AttackHistoryMetrics()
        summary.record_all(self.lifecycle.history)
        return summary.calculate_metrics()

    def get_state(self) -> Dict[str, Any]:
        """Full read-only snapshot handed to renderers"""
        charts = self.metrics.to_dict()["charts"]
        return {
            "version": VERSION,
            "system_status": "Safe Demo Mode" if self.config.safe_mode else "System Online",
            "config": self.config.to_dict(),
            "metrics": self.metrics.snapshot.to_dict(),
            "charts": charts,
            "attack": self.get_current_attack_view(),
            "devices": self.registry.to_list(),
            "total_traffic_rate": round(self.registry.total_traffic_rate(), 1),
            "activity": self.activity.to_list(),
            "notifications": [n.to_dict() for n in self.notifier.recent()],
            "replay": self.replay.view(),
            "refresh_countdown": self.refresh_countdown,
            "uptime_seconds": self.uptime_seconds(),
        }
