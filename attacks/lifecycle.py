"""
Attack Lifecycle State Machine

Drives the single in-flight attack through its stages:
- Initiation (immediate)
- Execution (2 s, starts the visualization loop)
- Detection (4-6 s, randomized)
- Mitigation (caller-supplied delay)

States: none -> active -> (paused <-> active) -> mitigated | stopped -> none

Every stage callback is compare-and-act: it re-reads the current attack
and its status before doing anything. Paused attacks keep their timers;
the callbacks that fire while paused do nothing and are not rescheduled.
"""
import copy
import logging
import random
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from attacks import AttackStage, AttackStatus, AttackType
from attacks.intensity import anomaly_curve, attack_intensity, impact_curve, normalize_parameters
from attacks.models import Attack, AttackTarget, TimelineEvent
from engine.errors import ConflictError, InvalidRequestError, NoTargetsError

logger = logging.getLogger(__name__)

TIMER_PREFIX = "attack."
EXECUTION_OFFSET_MS = 2000
DETECTION_MIN_MS = 4000
DETECTION_JITTER_MS = 2000
RESET_GRACE_MS = 3000
VISUALIZATION_TICK_MS = 500
ELAPSED_TICK_MS = 1000

STAGE_ORDER = [stage.value for stage in AttackStage]


def format_duration(seconds: float) -> str:
    """Seconds to mm:ss"""
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins:02d}:{secs:02d}"


def clock_label(epoch_ms: float) -> str:
    return datetime.fromtimestamp(epoch_ms / 1000.0, tz=timezone.utc).strftime("%H:%M:%S")


class AttackLifecycle:
    """Owns the current-attack slot and the attack history"""

    def __init__(self, scheduler, registry, event_log, metrics, config, notifier,
                 rng: Optional[random.Random] = None):
        self.scheduler = scheduler
        self.registry = registry
        self.event_log = event_log
        self.metrics = metrics
        self.config = config
        self.notifier = notifier
        self.rng = rng or random.Random()

        self._current: Optional[Attack] = None
        self._history: List[Attack] = []
        self._target_restore: Dict[str, str] = {}
        self._anomaly_alerted = False
        self.elapsed_label = "00:00"
        self.on_change: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # Read side

    @property
    def current(self) -> Optional[Attack]:
        """Copy of the current attack (None when the slot is empty)"""
        return copy.deepcopy(self._current)

    @property
    def history(self) -> Tuple[Attack, ...]:
        return tuple(copy.deepcopy(attack) for attack in self._history)

    @property
    def status(self) -> str:
        return self._current.status if self._current else "none"

    def has_current_session(self) -> bool:
        return self._current is not None and self._current.is_current

    def intensity(self) -> float:
        if self._current is None:
            return attack_intensity("", {})
        return attack_intensity(self._current.type, self._current.parameters)

    def active_profile(self) -> Optional[Tuple[float, float]]:
        """(elapsed_seconds, intensity) while an attack is active, else None"""
        attack = self._current
        if attack is None or attack.status != AttackStatus.ACTIVE.value:
            return None
        elapsed = attack.elapsed_seconds(self.scheduler.now_ms())
        return elapsed, attack_intensity(attack.type, attack.parameters)

    def current_target_ids(self) -> List[str]:
        return self._current.target_ids if self.has_current_session() else []

    def referenced_device_ids(self) -> List[str]:
        ids = []
        for attack in ([self._current] if self._current else []) + self._history:
            ids.extend(attack.target_ids)
        return ids

    def view(self) -> Dict[str, Any]:
        """Read-only snapshot for renderers"""
        attack = self._current
        if attack is None:
            return {"status": "ready", "attack": None, "stages": {}, "elapsed": "00:00"}

        reached = attack.stages_reached()
        stages = {}
        for stage in STAGE_ORDER:
            if stage not in reached:
                stages[stage] = "pending"
            elif stage == reached[-1] and not attack.is_terminal:
                stages[stage] = "active"
            else:
                stages[stage] = "completed"

        return {
            "status": attack.status,
            "attack": attack.to_dict(),
            "stages": stages,
            "elapsed": self.elapsed_label,
            "intensity": round(attack_intensity(attack.type, attack.parameters), 3),
        }

    # ------------------------------------------------------------------
    # Commands

    def launch(
        self,
        attack_type: str,
        targets: Optional[Sequence[str]] = None,
        delay_ms: float = 10000,
        parameters: Optional[Dict[str, Any]] = None
    ) -> Attack:
        """
        Launch a new attack and schedule its stages.

        Args:
            attack_type: One of AttackType values (fgsm, pgd, ddos, data_injection)
            targets: Device ids; the first online device is used when empty
            delay_ms: Time from launch until the mitigation stage
            parameters: Type-specific parameters merged over defaults

        Returns:
            Copy of the launched attack

        Raises:
            ConflictError: an attack is already active or paused
            InvalidRequestError: unknown type, bad delay or parameter
            NoTargetsError: no online target could be resolved
        """
        if self.has_current_session():
            raise ConflictError("Attack already in progress")

        try:
            kind = AttackType(attack_type)
        except ValueError:
            raise InvalidRequestError(f"Unknown attack type: {attack_type}") from None

        try:
            delay_ms = float(delay_ms)
        except (TypeError, ValueError):
            raise InvalidRequestError(f"Invalid delay: {delay_ms!r}") from None
        if delay_ms <= 0:
            raise InvalidRequestError(f"Delay must be positive, got {delay_ms}")

        params = normalize_parameters(kind, parameters)
        resolved = self._resolve_targets(targets)

        # a finished attack may still be on display; drop it now
        if self._current is not None:
            self.scheduler.cancel_prefix(TIMER_PREFIX)
            self._current = None

        now = self.scheduler.now_ms()
        attack = Attack(
            id=f"attack_{int(now)}_{len(self._history) + 1}",
            type=kind.value,
            start_time=now,
            status=AttackStatus.ACTIVE.value,
            targets=resolved,
            delay=delay_ms,
            parameters=params
        )
        self._current = attack
        self._anomaly_alerted = False
        self.elapsed_label = "00:00"
        self._target_restore = self.registry.set_status(attack.target_ids, "attacking")

        self._add_timeline(attack, AttackStage.INITIATION, "Attack initiated")
        self.scheduler.call_later(f"{TIMER_PREFIX}execution", EXECUTION_OFFSET_MS,
                                  lambda: self._stage_execution(attack.id))
        detection_offset = DETECTION_MIN_MS + self.rng.random() * DETECTION_JITTER_MS
        self.scheduler.call_later(f"{TIMER_PREFIX}detection", detection_offset,
                                  lambda: self._stage_detection(attack.id))
        self.scheduler.call_later(f"{TIMER_PREFIX}mitigation", delay_ms,
                                  lambda: self._stage_mitigation(attack.id))
        self.scheduler.call_every(f"{TIMER_PREFIX}elapsed", ELAPSED_TICK_MS,
                                  lambda: self._elapsed_tick(attack.id))

        label = kind.value.upper()
        logger.info(f"Launched {label} attack {attack.id} against {attack.target_ids}")
        self.event_log.append("warning", "Attack",
                              f"{label} attack launched against {len(resolved)} targets")
        mode = "in safe mode" if self.config.safe_mode else "in live mode"
        self.notifier.notify(f"{label} attack launched {mode}", "warning")
        self._changed()
        return copy.deepcopy(attack)

    def pause(self) -> bool:
        attack = self._current
        if attack is None or attack.status != AttackStatus.ACTIVE.value:
            return False
        attack.status = AttackStatus.PAUSED.value
        self.event_log.append("info", "Attack", "Attack simulation paused")
        self.notifier.notify("Attack simulation paused", "info")
        self._changed()
        return True

    def resume(self) -> bool:
        attack = self._current
        if attack is None or attack.status != AttackStatus.PAUSED.value:
            return False
        attack.status = AttackStatus.ACTIVE.value
        self.event_log.append("info", "Attack", "Attack simulation resumed")
        self.notifier.notify("Attack simulation resumed", "info")
        self._changed()
        return True

    def toggle_pause(self) -> Optional[str]:
        """Pause an active attack or resume a paused one; returns the new status"""
        if self.pause() or self.resume():
            return self._current.status
        return None

    def stop(self, reason: str = "Attack simulation stopped by user", grace: bool = True) -> bool:
        """
        Force any non-terminal attack to stopped.

        Args:
            reason: Log message
            grace: Keep the stopped attack on display for RESET_GRACE_MS;
                   when False the slot is cleared immediately

        Returns:
            True if an attack was stopped
        """
        attack = self._current
        if attack is None:
            return False

        if attack.is_terminal:
            if not grace:
                self.scheduler.cancel_prefix(TIMER_PREFIX)
                self._reset(attack.id)
            return False

        attack.status = AttackStatus.STOPPED.value
        attack.end_time = self.scheduler.now_ms()
        self._finish(attack, grace)

        self.event_log.append("info", "Attack", reason)
        self.notifier.notify("Attack simulation stopped", "info")
        self._changed()
        return True

    def mitigate(self) -> bool:
        """Transition the active attack to mitigated"""
        attack = self._current
        if attack is None or attack.status != AttackStatus.ACTIVE.value:
            return False

        now = self.scheduler.now_ms()
        attack.status = AttackStatus.MITIGATED.value
        attack.end_time = now
        attack.mitigation_time = now
        description = ("Attack mitigated (Safe Mode)" if self.config.safe_mode
                       else "Attack blocked and quarantined")
        self._add_timeline(attack, AttackStage.MITIGATION, description)
        self._finish(attack, grace=True)

        label = attack.type.upper()
        logger.info(f"Attack {attack.id} mitigated after {attack.elapsed_seconds(now):.1f}s")
        self.event_log.append("success", "Attack", f"{label} attack successfully mitigated")
        self.notifier.notify("Attack successfully mitigated", "success")
        self._changed()
        return True

    def load_history(self, attacks: Sequence[Attack]) -> int:
        """Restore persisted history; non-terminal records are dropped"""
        loaded = []
        for attack in attacks:
            if attack.is_terminal:
                loaded.append(attack)
            else:
                logger.warning(f"Skipping non-terminal attack {attack.id} in saved history")
        self._history = loaded
        return len(loaded)

    # ------------------------------------------------------------------
    # Stage callbacks

    def _guard(self, attack_id: str) -> Optional[Attack]:
        attack = self._current
        if attack is None or attack.id != attack_id:
            return None
        if attack.status != AttackStatus.ACTIVE.value:
            logger.debug(f"Stage skipped for {attack_id}: status {attack.status}")
            return None
        return attack

    def _stage_execution(self, attack_id: str) -> None:
        attack = self._guard(attack_id)
        if attack is None:
            return
        self._add_timeline(attack, AttackStage.EXECUTION, "Attack vectors deployed")
        self.event_log.append("info", "Attack",
                              f"Attack vectors deployed against {len(attack.targets)} targets")
        self.scheduler.call_every(f"{TIMER_PREFIX}visualization", VISUALIZATION_TICK_MS,
                                  lambda: self._visualization_tick(attack_id))
        self._changed()

    def _stage_detection(self, attack_id: str) -> None:
        attack = self._guard(attack_id)
        if attack is None:
            return
        attack.detection_time = self.scheduler.now_ms()
        self.metrics.record_threat()
        self._add_timeline(attack, AttackStage.DETECTION, "AI model detected anomalous behavior")
        latency = (attack.detection_time - attack.start_time) / 1000.0
        self.event_log.append("warning", "Detection",
                              f"{attack.type.upper()} attack detected after {latency:.1f}s",
                              "high")
        self._changed()

    def _stage_mitigation(self, attack_id: str) -> None:
        attack = self._guard(attack_id)
        if attack is None:
            return

        if not self.config.auto_mitigation:
            self.event_log.append("warning", "Mitigation",
                                  "Auto-mitigation disabled - applying scheduled mitigation",
                                  "medium")
        self.mitigate()

    def _visualization_tick(self, attack_id: str) -> None:
        attack = self._current
        if attack is None or attack.id != attack_id or attack.is_terminal:
            self.scheduler.cancel(f"{TIMER_PREFIX}visualization")
            return
        if attack.status != AttackStatus.ACTIVE.value:
            return

        now = self.scheduler.now_ms()
        elapsed = attack.elapsed_seconds(now)
        anomaly = anomaly_curve(elapsed)
        self.metrics.attack_tick(clock_label(now), impact_curve(elapsed), anomaly)

        threshold = self.config.detection_threshold
        if not self._anomaly_alerted and anomaly >= threshold:
            self._anomaly_alerted = True
            self.event_log.append("warning", "Detection",
                                  f"Anomaly score {anomaly:.2f} exceeded threshold {threshold:.2f}",
                                  "high")

    def _elapsed_tick(self, attack_id: str) -> None:
        attack = self._current
        if attack is None or attack.id != attack_id or attack.is_terminal:
            self.scheduler.cancel(f"{TIMER_PREFIX}elapsed")
            return
        if attack.status == AttackStatus.ACTIVE.value:
            self.elapsed_label = format_duration(attack.elapsed_seconds(self.scheduler.now_ms()))

    # ------------------------------------------------------------------
    # Helpers

    def _resolve_targets(self, targets: Optional[Sequence[str]]) -> List[AttackTarget]:
        if targets:
            resolved = []
            for device_id in dict.fromkeys(targets):
                if device_id not in self.registry:
                    logger.warning(f"Ignoring unknown target {device_id}")
                    continue
                device = self.registry.get(device_id)
                if device.status != "online":
                    logger.warning(f"Ignoring target {device_id} with status {device.status}")
                    continue
                resolved.append(AttackTarget(id=device.id, name=device.name))
            if not resolved:
                raise NoTargetsError("None of the selected targets is online")
            return resolved

        device = self.registry.first_online()
        if device is None:
            raise NoTargetsError("No online devices available for attack")
        return [AttackTarget(id=device.id, name=device.name)]

    def _add_timeline(self, attack: Attack, stage: AttackStage, description: str) -> None:
        attack.timeline.append(TimelineEvent(
            time=self.scheduler.now_ms(),
            stage=stage.value,
            description=description
        ))

    def _finish(self, attack: Attack, grace: bool) -> None:
        self.scheduler.cancel_prefix(TIMER_PREFIX)

        for device_id, status in self._target_restore.items():
            if device_id in self.registry and self.registry.get(device_id).status in ("attacking", "compromised"):
                self.registry.restore_status({device_id: status})
        self._target_restore = {}

        self._history.append(copy.deepcopy(attack))

        if grace:
            self.scheduler.call_later(f"{TIMER_PREFIX}reset", RESET_GRACE_MS,
                                      lambda: self._reset(attack.id))
        else:
            self._reset(attack.id)

    def _reset(self, attack_id: str) -> None:
        if self._current is None or self._current.id != attack_id:
            return
        self._current = None
        self.elapsed_label = "00:00"
        self._changed()

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()
