"""
Metrics Synthesizer

Generates plausible platform telemetry:
- Baseline samples with bounded jitter around fixed set-points
- Attack-biased samples driven by elapsed attack time and intensity
- Bounded rolling series for the dashboard charts
"""
import math
import random
import logging
from collections import deque
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# Set-points restored by an emergency stop
BASELINE_CPU = 37.8
BASELINE_MEMORY = 72.4
BASELINE_NETWORK = 1342.7
BASELINE_ACCURACY = 96.8

# Safe ranges of attack-biased samples
CPU_CEILING = 90.0
MEMORY_CEILING = 95.0
NETWORK_FLOOR = 500.0
ACCURACY_FLOOR = 60.0

INITIAL_THREAT_COUNT = 15
CHART_POINTS = 24
ATTACK_CHART_POINTS = 20


@dataclass
class MetricSnapshot:
    """Latest synthesized platform metrics"""
    cpu: float = BASELINE_CPU
    memory: float = BASELINE_MEMORY
    network_throughput: float = BASELINE_NETWORK
    accuracy: float = BASELINE_ACCURACY
    threat_count: int = INITIAL_THREAT_COUNT
    devices_online_fraction: float = 1.0
    devices_online: int = 0
    devices_total: int = 0
    uptime_seconds: float = 0.0

    @property
    def devices_label(self) -> str:
        return f"{self.devices_online}/{self.devices_total}"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["devices"] = self.devices_label
        return data


def baseline_metrics(rng: random.Random) -> Dict[str, float]:
    """
    Normal-operation sample.

    Args:
        rng: Random source (inject a seeded instance for determinism)

    Returns:
        dict with cpu, memory, network_throughput, accuracy
    """
    return {
        "cpu": 35.0 + rng.random() * 10.0,
        "memory": 70.0 + rng.random() * 10.0,
        "network_throughput": 1200.0 + rng.random() * 400.0,
        "accuracy": 95.0 + rng.random() * 3.0,
    }


def attack_metrics(elapsed_seconds: float, intensity: float, rng: random.Random) -> Dict[str, float]:
    """
    Attack-influenced sample.

    CPU rises and oscillates, memory rises more slowly, network throughput
    drops with intensity, and accuracy degrades linearly with elapsed time
    and intensity. Only network throughput draws from rng.

    Args:
        elapsed_seconds: Time since the attack started
        intensity: Normalized attack intensity in [0, 1]
        rng: Random source

    Returns:
        dict with cpu, memory, network_throughput, accuracy
    """
    t = max(0.0, elapsed_seconds)
    i = float(np.clip(intensity, 0.0, 1.0))

    cpu = min(CPU_CEILING, 40.0 + i * 40.0 + math.sin(t / 5.0) * 10.0)
    memory = min(MEMORY_CEILING, 75.0 + i * 15.0 + math.cos(t / 3.0) * 5.0)
    network = max(NETWORK_FLOOR, 1300.0 - i * 800.0 + rng.random() * 200.0)
    accuracy = max(ACCURACY_FLOOR, 96.0 - i * 25.0 - t * 0.5)

    return {
        "cpu": cpu,
        "memory": memory,
        "network_throughput": network,
        "accuracy": accuracy,
    }


class ChartSeries:
    """Fixed-length rolling series of (label, value) points"""

    def __init__(self, maxlen: int):
        self.labels = deque(maxlen=maxlen)
        self.values = deque(maxlen=maxlen)

    def __len__(self) -> int:
        return len(self.values)

    def push(self, label: str, value: float) -> None:
        self.labels.append(label)
        self.values.append(value)

    def clear(self) -> None:
        self.labels.clear()
        self.values.clear()

    def to_dict(self) -> Dict[str, list]:
        return {"labels": list(self.labels), "values": list(self.values)}

    def load(self, data: Dict[str, list]) -> None:
        self.clear()
        for label, value in zip(data.get("labels", []), data.get("values", [])):
            self.push(label, value)


class MetricsMonitor:
    """Holds the latest snapshot and the chart series"""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.snapshot = MetricSnapshot()
        self.threats = ChartSeries(CHART_POINTS)
        self.accuracy = ChartSeries(CHART_POINTS)
        self.attack_impact = ChartSeries(ATTACK_CHART_POINTS)
        self.anomaly = ChartSeries(ATTACK_CHART_POINTS)

    def sample(
        self,
        attack_profile: Optional[Tuple[float, float]],
        devices_online: int,
        devices_total: int,
        uptime_seconds: float
    ) -> MetricSnapshot:
        """
        Recompute the snapshot for one metrics tick.

        Args:
            attack_profile: (elapsed_seconds, intensity) of the active attack, or None
            devices_online: Number of online devices
            devices_total: Fleet size
            uptime_seconds: Platform uptime
        """
        if attack_profile is None:
            values = baseline_metrics(self.rng)
        else:
            elapsed, intensity = attack_profile
            values = attack_metrics(elapsed, intensity, self.rng)

        self.snapshot.cpu = values["cpu"]
        self.snapshot.memory = values["memory"]
        self.snapshot.network_throughput = values["network_throughput"]
        self.snapshot.accuracy = values["accuracy"]
        self._set_devices(devices_online, devices_total)
        self.snapshot.uptime_seconds = uptime_seconds
        return self.snapshot

    def _set_devices(self, online: int, total: int) -> None:
        self.snapshot.devices_online = online
        self.snapshot.devices_total = total
        self.snapshot.devices_online_fraction = online / total if total else 0.0

    def record_threat(self) -> int:
        self.snapshot.threat_count += 1
        return self.snapshot.threat_count

    def chart_tick(self, label: str) -> None:
        self.threats.push(label, self.snapshot.threat_count)
        self.accuracy.push(label, round(self.snapshot.accuracy, 2))

    def attack_tick(self, label: str, impact: float, anomaly: float) -> None:
        self.attack_impact.push(label, impact)
        self.anomaly.push(label, anomaly)

    def reset_to_baseline(self) -> None:
        """Restore the fixed set-points (threat counter and charts are kept)"""
        self.snapshot.cpu = BASELINE_CPU
        self.snapshot.memory = BASELINE_MEMORY
        self.snapshot.network_throughput = BASELINE_NETWORK
        self.snapshot.accuracy = BASELINE_ACCURACY
        logger.info("Metrics reset to baseline")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metrics": self.snapshot.to_dict(),
            "charts": {
                "threats": self.threats.to_dict(),
                "accuracy": self.accuracy.to_dict(),
            }
        }

    def load(self, data: Dict[str, Any]) -> None:
        metrics = data.get("metrics") or {}
        for key in ("cpu", "memory", "network_throughput", "accuracy"):
            if isinstance(metrics.get(key), (int, float)):
                setattr(self.snapshot, key, float(metrics[key]))
        if isinstance(metrics.get("threat_count"), int):
            self.snapshot.threat_count = metrics["threat_count"]

        charts = data.get("charts") or {}
        self.threats.load(charts.get("threats") or {})
        self.accuracy.load(charts.get("accuracy") or {})
