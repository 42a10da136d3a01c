"""
Attack History Metrics

Summarizes finished attacks: outcome counts, detection latency and
time-to-mitigate statistics.
"""
import numpy as np
from typing import Dict, Iterable
import logging

from attacks import AttackStatus

logger = logging.getLogger(__name__)


class AttackHistoryMetrics:
    """Calculate and track outcome metrics over attack history"""

    def __init__(self):
        self.mitigated = 0
        self.stopped = 0
        self.detected = 0
        self.detection_latencies = []
        self.mitigation_times = []

    def record_attack(self, attack):
        """
        Record a finished attack

        Args:
            attack: Attack with a terminal status
        """
        if attack.status == AttackStatus.MITIGATED.value:
            self.mitigated += 1
        elif attack.status == AttackStatus.STOPPED.value:
            self.stopped += 1
        else:
            logger.warning(f"Ignoring attack {attack.id} with status {attack.status}")
            return

        if attack.detection_time is not None:
            self.detected += 1
            self.detection_latencies.append((attack.detection_time - attack.start_time) / 1000.0)

        if attack.mitigation_time is not None:
            self.mitigation_times.append((attack.mitigation_time - attack.start_time) / 1000.0)

    def record_all(self, attacks: Iterable):
        for attack in attacks:
            self.record_attack(attack)

    def calculate_metrics(self) -> Dict[str, float]:
        """
        Calculate all history metrics

        Returns:
            dict: History metrics (empty when nothing was recorded)
        """
        total = self.mitigated + self.stopped

        if total == 0:
            return {}

        return {
            'total_attacks': total,
            'mitigated': self.mitigated,
            'stopped': self.stopped,
            'detected': self.detected,
            'mitigation_rate': self.mitigated / total,
            'detection_rate': self.detected / total,
            'avg_detection_latency': float(np.mean(self.detection_latencies)) if self.detection_latencies else 0.0,
            'std_detection_latency': float(np.std(self.detection_latencies)) if self.detection_latencies else 0.0,
            'avg_time_to_mitigate': float(np.mean(self.mitigation_times)) if self.mitigation_times else 0.0,
            'std_time_to_mitigate': float(np.std(self.mitigation_times)) if self.mitigation_times else 0.0,
        }

    def reset(self):
        """Reset all counters"""
        self.mitigated = 0
        self.stopped = 0
        self.detected = 0
        self.detection_latencies = []
        self.mitigation_times = []

    def __str__(self) -> str:
        """Pretty print metrics"""
        metrics = self.calculate_metrics()
        if not metrics:
            return "No attacks recorded"

        return f"""
Attack History Metrics:
  Attacks:          {metrics['total_attacks']}
  Mitigated:        {metrics['mitigated']}
  Stopped:          {metrics['stopped']}
  Mitigation Rate:  {metrics['mitigation_rate']:.2%}
  Detection Rate:   {metrics['detection_rate']:.2%}

  Avg Detection Latency: {metrics['avg_detection_latency']:.3f}s ± {metrics['std_detection_latency']:.3f}s
  Avg Time to Mitigate:  {metrics['avg_time_to_mitigate']:.3f}s ± {metrics['std_time_to_mitigate']:.3f}s
"""
