"""
Attack intensity

Maps an attack type and its parameters to a normalized [0, 1] intensity,
and defines the visualization curves biased by elapsed attack time.
"""
import math
from typing import Any, Dict, Optional

import numpy as np

from attacks import AttackType
from engine.errors import InvalidRequestError

# Bot count that saturates a flooding attack
FLOOD_CAPACITY = 500.0
DEFAULT_INTENSITY = 0.5
ANOMALY_CEILING = 0.9

DEFAULT_PARAMETERS: Dict[AttackType, Dict[str, float]] = {
    AttackType.FGSM: {"epsilon": 0.3},
    AttackType.PGD: {"epsilon": 0.3, "iterations": 10},
    AttackType.DDOS: {"bot_count": 100},
    AttackType.DATA_INJECTION: {"records_per_second": 20},
}

PARAMETER_RANGES: Dict[str, tuple] = {
    "epsilon": (0.01, 0.5),
    "iterations": (1, 100),
    "bot_count": (10, 1000),
    "records_per_second": (1, 500),
}


def normalize_parameters(attack_type: AttackType, parameters: Optional[Dict[str, Any]]) -> Dict[str, float]:
    """
    Merge caller parameters over the type defaults and validate ranges.

    Raises:
        InvalidRequestError: a value is not numeric or is out of range
    """
    merged: Dict[str, float] = dict(DEFAULT_PARAMETERS[attack_type])

    for key, value in (parameters or {}).items():
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise InvalidRequestError(f"Parameter {key} must be numeric, got {value!r}") from None

        bounds = PARAMETER_RANGES.get(key)
        if bounds and not bounds[0] <= number <= bounds[1]:
            raise InvalidRequestError(
                f"Parameter {key}={number} outside range [{bounds[0]}, {bounds[1]}]"
            )
        merged[key] = number

    return merged


def attack_intensity(attack_type: str, parameters: Dict[str, Any]) -> float:
    """
    Normalized intensity of an attack.

    Flooding attacks scale with bot count against FLOOD_CAPACITY;
    perturbation attacks use their epsilon directly.
    """
    if attack_type == AttackType.DDOS.value:
        bots = float(parameters.get("bot_count", DEFAULT_PARAMETERS[AttackType.DDOS]["bot_count"]))
        return min(1.0, bots / FLOOD_CAPACITY)

    if attack_type in (AttackType.FGSM.value, AttackType.PGD.value):
        epsilon = float(parameters.get("epsilon", DEFAULT_PARAMETERS[AttackType.FGSM]["epsilon"]))
        return float(np.clip(epsilon, 0.0, 1.0))

    return DEFAULT_INTENSITY


def impact_curve(elapsed_seconds: float) -> float:
    """Oscillating attack impact in [0, 1]"""
    return 0.5 + 0.5 * math.sin(elapsed_seconds / 2.0)


def anomaly_curve(elapsed_seconds: float) -> float:
    """Anomaly score rising 0.1 per second up to ANOMALY_CEILING"""
    return min(ANOMALY_CEILING, elapsed_seconds * 0.1)
