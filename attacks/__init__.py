"""
IoT Attack Range - Attack Simulation Framework
"""
from enum import Enum


class AttackType(Enum):
    """Types of attacks that can be simulated"""
    FGSM = "fgsm"
    PGD = "pgd"
    DDOS = "ddos"
    DATA_INJECTION = "data_injection"


class AttackStatus(Enum):
    """Lifecycle status of an attack"""
    ACTIVE = "active"
    PAUSED = "paused"
    MITIGATED = "mitigated"
    STOPPED = "stopped"


class AttackStage(Enum):
    """Named points of an attack's lifecycle, in firing order"""
    INITIATION = "initiation"
    EXECUTION = "execution"
    DETECTION = "detection"
    MITIGATION = "mitigation"


CURRENT_STATUSES = (AttackStatus.ACTIVE.value, AttackStatus.PAUSED.value)
TERMINAL_STATUSES = (AttackStatus.MITIGATED.value, AttackStatus.STOPPED.value)
