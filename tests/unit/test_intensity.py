"""Unit tests for attack intensity and parameters"""
import pytest
from attacks import AttackType
from attacks.intensity import (
    ANOMALY_CEILING, DEFAULT_INTENSITY, anomaly_curve, attack_intensity,
    impact_curve, normalize_parameters,
)
from engine.errors import InvalidRequestError


def test_defaults_merged():
    """Test type defaults fill missing parameters"""
    params = normalize_parameters(AttackType.PGD, {"epsilon": 0.1})

    assert params == {"epsilon": 0.1, "iterations": 10}


def test_out_of_range_parameter_rejected():
    """Test parameters outside their range raise"""
    with pytest.raises(InvalidRequestError):
        normalize_parameters(AttackType.FGSM, {"epsilon": 0.9})
    with pytest.raises(InvalidRequestError):
        normalize_parameters(AttackType.DDOS, {"bot_count": 5})


def test_non_numeric_parameter_rejected():
    """Test non-numeric values raise"""
    with pytest.raises(InvalidRequestError):
        normalize_parameters(AttackType.DDOS, {"bot_count": "many"})


def test_ddos_intensity_scales_with_bots():
    """Test flood intensity saturates at capacity"""
    assert attack_intensity("ddos", {"bot_count": 100}) == pytest.approx(0.2)
    assert attack_intensity("ddos", {"bot_count": 1000}) == 1.0


def test_perturbation_intensity_uses_epsilon():
    """Test FGSM/PGD intensity equals epsilon"""
    assert attack_intensity("fgsm", {"epsilon": 0.3}) == pytest.approx(0.3)
    assert attack_intensity("pgd", {}) == pytest.approx(0.3)


def test_other_types_use_default_intensity():
    """Test data injection falls back to the default"""
    assert attack_intensity("data_injection", {"records_per_second": 100}) == DEFAULT_INTENSITY
    assert attack_intensity("", {}) == DEFAULT_INTENSITY


def test_curves_bounded():
    """Test visualization curves stay in range"""
    for step in range(200):
        t = step * 0.5
        assert 0.0 <= impact_curve(t) <= 1.0
        assert 0.0 <= anomaly_curve(t) <= ANOMALY_CEILING

    assert anomaly_curve(5.0) == pytest.approx(0.5)
    assert anomaly_curve(60.0) == ANOMALY_CEILING
