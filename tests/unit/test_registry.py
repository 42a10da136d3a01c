"""Unit tests for the device registry"""
import pytest
from devices.registry import Device, DeviceRegistry, default_devices
from engine.errors import DeviceInUseError, InvalidRequestError, UnknownDeviceError


def test_default_fleet():
    """Test the default fleet is six online devices"""
    registry = DeviceRegistry(default_devices())

    assert len(registry) == 6
    assert registry.online_count() == 6
    assert registry.first_online().id == "device_001"
    assert registry.total_traffic_rate() == pytest.approx(146.6)


def test_unknown_device():
    """Test looking up a missing device raises"""
    registry = DeviceRegistry(default_devices())

    with pytest.raises(UnknownDeviceError):
        registry.get("device_999")
    assert "device_999" not in registry


def test_set_and_restore_status():
    """Test status changes return previous values for restoration"""
    registry = DeviceRegistry(default_devices())
    registry.toggle("device_002")

    previous = registry.set_status(["device_001", "device_002", "missing"], "attacking")

    assert previous == {"device_001": "online", "device_002": "offline"}
    assert registry.get("device_001").status == "attacking"

    registry.restore_status(previous)
    assert registry.get("device_001").status == "online"
    assert registry.get("device_002").status == "offline"


def test_set_status_rejects_unknown_status():
    """Test invalid statuses raise"""
    registry = DeviceRegistry(default_devices())

    with pytest.raises(InvalidRequestError):
        registry.set_status(["device_001"], "exploded")


def test_toggle_updates_online_view():
    """Test toggling changes online membership"""
    registry = DeviceRegistry(default_devices())

    registry.toggle("device_001")
    assert registry.first_online().id == "device_002"
    assert registry.online_count() == 5

    registry.toggle("device_001")
    assert registry.get("device_001").status == "online"


def test_add_assigns_next_id():
    """Test added devices get sequential ids"""
    registry = DeviceRegistry(default_devices())

    device = registry.add("Smart Plug", "plug", "WiFi", traffic_rate=0.2)

    assert device.id == "device_007"
    assert device.status == "online"
    assert device.traffic_rate == 0.2

    with pytest.raises(InvalidRequestError):
        registry.add("", "plug", "WiFi")


def test_remove_referenced_device_rejected():
    """Test devices referenced by attacks cannot be removed"""
    registry = DeviceRegistry(default_devices())

    with pytest.raises(DeviceInUseError):
        registry.remove("device_001", ["device_001"])

    removed = registry.remove("device_006", ["device_001"])
    assert removed.name == "Lighting Controller"
    assert "device_006" not in registry


def test_from_dict_sanitizes_status():
    """Test unknown statuses load as offline and unknown keys are dropped"""
    device = Device.from_dict({"id": "d1", "name": "X", "type": "t", "protocol": "p",
                               "status": "bogus", "vendor": "acme"})

    assert device.status == "offline"
    assert not hasattr(device, "vendor")
