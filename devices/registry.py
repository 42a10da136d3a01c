"""
Device Registry

Holds the fleet of simulated IoT devices that forms the attack-target
universe, with their online/offline/attack status.
"""
import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, List, Optional

from engine.errors import DeviceInUseError, InvalidRequestError, UnknownDeviceError

logger = logging.getLogger(__name__)

DEVICE_STATUSES = ("online", "offline", "attacking", "compromised", "warning")


@dataclass
class Device:
    """A simulated IoT device"""
    id: str
    name: str
    type: str
    protocol: str
    status: str = "online"
    traffic_rate: float = 0.0
    location: Dict[str, float] = field(default_factory=lambda: {"x": 0, "y": 0, "z": 0})
    ip: str = ""
    security_level: str = "medium"
    firmware: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Device':
        known = {key: data[key] for key in cls.__dataclass_fields__ if key in data}
        device = cls(**known)
        if device.status not in DEVICE_STATUSES:
            device.status = "offline"
        return device


class DeviceRegistry:
    """Ordered collection of devices keyed by id"""

    def __init__(self, devices: Optional[Iterable[Device]] = None):
        self._devices: Dict[str, Device] = {}
        for device in devices or []:
            self._devices[device.id] = device

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, device_id: str) -> bool:
        return device_id in self._devices

    def get(self, device_id: str) -> Device:
        try:
            return self._devices[device_id]
        except KeyError:
            raise UnknownDeviceError(f"Unknown device: {device_id}") from None

    def all(self) -> List[Device]:
        return list(self._devices.values())

    def online(self) -> List[Device]:
        return [d for d in self._devices.values() if d.status == "online"]

    def first_online(self) -> Optional[Device]:
        return next(iter(self.online()), None)

    def online_count(self) -> int:
        return len(self.online())

    def total_traffic_rate(self) -> float:
        return sum(d.traffic_rate or 0.0 for d in self._devices.values())

    def set_status(self, device_ids: Iterable[str], status: str) -> Dict[str, str]:
        """
        Set the status of several devices.

        Returns:
            dict: previous status per device id (unknown ids are skipped)
        """
        if status not in DEVICE_STATUSES:
            raise InvalidRequestError(f"Unknown device status: {status}")

        previous = {}
        for device_id in device_ids:
            device = self._devices.get(device_id)
            if device is None:
                continue
            previous[device_id] = device.status
            device.status = status
        return previous

    def restore_status(self, previous: Dict[str, str]) -> None:
        for device_id, status in previous.items():
            device = self._devices.get(device_id)
            if device is not None:
                device.status = status

    def toggle(self, device_id: str) -> Device:
        """Switch a device between online and offline"""
        device = self.get(device_id)
        device.status = "offline" if device.status != "offline" else "online"
        logger.info(f"[{device_id}] Status set to {device.status}")
        return device

    def add(self, name: str, type: str, protocol: str, **extra: Any) -> Device:
        if not name or not type or not protocol:
            raise InvalidRequestError("Device name, type and protocol are required")

        number = len(self._devices) + 1
        device_id = f"device_{number:03d}"
        while device_id in self._devices:
            number += 1
            device_id = f"device_{number:03d}"

        device = Device.from_dict({**extra, "id": device_id, "name": name,
                                   "type": type, "protocol": protocol})
        self._devices[device_id] = device
        logger.info(f"[{device_id}] Added device {name}")
        return device

    def remove(self, device_id: str, referenced_ids: Iterable[str] = ()) -> Device:
        """
        Remove a device unless an attack references it.

        Args:
            device_id: Device to remove
            referenced_ids: Ids targeted by the current or any historical attack
        """
        device = self.get(device_id)
        if device_id in set(referenced_ids):
            raise DeviceInUseError(f"Device {device.name} is referenced by an attack")
        del self._devices[device_id]
        logger.info(f"[{device_id}] Removed device {device.name}")
        return device

    def to_list(self) -> List[Dict[str, Any]]:
        return [device.to_dict() for device in self._devices.values()]


def default_devices() -> List[Device]:
    """Fleet used on a fresh installation"""
    return [
        Device(id="device_001", name="Security Camera Alpha", type="security_camera",
               protocol="HTTP", traffic_rate=28.7, location={"x": 45, "y": 25, "z": 12},
               ip="192.168.1.101", security_level="high", firmware="v3.2.1"),
        Device(id="device_002", name="Temperature Sensor Hub", type="temperature_sensor",
               protocol="MQTT", traffic_rate=3.2, location={"x": -25, "y": 40, "z": 8},
               ip="192.168.1.102", security_level="medium", firmware="v2.1.5"),
        Device(id="device_003", name="Smart Door Lock Main", type="smart_lock",
               protocol="Zigbee", traffic_rate=1.1, location={"x": 0, "y": -30, "z": 10},
               ip="192.168.1.103", security_level="high", firmware="v4.0.2"),
        Device(id="device_004", name="Industrial Gateway", type="gateway",
               protocol="MQTT", traffic_rate=112.4, location={"x": 60, "y": -10, "z": 4},
               ip="192.168.1.104", security_level="high", firmware="v1.9.0"),
        Device(id="device_005", name="Smart Thermostat", type="thermostat",
               protocol="WiFi", traffic_rate=0.8, location={"x": -40, "y": -20, "z": 6},
               ip="192.168.1.105", security_level="low", firmware="v5.0.3"),
        Device(id="device_006", name="Lighting Controller", type="light_controller",
               protocol="Zigbee", traffic_rate=0.4, location={"x": 10, "y": 55, "z": 9},
               ip="192.168.1.106", security_level="medium", firmware="v2.4.7"),
    ]
