"""
MQTT Event Sink

Publishes platform events to an MQTT broker:
- Log entries on iot/events/<source>
- Notifications on iot/notifications
- Metric snapshots on iot/telemetry/platform

Delivery is fire-and-forget; publish failures are logged and dropped.
"""
import json
import logging
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)


class MqttEventSink:
    """Forwards platform events to MQTT topics"""

    def __init__(
        self,
        broker_host: str = "localhost",
        broker_port: int = 1883,
        client_id: str = "attack_platform",
        topic_prefix: str = "iot",
        client: Optional[mqtt.Client] = None
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topic_prefix = topic_prefix
        self.connected = False

        self.client = client or mqtt.Client(
            client_id=client_id,
            protocol=mqtt.MQTTv5,
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2
        )
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        """Callback when connected to MQTT broker"""
        self.connected = True
        logger.info(f"Event sink connected to MQTT broker: {reason_code}")

    def _on_disconnect(self, client, userdata, flags, reason_code, properties):
        """Callback when disconnected from MQTT broker"""
        self.connected = False
        logger.warning(f"Event sink disconnected: {reason_code}")

    def connect(self) -> bool:
        """Connect to MQTT broker; the platform keeps running if this fails"""
        try:
            self.client.connect(self.broker_host, self.broker_port, 60)
            self.client.loop_start()
            logger.info(f"Event sink MQTT loop started ({self.broker_host}:{self.broker_port})")
            return True
        except Exception as e:
            logger.error(f"Event sink connection failed: {e}")
            return False

    def disconnect(self) -> None:
        """Disconnect from MQTT broker"""
        self.client.loop_stop()
        self.client.disconnect()
        logger.info("Event sink disconnected")

    def attach(self, platform) -> None:
        """Subscribe the sink to a platform's log, notifications and metrics"""
        platform.event_log.add_listener(self.publish_log)
        platform.notifier.add_sink(self.publish_notification)
        platform.add_metrics_listener(self.publish_metrics)

    def _publish(self, topic: str, data: Dict[str, Any], qos: int = 0) -> None:
        try:
            self.client.publish(topic, json.dumps(data), qos=qos)
            logger.debug(f"Published to {topic}")
        except Exception as e:
            logger.error(f"Publish to {topic} failed: {e}")

    def publish_log(self, entry) -> None:
        source = entry.source.lower().replace(" ", "_")
        self._publish(f"{self.topic_prefix}/events/{source}", entry.to_dict(), qos=1)

    def publish_notification(self, notification) -> None:
        self._publish(f"{self.topic_prefix}/notifications", notification.to_dict(), qos=1)

    def publish_metrics(self, snapshot: Dict[str, Any]) -> None:
        self._publish(f"{self.topic_prefix}/telemetry/platform", snapshot)
