"""MQTT publishing: topic layout, payload formatting and Home Assistant discovery.

Topics::

    homeassistant/sensor/co2mon/<channel>          measurement value
    homeassistant/sensor/co2mon/<channel>/error    error text, empty when cleared
    homeassistant/sensor/co2monC/config            CO2 discovery document
    homeassistant/sensor/co2monT/config            temperature discovery document

Every message is published with QoS 2 and the retain flag set.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import paho.mqtt.client as mqtt

from .models.channel import Channel
from .models.error_state import NotificationEvent
from .protocol.measurements import Measurement, MeasurementKind

logger = logging.getLogger(__name__)

TOPIC_BASE = "homeassistant/sensor/co2mon"
QOS = 2
RETAIN = True
KEEPALIVE_S = 60

DEVICE_INFO = {
    "identifiers": ["mt8057", "co2mon"],
    "name": "DaDget MT8057",
    "model": "MT8057",
    "manufacturer": "DaDget",
    "sw_version": "1.x",
}

# (config topic, object id, device class, name, unit) per channel
_DISCOVERY: dict[Channel, tuple[str, str, str, str, str]] = {
    Channel.CO2: (
        "homeassistant/sensor/co2monC/config",
        "co2mon_co2",
        "carbon_dioxide",
        "DaDget CO2",
        "ppm",
    ),
    Channel.TEMP: (
        "homeassistant/sensor/co2monT/config",
        "co2mon_temp",
        "temperature",
        "DaDget Temp",
        "°C",
    ),
}


class PublishSink(Protocol):
    """The subset of an MQTT client the bridge needs."""

    def publish(self, topic: str, payload: bytes, qos: int = 0, retain: bool = False) -> Any:
        ...


def measurement_topic(channel: Channel) -> str:
    return f"{TOPIC_BASE}/{channel.value}"


def error_topic(channel: Channel) -> str:
    return f"{TOPIC_BASE}/{channel.value}/error"


def format_measurement(measurement: Measurement) -> str:
    """Render a measurement as its MQTT payload text."""
    if measurement.kind is MeasurementKind.TEMPERATURE:
        return f"{measurement.value:2.1f}"
    if measurement.kind is MeasurementKind.CARBON_DIOXIDE:
        return str(int(measurement.value))
    return f"{measurement.value:.1f}"


def discovery_document(channel: Channel) -> dict[str, Any]:
    """Build the Home Assistant discovery document for a channel."""
    _, object_id, device_class, name, unit = _DISCOVERY[channel]
    return {
        "device": dict(DEVICE_INFO),
        "obj_id": object_id,
        "unique_id": f"{object_id}_sensor",
        "~": TOPIC_BASE,
        "dev_cla": device_class,
        "name": name,
        "unit_of_meas": unit,
        "stat_t": f"~/{channel.value}",
        "err_t": f"~/{channel.value}/error",
    }


def discovery_messages() -> list[tuple[str, bytes]]:
    """Return (topic, payload) for every discovery document, CO2 first."""
    return [
        (
            _DISCOVERY[channel][0],
            json.dumps(discovery_document(channel), ensure_ascii=False).encode("utf-8"),
        )
        for channel in (Channel.CO2, Channel.TEMP)
    ]


class TelemetryPublisher:
    """Formats bridge output and hands it to a ``PublishSink``."""

    def __init__(self, sink: PublishSink) -> None:
        self._sink = sink

    def publish_measurement(self, channel: Channel, measurement: Measurement) -> None:
        payload = format_measurement(measurement)
        logger.debug("Publishing %s = %s", channel.value, payload)
        self._sink.publish(measurement_topic(channel), payload.encode("ascii"), QOS, RETAIN)

    def publish_event(self, event: NotificationEvent) -> None:
        """Publish an error announcement, or an empty payload for a recovery."""
        payload = b"" if event.error is None else event.error.encode("utf-8")
        if event.cleared:
            logger.info("Error cleared on %s", event.channel.value)
        else:
            logger.info("Error on %s: %s", event.channel.value, event.error)
        self._sink.publish(error_topic(event.channel), payload, QOS, RETAIN)

    def publish_discovery(self) -> None:
        for topic, payload in discovery_messages():
            self._sink.publish(topic, payload, QOS, RETAIN)
        logger.info("Published discovery documents")


class MqttPublisher:
    """Thin wrapper around a paho-mqtt client with its own network thread.

    Usage::

        pub = MqttPublisher()
        pub.connect("127.0.0.1", 1883)
        pub.loop_start()
        pub.publish(topic, payload, 2, True)
        pub.disconnect()
    """

    def __init__(self, client_id: str = "") -> None:
        self._client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
        )
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    def _on_connect(self, _client, _userdata, _flags, reason_code, _props=None) -> None:
        self._connected = True
        logger.info("MQTT connected (reason_code=%s)", reason_code)

    def _on_disconnect(self, _client, _userdata, _flags, reason_code, _props=None) -> None:
        self._connected = False
        if reason_code == 0:
            logger.info("MQTT disconnected cleanly")
        else:
            logger.warning("MQTT disconnected (reason_code=%s)", reason_code)

    def connect(self, host: str, port: int) -> None:
        """Connect to the broker.

        Raises:
            ConnectionError: If the broker cannot be reached.
        """
        logger.info("Connecting to MQTT broker %s:%s", host, port)
        try:
            self._client.connect(host, port, keepalive=KEEPALIVE_S)
        except OSError as e:
            raise ConnectionError(f"Cannot connect to MQTT broker {host}:{port}: {e}") from e

    def loop_start(self) -> None:
        self._client.loop_start()

    def publish(self, topic: str, payload: bytes, qos: int = 0, retain: bool = False) -> None:
        """Queue a message; never waits for the broker's acknowledgement."""
        info = self._client.publish(topic, payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.debug("Publish to %s not sent (rc=%s)", topic, info.rc)

    def disconnect(self) -> None:
        self._client.disconnect()
        self._client.loop_stop()
