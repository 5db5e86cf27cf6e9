"""Tests for MQTT topics, payloads and discovery documents."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from co2mon_mqtt.models.channel import Channel
from co2mon_mqtt.models.error_state import NotificationEvent
from co2mon_mqtt.protocol.measurements import Measurement, MeasurementKind
from co2mon_mqtt.publisher import (
    MqttPublisher,
    TelemetryPublisher,
    discovery_document,
    discovery_messages,
    error_topic,
    format_measurement,
    measurement_topic,
)


def test_topics():
    """Topic layout must match what Home Assistant is configured with."""
    assert measurement_topic(Channel.TEMP) == "homeassistant/sensor/co2mon/temp"
    assert measurement_topic(Channel.CO2) == "homeassistant/sensor/co2mon/co2"
    assert error_topic(Channel.TEMP) == "homeassistant/sensor/co2mon/temp/error"
    assert error_topic(Channel.CO2) == "homeassistant/sensor/co2mon/co2/error"


def test_format_temperature():
    """Temperature uses one decimal place."""
    assert format_measurement(Measurement(MeasurementKind.TEMPERATURE, 21.4375)) == "21.4"
    assert format_measurement(Measurement(MeasurementKind.TEMPERATURE, -5.0)) == "-5.0"


def test_format_co2():
    """CO2 is a plain integer."""
    assert format_measurement(Measurement(MeasurementKind.CARBON_DIOXIDE, 612)) == "612"


def test_discovery_topics_and_order():
    """CO2 is announced first, then temperature."""
    topics = [topic for topic, _ in discovery_messages()]
    assert topics == [
        "homeassistant/sensor/co2monC/config",
        "homeassistant/sensor/co2monT/config",
    ]


def test_discovery_document_co2():
    """The CO2 document points at the CO2 state and error topics."""
    doc = discovery_document(Channel.CO2)
    assert doc["device"]["identifiers"] == ["mt8057", "co2mon"]
    assert doc["device"]["model"] == "MT8057"
    assert doc["~"] == "homeassistant/sensor/co2mon"
    assert doc["dev_cla"] == "carbon_dioxide"
    assert doc["unit_of_meas"] == "ppm"
    assert doc["stat_t"] == "~/co2"
    assert doc["err_t"] == "~/co2/error"


def test_discovery_documents_have_distinct_ids():
    """Each sensor needs its own unique_id in Home Assistant."""
    temp = discovery_document(Channel.TEMP)
    co2 = discovery_document(Channel.CO2)
    assert temp["unique_id"] != co2["unique_id"]
    assert temp["unit_of_meas"] == "°C"
    assert temp["stat_t"] == "~/temp"


def test_discovery_payload_is_json():
    """Payloads are UTF-8 JSON."""
    for _, payload in discovery_messages():
        assert "device" in json.loads(payload.decode("utf-8"))


def test_telemetry_publishes_retained_qos2():
    """Measurements go out with QoS 2 and retain."""
    sink = MagicMock()
    TelemetryPublisher(sink).publish_measurement(
        Channel.CO2, Measurement(MeasurementKind.CARBON_DIOXIDE, 800)
    )
    sink.publish.assert_called_once_with(
        "homeassistant/sensor/co2mon/co2", b"800", 2, True
    )


def test_telemetry_error_and_recovery_payloads():
    """Errors carry their text; recoveries carry an empty payload."""
    sink = MagicMock()
    telemetry = TelemetryPublisher(sink)
    telemetry.publish_event(NotificationEvent(Channel.TEMP, "r"))
    telemetry.publish_event(NotificationEvent(Channel.TEMP, None))

    assert [c.args for c in sink.publish.call_args_list] == [
        ("homeassistant/sensor/co2mon/temp/error", b"r", 2, True),
        ("homeassistant/sensor/co2mon/temp/error", b"", 2, True),
    ]


def test_telemetry_discovery():
    """Both discovery documents are published."""
    sink = MagicMock()
    TelemetryPublisher(sink).publish_discovery()
    assert sink.publish.call_count == 2


@patch("co2mon_mqtt.publisher.mqtt.Client")
def test_mqtt_publisher_publish(mock_client_cls):
    """publish() forwards to the paho client without waiting."""
    client = mock_client_cls.return_value
    pub = MqttPublisher()
    pub.publish("a/b", b"1", 2, True)
    client.publish.assert_called_once_with("a/b", b"1", qos=2, retain=True)
    client.publish.return_value.wait_for_publish.assert_not_called()


@patch("co2mon_mqtt.publisher.mqtt.Client")
def test_mqtt_publisher_connect(mock_client_cls):
    """connect() uses the given broker address."""
    client = mock_client_cls.return_value
    pub = MqttPublisher()
    pub.connect("10.0.0.2", 1884)
    client.connect.assert_called_once_with("10.0.0.2", 1884, keepalive=60)


@patch("co2mon_mqtt.publisher.mqtt.Client")
def test_mqtt_publisher_connect_failure(mock_client_cls):
    """An unreachable broker surfaces as ConnectionError."""
    mock_client_cls.return_value.connect.side_effect = OSError("refused")
    with pytest.raises(ConnectionError):
        MqttPublisher().connect("127.0.0.1", 1883)


@patch("co2mon_mqtt.publisher.mqtt.Client")
def test_mqtt_publisher_tracks_connection(mock_client_cls):
    """Connection callbacks update the connected flag."""
    pub = MqttPublisher()
    assert not pub.connected
    pub._on_connect(None, None, None, 0)
    assert pub.connected
    pub._on_disconnect(None, None, None, 7)
    assert not pub.connected


@patch("co2mon_mqtt.publisher.mqtt.Client")
def test_mqtt_publisher_disconnect_stops_loop(mock_client_cls):
    """disconnect() also stops the network thread."""
    client = mock_client_cls.return_value
    pub = MqttPublisher()
    pub.loop_start()
    pub.disconnect()
    client.loop_start.assert_called_once()
    client.disconnect.assert_called_once()
    client.loop_stop.assert_called_once()
