from __future__ import annotations

import json
import logging

import paho.mqtt.client as mqtt
import pytest

from backend.flood.ingest import MqttAlertPublisher


class _Info:
    def __init__(self, rc: int):
        self.rc = rc


class StubClient:
    instances = []
    connect_error = None
    publish_rc = mqtt.MQTT_ERR_SUCCESS

    def __init__(self, *args, **kwargs):
        self.args = args
        self.kwargs = kwargs
        self.connected_to = None
        self.loop_started = False
        self.published = []
        StubClient.instances.append(self)

    def connect(self, host, port, keepalive):
        if StubClient.connect_error is not None:
            raise StubClient.connect_error
        self.connected_to = (host, port, keepalive)

    def loop_start(self):
        self.loop_started = True

    def publish(self, topic, payload, qos=0):
        self.published.append((topic, payload, qos))
        return _Info(StubClient.publish_rc)


@pytest.fixture(autouse=True)
def stub_client(monkeypatch):
    StubClient.instances = []
    StubClient.connect_error = None
    StubClient.publish_rc = mqtt.MQTT_ERR_SUCCESS
    monkeypatch.setattr(mqtt, "Client", StubClient)
    return StubClient


def test_publish_sends_json_to_topic(stub_client) -> None:
    publisher = MqttAlertPublisher(host="broker", port=1884, topic="flood/test")
    payload = {"sensor_id": "s1", "water_depth_mm": 120.0, "level": "Moderate Flooding"}

    publisher.publish(payload)
    publisher.publish(payload)

    assert len(stub_client.instances) == 1
    client = stub_client.instances[0]
    assert client.args == (mqtt.CallbackAPIVersion.VERSION2,)
    assert client.connected_to == ("broker", 1884, 60)
    assert client.loop_started
    topic, message, qos = client.published[0]
    assert topic == "flood/test"
    assert qos == 1
    assert json.loads(message) == payload
    assert len(client.published) == 2


def test_failed_connect_is_logged_not_raised(stub_client, caplog) -> None:
    stub_client.connect_error = ConnectionRefusedError("refused")
    publisher = MqttAlertPublisher(host="broker", port=1884)

    with caplog.at_level(logging.INFO, logger="flood.ingest"):
        assert publisher._get_client() is None
        publisher.publish({"sensor_id": "s1"})

    assert "MQTT connection failed" in caplog.text
    assert "Cannot publish flood alert" in caplog.text
    assert all(not c.published for c in stub_client.instances)


def test_publish_failure_rc_is_logged(stub_client, caplog) -> None:
    stub_client.publish_rc = mqtt.MQTT_ERR_NO_CONN
    publisher = MqttAlertPublisher()

    with caplog.at_level(logging.INFO, logger="flood.ingest"):
        publisher.publish({"sensor_id": "s1"})

    assert f"rc={mqtt.MQTT_ERR_NO_CONN}" in caplog.text
    assert "FLOOD ALERT published" not in caplog.text
