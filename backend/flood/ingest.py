"""
ingest.py — Reading Ingestion and Batch Orchestration
======================================================

Glue between the store and the two engines.

Ingestion flow (one call per uplink):
    reading arrives -> sensor auto-registered -> reading stored
    -> StreamingValidator decides benchmark / depth / validity
    -> flags written back onto the stored reading
    -> if valid and depth is moderate flooding or worse:
       publish MQTT: flood/alerts { sensor_id, water_depth_mm, level }

Batch flow (on demand):
    store snapshot -> BatchCleaningPipeline -> clean subset replaces
    the sensor's (or every sensor's) clean dataset
"""

import json
import logging
from datetime import datetime, timezone

import paho.mqtt.client as mqtt

from . import config
from .config import FloodConfig
from .flood_status import get_flood_status
from .models import IngestionVerdict, RawReading
from .pipeline import BatchCleaningPipeline
from .validator import StreamingValidator

logger = logging.getLogger("flood.ingest")


class MqttAlertPublisher:
    """
    Publishes flood alerts to the MQTT broker.

    The client connects lazily on the first alert.  Connection and
    publish failures are logged and never block ingestion.
    """

    def __init__(self, host: str = None, port: int = None, topic: str = None):
        self.host = host or config.MQTT_BROKER_HOST
        self.port = port or config.MQTT_BROKER_PORT
        self.topic = topic or config.FLOOD_ALERT_TOPIC
        self._client = None

    def _get_client(self):
        if self._client is not None:
            return self._client
        try:
            client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2,
                                 client_id="floodsense-ingest")
            client.connect(self.host, self.port, 60)
            client.loop_start()
        except OSError as e:
            logger.error(f"MQTT connection failed: {e}")
            return None
        self._client = client
        logger.info(f"MQTT client connected to {self.host}:{self.port}")
        return client

    def publish(self, payload: dict) -> None:
        client = self._get_client()
        if client is None:
            logger.warning("Cannot publish flood alert — no MQTT client")
            return
        message = json.dumps(payload)
        result = client.publish(self.topic, message, qos=1)
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error(f"Failed to publish flood alert (rc={result.rc})")
            return
        logger.warning(f"FLOOD ALERT published: topic={self.topic} payload={message}")


class IngestionService:
    """
    Stores readings, runs the streaming validator, and runs batch cleaning.

    Attributes:
        store (InMemoryReadingStore): Reading and sensor storage.
        validator (StreamingValidator): Per-reading engine.
        pipeline (BatchCleaningPipeline): Batch engine.
        publisher: Object with ``publish(payload: dict)``, or None to
            disable alerts.
    """

    def __init__(self, store, config: FloodConfig = None, publisher=None):
        self.store = store
        self.config = config or FloodConfig()
        self.validator = StreamingValidator(store, self.config)
        self.pipeline = BatchCleaningPipeline(self.config)
        self.publisher = publisher

    def ingest(self, sensor_id: str, distance_mm, timestamp_ms: int) -> dict:
        """
        Store and validate one reading.

        Args:
            sensor_id: Sensor the uplink came from.  Unknown sensors are
                registered on first sight.
            distance_mm: Raw distance, or None if the uplink had none.
            timestamp_ms: Receive time in epoch milliseconds.

        Returns:
            Verdict dict with the flood status of the reading's depth.
        """
        if not self.store.has_sensor(sensor_id):
            self.store.register_sensor(sensor_id)

        reading = self.store.add_reading(RawReading(sensor_id, timestamp_ms, distance_mm))
        verdict = self.validator.validate(reading)

        self.store.update_reading(
            reading.reading_id,
            is_benchmark=verdict.is_benchmark,
            is_valid=verdict.validation.is_valid,
            water_depth_mm=verdict.water_depth.final_depth_mm,
            z_score=verdict.validation.z_score,
        )

        status = get_flood_status(verdict.water_depth.final_depth_mm)
        if verdict.validation.is_valid and status.is_moderate_or_higher:
            self._publish_alert(verdict, status)

        result = verdict.to_dict()
        result["flood_status"] = {"level": status.level, "severity": status.severity,
                                 "map_color": status.map_color}
        return result

    def _publish_alert(self, verdict: IngestionVerdict, status) -> None:
        if self.publisher is None:
            return
        self.publisher.publish({
            "sensor_id": verdict.reading.sensor_id,
            "reading_id": verdict.reading.reading_id,
            "water_depth_mm": verdict.water_depth.final_depth_mm,
            "level": status.level,
            "severity": status.severity,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": "flood-ingest",
        })

    def calibrate(self, sensor_id: str) -> None:
        """
        Put a sensor into calibration mode; its next reading is the benchmark.

        Raises:
            UnknownSensorError: If the sensor is not registered.
        """
        self.store.set_awaiting_calibration(sensor_id)
        logger.info(f"Sensor {sensor_id} awaiting calibration")

    def process_batch(self, sensor_id: str = None) -> dict:
        """
        Re-clean the stored history and replace the clean dataset.

        Args:
            sensor_id: Process one sensor, or every sensor when None.

        Returns:
            Run summary (total, clean, filtered and per-flag counts).
        """
        readings = self.store.raw_readings(sensor_id)
        if not readings:
            logger.info("No readings to process")
            return self.pipeline.summarize([])

        processed = self.pipeline.run(readings)
        self.store.replace_clean(self.pipeline.clean(processed), sensor_id=sensor_id)
        return self.pipeline.summarize(processed)
