"""
service.py — Flood Ingestion Microservice (Flask)
==================================================

HTTP front for the ingestion path and the batch cleaning run.

Endpoints:
    GET  /health              — Service health check
    POST /ingest              — Store and validate one reading
    POST /calibrate           — Next reading of a sensor becomes its benchmark
    POST /analytics/process   — Re-run batch cleaning (optional sensor_id)
    GET  /analytics/process   — Raw / clean reading counts
    GET  /sensors/<id>/clean  — Current clean dataset of one sensor

Run:
    python -m backend.flood.service
    # Starts on port 5060 by default (configurable via FLOOD_SERVICE_PORT)
"""

import logging

from flask import Flask, jsonify, request

from . import config
from .config import FloodConfig
from .exceptions import UnknownSensorError
from .ingest import IngestionService, MqttAlertPublisher
from .store import InMemoryReadingStore
from .utils import parse_timestamp_ms, setup_logging

logger = logging.getLogger("flood.service")


def create_app(service: IngestionService = None) -> Flask:
    """
    Build the Flask app around an IngestionService.

    Args:
        service: Service to expose.  Defaults to an in-memory store, a
            config read from the environment and MQTT alert publishing.
    """
    if service is None:
        service = IngestionService(InMemoryReadingStore(), FloodConfig.from_env(),
                                   publisher=MqttAlertPublisher())

    app = Flask(__name__)
    app.config["INGESTION_SERVICE"] = service

    @app.route("/health", methods=["GET"])
    def health():
        """Health check endpoint."""
        return jsonify({
            "status": "OK",
            "service": "Flood Sensor Ingestion",
        })

    @app.route("/ingest", methods=["POST"])
    def ingest():
        """
        Store and validate one reading.

        Expects JSON body:
            { sensor_id, distance_mm (number or null), timestamp (ISO or epoch ms, optional) }
        """
        data = request.get_json(force=True, silent=True)
        if not data:
            return jsonify({"error": "No JSON body provided"}), 400

        sensor_id = data.get("sensor_id")
        if not sensor_id:
            return jsonify({"error": "sensor_id is required"}), 400

        distance = data.get("distance_mm")
        try:
            distance = None if distance is None else float(distance)
            timestamp_ms = parse_timestamp_ms(data.get("timestamp"))
        except (TypeError, ValueError) as e:
            return jsonify({"error": f"Invalid reading: {e}"}), 400

        result = service.ingest(str(sensor_id), distance, timestamp_ms)
        return jsonify({"status": "stored", "reading": result})

    @app.route("/calibrate", methods=["POST"])
    def calibrate():
        """Set a sensor to awaiting calibration."""
        data = request.get_json(force=True, silent=True) or {}
        sensor_id = data.get("sensor_id")
        if not sensor_id:
            return jsonify({"error": "sensor_id is required"}), 400

        try:
            service.calibrate(str(sensor_id))
        except UnknownSensorError as e:
            logger.warning(f"Calibration rejected: {e}")
            return jsonify({"error": str(e)}), 404

        return jsonify({
            "success": True,
            "message": "Sensor is now awaiting calibration. "
                       "The next reading will be marked as benchmark.",
        })

    @app.route("/analytics/process", methods=["POST"])
    def process_readings():
        """Re-run batch cleaning for one sensor or all sensors."""
        data = request.get_json(force=True, silent=True) or {}
        sensor_id = data.get("sensor_id")
        summary = service.process_batch(str(sensor_id) if sensor_id else None)
        return jsonify({"success": True, **summary})

    @app.route("/analytics/process", methods=["GET"])
    def processing_status():
        """Raw and clean reading counts."""
        return jsonify(service.store.counts())

    @app.route("/sensors/<sensor_id>/clean", methods=["GET"])
    def clean_readings(sensor_id):
        records = service.store.clean_readings(sensor_id)
        return jsonify({
            "sensor_id": sensor_id,
            "count": len(records),
            "readings": [r.to_dict() for r in records],
        })

    return app


if __name__ == "__main__":
    setup_logging()
    logger.info(f"Starting flood service on port {config.SERVICE_PORT}")
    create_app().run(host="0.0.0.0", port=config.SERVICE_PORT, debug=False)
