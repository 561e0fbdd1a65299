"""MQTT consumer that validates sensor batches and feeds the pricing pipeline."""
from __future__ import annotations

import logging
import os
import signal
import sys
from dataclasses import dataclass, field
from typing import Optional
from uuid import uuid4

import django
import paho.mqtt.client as mqtt

from parkprice.ingest import schemas

logger = logging.getLogger(__name__)

TOPIC = "parking/sensors/+/status"


@dataclass
class MQTTConfig:
    host: str = field(default_factory=lambda: os.getenv("MQTT_HOST", "localhost"))
    port: int = field(default_factory=lambda: int(os.getenv("MQTT_PORT", "1883")))
    username: Optional[str] = field(default_factory=lambda: os.getenv("MQTT_USERNAME"))
    password: Optional[str] = field(default_factory=lambda: os.getenv("MQTT_PASSWORD"))
    keepalive: int = field(default_factory=lambda: int(os.getenv("MQTT_KEEPALIVE", "60")))
    client_id: str = field(
        default_factory=lambda: os.getenv("MQTT_CLIENT_ID", f"parkprice-consumer-{uuid4().hex[:8]}")
    )
    topic: str = field(default_factory=lambda: os.getenv("MQTT_TOPIC", TOPIC))


def parse_topic_gateway(topic: str) -> str:
    parts = topic.split("/")
    if len(parts) == 4 and parts[0] == "parking" and parts[1] == "sensors" and parts[3] == "status":
        return parts[2]
    raise ValueError(f"Unsupported topic format: {topic}")


def process_payload(topic: str, payload: bytes, pipeline=None):
    """Validate a batch published on ``topic`` and run it through the pipeline."""

    gateway = parse_topic_gateway(topic)
    try:
        batch = schemas.decode_batch(payload)
    except schemas.DecodeError as exc:
        raise schemas.DecodeError(f"Rejected batch from gateway {gateway}: {exc}") from exc

    if pipeline is None:
        from parkprice.core.services.factory import get_pipeline

        pipeline = get_pipeline()
    return pipeline.ingest(batch)


class MQTTIngestConsumer:
    """Subscribes to the sensor status topic and ingests every batch."""

    def __init__(self, config: Optional[MQTTConfig] = None, pipeline=None):
        self.config = config or MQTTConfig()
        self.pipeline = pipeline
        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=self.config.client_id)
        if self.config.username:
            self.client.username_pw_set(self.config.username, self.config.password)
        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message

    # -- MQTT callbacks -------------------------------------------------
    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            logger.error("Failed to connect to MQTT broker: %s", reason_code)
            return
        logger.info("Connected to MQTT broker, subscribing to %s", self.config.topic)
        client.subscribe(self.config.topic)

    def _on_message(self, client, userdata, msg):
        try:
            result = process_payload(msg.topic, msg.payload, pipeline=self.pipeline)
        except schemas.DecodeError as exc:
            logger.warning("%s", exc)
        except Exception:
            logger.exception("Failed to process message from topic %s", msg.topic)
        else:
            logger.info("Topic %s: %s stored, %s failed", msg.topic, result.stored, result.failed)

    # -- Public API -----------------------------------------------------
    def start(self):
        self._install_signal_handlers()
        self.client.connect(self.config.host, self.config.port, self.config.keepalive)
        logger.info("Starting MQTT consumer loop")
        self.client.loop_forever()

    def stop(self):
        logger.info("Stopping MQTT consumer loop")
        self.client.disconnect()

    def _install_signal_handlers(self):
        def _handle_signal(signum, frame):
            logger.info("Received signal %s, shutting down", signum)
            self.stop()
            sys.exit(0)

        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)


def main():
    logging.basicConfig(level=logging.INFO)
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "parkprice.settings")
    django.setup()
    MQTTIngestConsumer().start()


if __name__ == "__main__":
    main()
