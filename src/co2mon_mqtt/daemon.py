"""Entry point: connect to MQTT, announce the sensors and poll the device forever."""

from __future__ import annotations

import logging
from typing import Sequence

from .config import parse_args
from .publisher import MqttPublisher, TelemetryPublisher
from .supervisor import PollingSupervisor

logger = logging.getLogger(__name__)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the bridge. Returns the process exit code."""
    config = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    mqtt = MqttPublisher()
    try:
        mqtt.connect(config.host, config.port)
    except ConnectionError as e:
        logger.error("Error: %s", e)
        return 1

    telemetry = TelemetryPublisher(mqtt)
    telemetry.publish_discovery()
    mqtt.loop_start()

    supervisor = PollingSupervisor(telemetry, decode=config.decode)
    try:
        supervisor.run()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        mqtt.disconnect()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
