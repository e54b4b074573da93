"""Main entry point for the radiocaching MQTT tracker.

Supports two modes:
- Log-only mode: Read GPS fixes and log them to console
- Service mode: Read GPS fixes and publish them with the dose rate via MQTT
"""

import logging
import signal
import sys
from typing import Optional

from .config import Config, ConfigError
from .dose_rate import ConstantDoseRate
from .location import LocationSourceError, create_location_source
from .mqtt import ChannelError, PublishChannel, TelemetryPublisher
from .status import TrackerStatus
from .worker import PublishWorker

# Global flag for graceful shutdown
shutdown_requested = False
_active_source = None


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully."""
    global shutdown_requested
    logger = logging.getLogger(__name__)
    logger.info(f"Received signal {signum}, initiating shutdown...")
    shutdown_requested = True
    if _active_source is not None:
        _active_source.stop()


def setup_logging(config: Config) -> None:
    """Configure logging based on config settings."""
    logging_config = config.get_logging_config()

    level_name = logging_config.get("level", "INFO")
    level = getattr(logging, level_name.upper(), logging.INFO)

    log_format = logging_config.get(
        "format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    logging.basicConfig(level=level, format=log_format)


def log_only_mode(config: Config) -> int:
    """
    Log-only mode: Read fixes from the location source and log them.

    Args:
        config: Application configuration

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    global _active_source
    logger = logging.getLogger(__name__)

    location_config = config.get_location_config()
    dose_rate = ConstantDoseRate(config.get_dose_rate())
    source = create_location_source(location_config)
    _active_source = source
    fix_count = 0

    logger.info(f"Starting log-only mode (location source: {location_config.source})")

    try:
        for fix in source:
            fix_count += 1
            logger.info(f"[{fix_count:4d}] {fix} | Dosisleistung: {dose_rate.read():.3f} uSv/h")
            if shutdown_requested:
                break

    except KeyboardInterrupt:
        logger.info("Stopped by user")

    except LocationSourceError as e:
        logger.error(f"Location source error: {e}")
        return 1

    finally:
        source.disconnect()
        _active_source = None
        logger.info(f"Total fixes: {fix_count}")

    return 0


def service_mode(config: Config) -> int:
    """
    Service mode: Publish every GPS fix with the dose rate via MQTT.

    Args:
        config: Application configuration

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    global _active_source
    logger = logging.getLogger(__name__)

    team_number = config.get_team_number()
    mqtt_config = config.get_mqtt_config()
    location_config = config.get_location_config()
    dose_rate = ConstantDoseRate(config.get_dose_rate())

    logger.info("=" * 70)
    logger.info("Starting radiocaching MQTT tracker - Service Mode")
    logger.info("=" * 70)
    logger.info(f"Team: {team_number}")
    logger.info(f"MQTT: {mqtt_config.broker}:{mqtt_config.port} (TLS={mqtt_config.tls})")
    logger.info(f"Location source: {location_config.source} every {location_config.interval}s")
    logger.info(f"Best-effort delivery: {mqtt_config.best_effort}")
    logger.info("=" * 70)

    source = create_location_source(location_config)
    if not source.permission_granted():
        logger.error(f"No access to location source {location_config.port}")
        return 1

    status = TrackerStatus(team_number, dose_rate=dose_rate.read())
    channel = PublishChannel(mqtt_config)
    publisher = TelemetryPublisher(
        channel=channel,
        config=mqtt_config,
        team_number=team_number,
        dose_rate_source=dose_rate,
        status=status,
    )
    worker: Optional[PublishWorker] = None
    fix_count = 0
    _active_source = source

    try:
        # First connect is eager so the operator sees the state early
        try:
            channel.ensure_connected()
        except ChannelError as e:
            logger.warning(f"Broker not reachable yet, will retry on next fix: {e}")

        worker = PublishWorker(publisher.publish_fix, policy=config.get_worker_policy())
        worker.start()

        logger.info("Service started successfully. Press Ctrl+C to stop.")

        for fix in source:
            fix_count += 1
            worker.submit(fix)
            logger.info(f"[{fix_count:5d}] {status}")
            if shutdown_requested:
                break

        if not shutdown_requested:
            # location stream ended on its own, send what is still pending
            worker.wait_idle(timeout=mqtt_config.connect_timeout + mqtt_config.publish_timeout)

        logger.info("Stopping service, cleaning up...")

    except KeyboardInterrupt:
        logger.info("Interrupted by user (Ctrl+C)")

    except LocationSourceError as e:
        logger.error(f"Location source error: {e}")
        return 1

    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1

    finally:
        logger.info("Performing shutdown sequence...")
        _active_source = None

        if worker:
            try:
                worker.stop(timeout=mqtt_config.publish_timeout + mqtt_config.connect_timeout)
            except Exception as e:
                logger.error(f"Error stopping publish worker: {e}")

        try:
            publisher.shutdown()
        except Exception as e:
            logger.error(f"Error during publisher shutdown: {e}")

        try:
            source.disconnect()
        except Exception as e:
            logger.error(f"Error closing location source: {e}")

        logger.info("=" * 70)
        logger.info(f"Shutdown complete. Total fixes: {fix_count}")
        logger.info("=" * 70)

    return 0


def main() -> int:
    """Main application entry point."""
    # Register signal handlers
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        # Load configuration
        config_path = sys.argv[1] if len(sys.argv) > 1 else None
        config = Config(config_path)

        # Setup logging
        setup_logging(config)

        mqtt_config = config.get_mqtt_config()

        if mqtt_config.enabled:
            return service_mode(config)
        else:
            logger = logging.getLogger(__name__)
            logger.info("MQTT disabled, running in log-only mode")
            return log_only_mode(config)

    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
