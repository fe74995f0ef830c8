"""Main entry point for the sync server."""
import logging

from lexibook.config import ensure_directories, settings
from lexibook.logging_config import setup_logging
from lexibook.monitoring import start_monitoring
from lexibook.server.app import create_app

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the server."""
    # Ensure all required directories exist
    ensure_directories()

    setup_logging("Starting Lexibook sync server ...")

    if settings.monitoring.port:
        start_monitoring(settings.monitoring.port)
        logger.info("Metrics exposed on port %d", settings.monitoring.port)

    app = create_app()
    logger.info("Server is running on http://%s:%d", settings.server.host, settings.server.port)
    for rule in sorted(app.url_map.iter_rules(), key=lambda r: r.rule):
        if rule.endpoint != "static":
            methods = ",".join(sorted(rule.methods - {"HEAD", "OPTIONS"}))
            logger.info("  - %-7s %s", methods, rule.rule)

    try:
        app.run(host=settings.server.host, port=settings.server.port)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")


if __name__ == "__main__":
    main()
