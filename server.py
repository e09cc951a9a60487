import asyncio
import logging
import sys

from config import ConfigError, Settings
from dispatcher import Dispatcher
from http_transport import create_app, serve
from purelymail_client import PurelymailClient
from stdio_transport import StdioTransport
from tools import build_registry

logger = logging.getLogger(__name__)


def main() -> None:
    try:
        settings = Settings.from_env()
    except ConfigError as exc:
        print(exc, file=sys.stderr)
        sys.exit(1)

    # stdout carries the stdio protocol, so logs go to stderr
    logging.basicConfig(
        stream=sys.stderr,
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    client = PurelymailClient(settings.api_key, settings.base_url)
    logger.info("API connection to PurelyMail initialized (%s)", settings.base_url)

    registry = build_registry(client)
    logger.info("Registered %d tools", len(registry))
    dispatcher = Dispatcher(registry)

    if settings.transport == "http":
        app = create_app(dispatcher, timeout=settings.request_timeout)
        serve(app, settings)
    else:
        asyncio.run(StdioTransport(dispatcher).run())


if __name__ == "__main__":
    main()
