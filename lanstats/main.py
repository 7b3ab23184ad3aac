import asyncio
import logging
import signal
import sys

from dotenv import load_dotenv
from pydantic import ValidationError

from .core.config import Settings, get_settings
from .core.errors import LanStatsError
from .core.exposition import ExpositionServer
from .core.logging import setup_logging
from .services import ChannelRegistry, Scheduler, StateStore, TwitchAPIClient

LOGGER: logging.Logger = logging.getLogger("lanstats")


async def runner(settings: Settings, stop_event: asyncio.Event | None = None) -> int:
    """Resolve channels, then serve metrics and poll until *stop_event* is set.

    Returns 1 when startup fails, 0 after a clean shutdown.
    """
    stop_event = stop_event or asyncio.Event()
    client = TwitchAPIClient.from_settings(settings)

    try:
        try:
            await client.credentials.refresh()
            LOGGER.info("App access token acquired")
            registry = await ChannelRegistry.resolve(client, settings.channel_logins())
        except LanStatsError as e:
            LOGGER.error(f"Startup failed: {type(e).__name__}: {e}")
            return 1

        store = StateStore(registry)
        scheduler = Scheduler(
            client,
            registry,
            store,
            interval=settings.poll_interval,
            quota_floor=settings.quota_floor,
        )
        server = ExpositionServer(store, host=settings.host, port=settings.port)

        await server.start()
        scheduler.start()

        loop = asyncio.get_running_loop()
        if sys.platform != "win32":
            loop.add_signal_handler(signal.SIGTERM, stop_event.set)

        try:
            await stop_event.wait()
        finally:
            LOGGER.info("Shutting down")
            if sys.platform != "win32":
                loop.remove_signal_handler(signal.SIGTERM)
            await scheduler.stop()
            await server.stop()
        return 0
    finally:
        await client.close()


def main() -> int:
    load_dotenv()

    try:
        settings = get_settings()
    except ValidationError as e:
        logging.basicConfig(level=logging.INFO)
        LOGGER.error(f"Invalid configuration:\n{e}")
        return 1

    setup_logging(settings)

    try:
        return asyncio.run(runner(settings))
    except KeyboardInterrupt:
        LOGGER.warning("Shutting down due to KeyboardInterrupt...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
