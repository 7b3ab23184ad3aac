"""HTTP server exposing channel state as Prometheus metrics and JSON"""

import logging
import time

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Gauge, generate_latest

from ..services.state import Snapshot, StateStore

logger = logging.getLogger(__name__)

NAMESPACE = "twitch"
STORE_KEY: web.AppKey[StateStore] = web.AppKey("store", StateStore)


def render_metrics(snapshot: Snapshot) -> bytes:
    """Render one state snapshot in the Prometheus text format.

    A fresh registry is built per scrape so every series comes from the same
    snapshot.
    """
    channels, last_cycle = snapshot
    registry = CollectorRegistry()

    def gauge(name: str, doc: str, labelnames: tuple[str, ...] = ()) -> Gauge:
        return Gauge(name, doc, labelnames=labelnames, namespace=NAMESPACE, registry=registry)

    online = gauge("online", "Is the streamer online", ("name",))
    viewers = gauge("viewers", "Number of viewers", ("name",))
    started_at = gauge("started_at", "Stream start time (unix seconds)", ("name",))
    views = gauge("views", "Total channel views", ("name",))
    followers = gauge("followers", "Number of followers", ("name",))
    last_scrape = gauge("last_scrape", "Last scrape time (unix seconds)")
    token_remaining = gauge("token_remaining", "Request quota reported at the last scrape")

    for channel, state in channels:
        name = channel.display_name
        online.labels(name=name).set(1 if state.online else 0)
        viewers.labels(name=name).set(state.viewers)
        started_at.labels(name=name).set(state.up_since.timestamp() if state.up_since else 0)
        views.labels(name=name).set(state.total_views)
        followers.labels(name=name).set(state.followers)

    if last_cycle is not None:
        last_scrape.set(last_cycle.started_at)
        token_remaining.set(last_cycle.quota_reported)

    return generate_latest(registry)


def render_json(snapshot: Snapshot) -> list[dict]:
    """Render one state snapshot as the public JSON document."""
    channels, _ = snapshot
    return [
        {
            "name": channel.display_name,
            "online": state.online,
            "uptime": int(state.up_since.timestamp()) if state.up_since else None,
            "followers": state.followers,
            "viewers": state.viewers,
            "views": state.total_views,
        }
        for channel, state in channels
    ]


async def handle_metrics(request: web.Request) -> web.Response:
    """Prometheus scrape endpoint"""
    snapshot = await request.app[STORE_KEY].snapshot()
    return web.Response(body=render_metrics(snapshot), headers={"Content-Type": CONTENT_TYPE_LATEST})


async def handle_root(request: web.Request) -> web.Response:
    """JSON array of channel states, readable from any origin"""
    snapshot = await request.app[STORE_KEY].snapshot()
    return web.json_response(
        render_json(snapshot), headers={"Access-Control-Allow-Origin": "*"}
    )


async def handle_health(request: web.Request) -> web.Response:
    """Liveness check, always 200"""
    channels, last_cycle = await request.app[STORE_KEY].snapshot()
    return web.json_response(
        {
            "status": "healthy",
            "channels": len(channels),
            "last_cycle": int(last_cycle.started_at) if last_cycle else None,
        }
    )


async def handle_ping(request: web.Request) -> web.Response:
    """Ping endpoint"""
    return web.Response(text="pong")


def create_app(store: StateStore) -> web.Application:
    """Build the aiohttp application serving *store*"""
    app = web.Application()
    app[STORE_KEY] = store
    app.router.add_get("/", handle_root)
    app.router.add_get("/metrics", handle_metrics)
    app.router.add_get("/health", handle_health)
    app.router.add_get("/ping", handle_ping)
    return app


class ExpositionServer:
    """Runs the exposition app on a TCP site"""

    def __init__(self, store: StateStore, host: str = "0.0.0.0", port: int = 2112):
        self.host = host
        self.port = port
        self.app = create_app(store)
        self.runner: web.AppRunner | None = None
        self._start_time: float = time.time()

    async def start(self) -> None:
        """Start the HTTP server"""
        try:
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()

            site = web.TCPSite(self.runner, self.host, self.port)
            await site.start()

            logger.info(f"Exposition server started on {self.host}:{self.port}")
            logger.info(f"  GET http://{self.host}:{self.port}/metrics - Prometheus metrics")
            logger.info(f"  GET http://{self.host}:{self.port}/ - Channel JSON")

        except Exception as e:
            logger.exception(f"Failed to start exposition server: {e}")
            raise

    async def stop(self) -> None:
        """Stop the HTTP server"""
        if self.runner:
            try:
                await self.runner.cleanup()
                logger.info(
                    f"Exposition server stopped after {int(time.time() - self._start_time)}s"
                )
            except Exception as e:
                logger.exception(f"Error stopping exposition server: {e}")
            self.runner = None
