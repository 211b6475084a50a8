"""HTTP API and metrics endpoint in front of the inverter sensors."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any, Optional

import aiohttp
from aiohttp import web

from . import sensor as _sensor
from . import sensor_definitions
from .metrics import Registry
from .modbus import RegisterClient, query_modbus_source

START_TIMEOUT = 5.0
COLLECT_INTERVAL = 10.0
QUEUE_SIZE = 1000

Address = tuple[Sequence[int], int]


def origin_url(addr: Address) -> str:
    """Build ``http://a.b.c.d:port`` from an ``(ip_octets, port)`` pair."""
    host = ".".join(str(part) for part in addr[0])
    return f"http://{host}:{addr[1]}"


async def data_collector(
    sensors: Mapping[str, Any], queue: asyncio.Queue, interval: float = COLLECT_INTERVAL
) -> None:
    """Read every sensor, refreshing its metric, then wait ``interval`` seconds; forever."""
    while True:
        for sensor in list(sensors.values()):
            await sensor.read(queue)
        await asyncio.sleep(interval)


def create_app(
    sensors: Mapping[str, Any], queue: asyncio.Queue, registry: Optional[Registry] = None
) -> web.Application:
    """Build the web application serving the sensor API and metrics."""
    registries: list[Registry] = []
    for candidate in (registry or sensor_definitions.REGISTRY, _sensor.REGISTRY):
        if all(candidate is not known for known in registries):
            registries.append(candidate)

    async def healthcheck(request: web.Request) -> web.Response:
        return web.Response(text="Everything is OK!", content_type="text/html")

    async def sensor_get(request: web.Request) -> web.Response:
        sensor = sensors.get(request.match_info["name"])
        if sensor is None:
            return web.Response(text="NOT FOUND", status=404)
        try:
            result = await sensor.read(queue)
        except Exception:
            return web.Response(text="INTERNAL_SERVER_ERROR", status=500)
        return web.Response(text=result)

    async def sensor_post(request: web.Request) -> web.Response:
        body = await request.text()
        try:
            value = int(body.strip())
        except ValueError:
            raise web.HTTPBadRequest(text="value must be an integer")
        sensor = sensors.get(request.match_info["name"])
        if sensor is None:
            raise web.HTTPNotFound()
        try:
            await sensor.write(queue, value)
        except Exception:
            raise web.HTTPNotFound()
        return web.Response()

    async def metrics(request: web.Request) -> web.Response:
        return web.Response(text="".join(r.encode_text() for r in registries))

    app = web.Application()
    app.router.add_get("/api/healthcheck", healthcheck)
    app.router.add_get("/api/unstable/{name}", sensor_get)
    app.router.add_post("/api/unstable/{name}", sensor_post)
    app.router.add_get("/metrics", metrics)
    return app


async def wait_for_healthcheck(address: Address) -> None:
    """Poll the healthcheck until it answers 200, or raise after the start timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + START_TIMEOUT
    url = origin_url(address) + "/api/healthcheck"
    async with aiohttp.ClientSession() as session:
        while loop.time() <= deadline:
            try:
                async with session.get(url) as response:
                    if response.status == 200:
                        return
            except (aiohttp.ClientError, OSError):
                pass
            await asyncio.sleep(0.05)
    raise RuntimeError("Server did not become available.")


class Server:
    """Runs the Modbus worker, the periodic collector and the HTTP server."""

    def __init__(self, client: RegisterClient, address: Address, sensors: Mapping[str, Any]) -> None:
        self.client = client
        self.address = address
        self.sensors = dict(sensors)
        self.queue: Optional[asyncio.Queue] = None
        self._tasks: list[asyncio.Task] = []
        self._runner: Optional[web.AppRunner] = None
        self._stopped: Optional[asyncio.Event] = None

    async def __aenter__(self) -> Server:
        return await self.start()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def start(self) -> Server:
        self._stopped = asyncio.Event()
        self.queue = asyncio.Queue(maxsize=QUEUE_SIZE)
        self._tasks = [
            asyncio.create_task(query_modbus_source(self.client, self.queue)),
            asyncio.create_task(data_collector(self.sensors, self.queue)),
        ]
        self._runner = web.AppRunner(create_app(self.sensors, self.queue))
        await self._runner.setup()
        host = ".".join(str(part) for part in self.address[0])
        await web.TCPSite(self._runner, host, self.address[1]).start()
        await wait_for_healthcheck(self.address)
        return self

    async def wait(self) -> None:
        """Block until the server is stopped."""
        if self._stopped is None:
            raise RuntimeError("server has not been started")
        await self._stopped.wait()

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        if self._stopped is not None:
            self._stopped.set()