"""Command line entry point: serve the inverter's sensors over HTTP."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from typing import Optional

import serial

from .rtu import BAUD_RATE, SLAVE, TIMEOUT, RtuClient
from .sensor_definitions import register_sensors
from .server import Server

TTY_PATH = "/dev/ttyUSB0"
HOST = "127.0.0.1"
PORT = 8080


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="samsynk", description="Serve inverter readings over HTTP and Prometheus."
    )
    parser.add_argument("--tty", default=TTY_PATH, help="serial device of the inverter")
    parser.add_argument("--host", default=HOST, help="IPv4 address to listen on")
    parser.add_argument("--port", type=int, default=PORT, help="HTTP port")
    parser.add_argument("--baud", type=int, default=BAUD_RATE, help="serial baud rate")
    parser.add_argument("--slave", type=int, default=SLAVE, help="Modbus slave address")
    return parser.parse_args(argv)


async def _serve(server: Server) -> None:
    await server.start()
    try:
        await server.wait()
    finally:
        await server.stop()


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    octets = tuple(int(part) for part in args.host.split("."))
    sensors = register_sensors()
    try:
        port = serial.Serial(
            args.tty,
            args.baud,
            bytesize=serial.EIGHTBITS,
            stopbits=serial.STOPBITS_ONE,
            timeout=TIMEOUT,
        )
    except (serial.SerialException, OSError) as exc:
        raise SystemExit(f"Could not open port {args.tty}.") from exc
    with RtuClient(port, args.slave) as client:
        try:
            asyncio.run(_serve(Server(client, (octets, args.port), sensors)))
        except KeyboardInterrupt:
            pass


if __name__ == "__main__":
    main()