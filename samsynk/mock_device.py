"""A simulated inverter answering Modbus RTU requests, for local testing."""

from __future__ import annotations

import struct
import subprocess
import threading
from collections.abc import Mapping, Sequence
from typing import Any, Optional, Union

import serial

from .rtu import (
    EXCEPTION_FLAG,
    READ_HOLDING_REGISTERS,
    WRITE_SINGLE_REGISTER,
    ModbusError,
    decode_frame,
    encode_frame,
)
from .sensor import BasicSensor, BinarySensor, CompoundSensor, TemperatureSensor

REQUEST_LENGTH = 8
ILLEGAL_FUNCTION = 0x01
ILLEGAL_DATA_ADDRESS = 0x02


class MockModbusService:
    """Answers reads and writes from an in-memory register map.

    With no map set, reads return zeros and writes fail.
    """

    def __init__(self, values: Optional[dict[int, int]] = None) -> None:
        self.values = values
        self._lock = threading.Lock()

    def handle(self, frame: bytes) -> bytes:
        """Answer one RTU request frame with an RTU response frame."""
        slave, pdu = decode_frame(frame)
        function = pdu[0] if pdu else 0
        if function == READ_HOLDING_REGISTERS and len(pdu) == 5:
            address, count = struct.unpack(">HH", pdu[1:])
            with self._lock:
                if self.values is None:
                    words = [0] * count
                else:
                    try:
                        words = [self.values[address + i] for i in range(count)]
                    except KeyError:
                        return encode_frame(slave, bytes([function | EXCEPTION_FLAG, ILLEGAL_DATA_ADDRESS]))
            body = struct.pack(f">BB{count}H", function, 2 * count, *words)
        elif function == WRITE_SINGLE_REGISTER and len(pdu) == 5:
            address, value = struct.unpack(">HH", pdu[1:])
            with self._lock:
                if self.values is None:
                    raise ModbusError("no register map to write into")
                self.values[address] = value
            body = pdu
        else:
            body = bytes([function | EXCEPTION_FLAG, ILLEGAL_FUNCTION])
        return encode_frame(slave, body)

    def set_sensor_state(
        self, sensors: Mapping[str, Any], sensor_name: str, values: Sequence[int]
    ) -> None:
        """Store ``values`` into the registers behind the named sensor, in order."""
        sensor = sensors.get(sensor_name)
        if sensor is None:
            raise KeyError("No sensor found with that name.")
        if not isinstance(sensor, (BasicSensor, BinarySensor, CompoundSensor, TemperatureSensor)):
            raise TypeError("Could not find sensor type.")
        if len(values) < len(sensor.registers):
            raise ValueError(
                f"sensor {sensor_name!r} needs {len(sensor.registers)} values, got {len(values)}"
            )
        with self._lock:
            if self.values is None:
                self.values = {}
            for register, value in zip(sensor.registers, values):
                self.values[register] = value


class SerialInterface:
    """A pair of linked pseudo-terminals provided by a ``socat`` process."""

    def __init__(self, port_a: str, port_b: str) -> None:
        self.port_a = port_a
        self.port_b = port_b
        args = [
            "socat",
            f"pty,rawer,echo=0,link={port_a}",
            f"pty,rawer,echo=0,link={port_b}",
        ]
        try:
            self._process = subprocess.Popen(args)
        except FileNotFoundError as exc:
            raise RuntimeError("unable to spawn socat process: Is socat installed?") from exc

    def __enter__(self) -> SerialInterface:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._process.terminate()
        self._process.wait()


class ModbusServer:
    """Reads request frames from a serial port and writes back the service's answers."""

    def __init__(self, port: Union[str, Any], service: MockModbusService) -> None:
        if isinstance(port, str):
            port = serial.Serial(port, timeout=0.1)
        self.port = port
        self.service = service
        self._stop = threading.Event()

    def serve_forever(self) -> None:
        """Serve requests until :meth:`stop` is called."""
        buffer = bytearray()
        while not self._stop.is_set():
            chunk = self.port.read(REQUEST_LENGTH - len(buffer))
            if not chunk:
                continue
            buffer += chunk
            if len(buffer) < REQUEST_LENGTH:
                continue
            frame = bytes(buffer)
            buffer.clear()
            try:
                response = self.service.handle(frame)
            except ModbusError:
                continue
            self.port.write(response)

    def stop(self) -> None:
        self._stop.set()