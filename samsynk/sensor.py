"""Sensors that read and write inverter registers through the Modbus queue."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional

from .helpers import signed, slug_name
from .metrics import IntGauge, IntGaugeVec, Registry
from .modbus import modbus_read, modbus_write

REGISTRY = Registry()


class PriorityLoad(IntEnum):
    BATTERY_FIRST = 0
    LOAD_FIRST = 1


class SensorError(Exception):
    """A sensor could not carry out the requested operation."""


class SensorNotMutableError(SensorError):
    """The sensor's register is read-only."""


class SensorNotWritableError(SensorError):
    """This kind of sensor does not support writes."""


def _trunc_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator < 0) == (denominator < 0) else -quotient


def _registry(registry: Optional[Registry]) -> Registry:
    return REGISTRY if registry is None else registry


def _refuse_write(name: str, data: int) -> None:
    """Raise the error given to a write on a sensor kind that cannot be written."""
    raise SensorNotWritableError(
        f"Sensor not writeable. {name!r} cannot take the value {data}."
    )


class Sensor:
    """A value spread over one or more registers, scaled by a divisor."""

    def __init__(
        self,
        name: str,
        registers: Iterable[int],
        factor: int,
        is_signed: bool,
        is_mut: bool = False,
        registry: Optional[Registry] = None,
    ) -> None:
        registers = tuple(registers)
        if not registers:
            raise ValueError(f"sensor {name!r} has no registers")
        if factor == 0:
            raise ValueError(f"sensor {name!r} has a zero factor")
        self.name = name
        self.registers = registers
        self.factor = factor
        self.is_signed = is_signed
        self.is_mut = is_mut
        self.metric = IntGauge(slug_name(name), name)
        _registry(registry).register(self.metric)

    @classmethod
    def mutable(
        cls,
        name: str,
        registers: Iterable[int],
        factor: int,
        is_signed: bool,
        registry: Optional[Registry] = None,
    ) -> Sensor:
        """Build a sensor whose first register may be written."""
        return cls(name, registers, factor, is_signed, is_mut=True, registry=registry)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, registers={self.registers!r}, "
            f"factor={self.factor!r}, is_signed={self.is_signed!r}, is_mut={self.is_mut!r})"
        )

    async def read_value(self, queue: asyncio.Queue) -> int:
        """Read the registers, low word first, and return the scaled value."""
        output = await modbus_read(queue, self.registers)
        value = sum(word << (16 * index) for index, word in enumerate(output))
        if self.is_signed:
            value = signed(value)
        return _trunc_div(value, self.factor)

    async def write(self, queue: asyncio.Queue, data: int) -> None:
        """Write ``data`` into the sensor's first register."""
        if not self.is_mut:
            raise SensorNotMutableError(f"sensor {self.name!r} is read-only")
        if not 0 <= data <= 0xFFFF:
            raise SensorError(f"value out of range for a register: {data}")
        await modbus_write(queue, self.registers[0], data)


class BasicSensor(Sensor):
    async def read(self, queue: asyncio.Queue) -> str:
        value = await self.read_value(queue)
        self.metric.set(value)
        return str(value)


class BinarySensor(Sensor):
    async def read(self, queue: asyncio.Queue) -> str:
        value = await self.read_value(queue)
        self.metric.set(value)
        return str(value)

    async def write(self, queue: asyncio.Queue, data: int) -> None:
        if data not in (0, 1):
            raise SensorError("Binary sensors must receive either a 1 or 0.")
        await super().write(queue, data)


class TemperatureSensor(Sensor):
    async def read(self, queue: asyncio.Queue) -> str:
        value = await self.read_value(queue) - 100
        self.metric.set(value)
        return str(value)

    async def write(self, queue: asyncio.Queue, data: int) -> None:
        _refuse_write(self.name, data)


class CompoundSensor:
    """A sum of several single-register readings, each with its own divisor.

    A negative divisor marks a register that holds a signed value.
    """

    def __init__(
        self,
        name: str,
        registers: Iterable[int],
        factors: Iterable[int],
        no_negative: bool,
        absolute: bool,
        registry: Optional[Registry] = None,
    ) -> None:
        registers = tuple(registers)
        factors = tuple(factors)
        if len(registers) != len(factors):
            raise ValueError(f"sensor {name!r} needs one factor per register")
        if 0 in factors:
            raise ValueError(f"sensor {name!r} has a zero factor")
        self.name = name
        self.registers = registers
        self.factors = factors
        self.no_negative = no_negative
        self.absolute = absolute
        self.metric = IntGauge(slug_name(name), name)
        _registry(registry).register(self.metric)

    async def read(self, queue: asyncio.Queue) -> str:
        raw: list[int] = []
        for register in self.registers:
            raw.extend(await modbus_read(queue, [register]))

        total = sum(
            _trunc_div(signed(word) if factor < 0 else word, factor)
            for word, factor in zip(raw, self.factors)
        )
        if self.absolute and total < 0:
            total = -total
        if self.no_negative and total < 0:
            total = 0

        self.metric.set(total)
        return str(total)

    async def write(self, queue: asyncio.Queue, data: int) -> None:
        _refuse_write(self.name, data)


def faults_decode(reg_vals: Iterable[int]) -> list[int]:
    """List the fault numbers whose bits are set; bit 0 of the first word is fault 1."""
    return [
        bit + 16 * word_index + 1
        for word_index, word in enumerate(reg_vals)
        for bit in range(16)
        if word >> bit & 1
    ]


class FaultSensor:
    """Reports the active fault codes as ``F<n>`` and as labelled gauges."""

    def __init__(
        self, name: str, registers: Iterable[int], registry: Optional[Registry] = None
    ) -> None:
        self.name = name
        self.registers = tuple(registers)
        self.metric = IntGaugeVec(slug_name(name), name, ["code"])
        _registry(registry).register(self.metric)

    async def read(self, queue: asyncio.Queue) -> str:
        output = await modbus_read(queue, self.registers)
        faults = faults_decode(output)
        for fault in faults:
            self.metric.with_label_values(str(fault)).set(1)
        return ", ".join(f"F{fault}" for fault in faults)

    async def write(self, queue: asyncio.Queue, data: int) -> None:
        _refuse_write(self.name, data)


@dataclass(frozen=True)
class SerialSensor:
    """The inverter's serial number, two byte values per register."""

    name: str
    registers: Sequence[int]

    async def read(self, queue: asyncio.Queue) -> str:
        words = await modbus_read(queue, self.registers)
        return "".join(f"{word >> 8 & 0xFF}{word & 0xFF}" for word in words)

    async def write(self, queue: asyncio.Queue, data: int) -> None:
        _refuse_write(self.name, data)


class SDStatus(Enum):
    FAULT = "Fault"
    OK = "Ok"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class SDStatusSensor:
    """The state of the SD card slot."""

    name: str
    registers: Sequence[int]

    async def read(self, queue: asyncio.Queue) -> str:
        words = await modbus_read(queue, self.registers)
        code = words[0] if words else None
        if code == 1000:
            status = SDStatus.FAULT
        elif code == 2000:
            status = SDStatus.OK
        else:
            status = SDStatus.UNKNOWN
        return status.value

    async def write(self, queue: asyncio.Queue, data: int) -> None:
        _refuse_write(self.name, data)