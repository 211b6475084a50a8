"""The inverter's sensor table and the name-to-sensor lookup built from it."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Union

from .helpers import slug_name
from .metrics import Registry
from .sensor import (
    BasicSensor,
    BinarySensor,
    CompoundSensor,
    FaultSensor,
    SerialSensor,
    TemperatureSensor,
)

# Metrics of the predefined sensors live here, apart from ad-hoc sensors.
REGISTRY = Registry()

SERIAL = SerialSensor("Serial Sensor", (3, 4, 5, 6, 7))

AnySensor = Union[BasicSensor, BinarySensor, TemperatureSensor, CompoundSensor, FaultSensor]


@dataclass(frozen=True)
class _Definitions:
    faults: FaultSensor
    temperature: tuple[TemperatureSensor, ...]
    compound: tuple[CompoundSensor, ...]
    basic: tuple[BasicSensor, ...]
    binary: tuple[BinarySensor, ...]


@lru_cache(maxsize=None)
def _definitions() -> _Definitions:
    def basic(name: str, registers: tuple[int, ...], factor: int, is_signed: bool) -> BasicSensor:
        return BasicSensor(name, registers, factor, is_signed, registry=REGISTRY)

    def binary(name: str, register: int, mutable: bool = True) -> BinarySensor:
        return BinarySensor(name, (register,), 1, False, is_mut=mutable, registry=REGISTRY)

    def temperature(name: str, register: int) -> TemperatureSensor:
        return TemperatureSensor(name, (register,), 10, False, registry=REGISTRY)

    return _Definitions(
        faults=FaultSensor("Sunsynk Fault Codes", (103, 104, 105, 106), registry=REGISTRY),
        temperature=(
            temperature("Battery Temperature", 182),
            temperature("DC transformer temperature", 90),
            temperature("Environment temperature", 95),
            temperature("Radiator temperature", 91),
        ),
        compound=(
            CompoundSensor("Essential Power", (175, 167, 166), (1, 1, -1), False, False, REGISTRY),
            CompoundSensor("Non-Essential Power", (172, 176), (1, -1), True, False, REGISTRY),
            CompoundSensor("Grid current", (160, 161), (100, 100), False, False, REGISTRY),
        ),
        basic=(
            # Battery
            basic("Battery Voltage", (183,), 100, False),
            basic("Battery SOC", (184,), 1, False),
            basic("Battery Power", (190,), 1, True),
            basic("Battery Current", (191,), 100, True),
            basic("Battery Charging Voltage", (312,), 100, False),
            basic("Battery 1 SOC", (603,), 1, False),
            basic("Battery 1 Cycle", (611,), 1, False),
            # Inverter
            basic("Inverter Power", (175,), 1, True),
            basic("Inverter Voltage", (154,), 10, False),
            basic("Inverter Frequency", (195,), 100, False),
            # Grid
            basic("Grid frequency", (79,), 100, False),
            basic("Grid power", (169,), 1, True),
            basic("Grid LD power", (167,), 1, True),
            basic("Grid L2 power", (168,), 1, True),
            basic("Grid voltage", (150,), 10, False),
            basic("Grid CT power", (172,), 1, True),
            # Load
            basic("Load power", (178,), 1, True),
            basic("Load L1 power", (176,), 1, True),
            basic("Load L2 power", (177,), 1, True),
            # Solar
            basic("PV1 power", (186,), 1, True),
            basic("PV1 voltage", (109,), 10, False),
            basic("PV1 current", (110,), 10, False),
            basic("PV2 power", (187,), 1, True),
            basic("PV2 voltage", (111,), 10, False),
            basic("PV2 current", (112,), 10, False),
            # Power on outputs
            basic("AUX power", (166,), 1, True),
            # Energy
            basic("Day Active Energy", (60,), 10, True),
            basic("Day Battery Charge", (70,), 10, False),
            basic("Day Battery discharge", (71,), 10, False),
            basic("Day Grid Export", (77,), 10, False),
            basic("Day Grid Import", (76,), 10, False),
            basic("Day Load Energy", (84,), 10, False),
            basic("Day PV Energy", (108,), 10, False),
            basic("Day Reactive Energy", (61,), 10, True),
            basic("Month Grid Energy", (67,), 10, False),
            basic("Month Load Energy", (66,), 10, False),
            basic("Month PV Energy", (65,), 10, False),
            basic("Total Active Energy", (63, 64), 10, False),
            basic("Total Battery Charge", (72, 73), 10, False),
            basic("Total Battery Discharge", (74, 75), 10, False),
            basic("Total Grid Export", (81, 82), 10, False),
            basic("Total Grid Import", (78, 80), 10, False),
            basic("Total Load Energy", (85, 86), 10, False),
            basic("Total PV Energy", (96, 97), 10, False),
            basic("Year Grid Export", (98, 99), 10, False),
            basic("Year Load Energy", (87, 88), 10, False),
            basic("Year PV Energy", (68, 69), 10, False),
            # Settings
            basic("Control Mode", (200,), 1, False),
            basic("Grid Charge Battery current", (230,), 1, False),
        ),
        binary=(
            binary("Grid Charge Enabled", 232),
            binary("Priority Load", 243),
            binary("Solar Export", 247),
            binary("Use Timer", 248),
            binary("Grid Connected", 194, mutable=False),
        ),
    )


def register_sensors() -> dict[str, AnySensor]:
    """Return every predefined sensor keyed by its slug name."""
    definitions = _definitions()
    sensors: dict[str, AnySensor] = {}
    for group in (
        definitions.basic,
        definitions.binary,
        definitions.temperature,
        definitions.compound,
        (definitions.faults,),
    ):
        for sensor in group:
            sensors[slug_name(sensor.name)] = sensor
    return sensors