import asyncio
from contextlib import asynccontextmanager

import pytest

from samsynk.helpers import slug_name
from samsynk.modbus import query_modbus_source
from samsynk.sensor import (
    BasicSensor,
    BinarySensor,
    CompoundSensor,
    FaultSensor,
    TemperatureSensor,
)
from samsynk.sensor_definitions import REGISTRY, SERIAL, register_sensors


class FakeClient:
    def __init__(self, values):
        self.values = dict(values)

    def read_holding_registers(self, address, count):
        return [self.values.get(address + i, 0) for i in range(count)]

    def write_single_register(self, address, value):
        self.values[address] = value


@asynccontextmanager
async def worker(values):
    queue = asyncio.Queue()
    task = asyncio.create_task(query_modbus_source(FakeClient(values), queue))
    try:
        yield queue
    finally:
        await queue.put(None)
        await task


def test_keys_are_slugs_of_names():
    sensors = register_sensors()
    assert all(key == slug_name(sensor.name) for key, sensor in sensors.items())


def test_total_count_matches_tables():
    assert len(register_sensors()) == 49 + 5 + 4 + 3 + 1


def test_repeated_calls_share_sensors():
    first = register_sensors()
    second = register_sensors()
    assert first.keys() == second.keys()
    assert all(first[key] is second[key] for key in first)


def test_sensor_kinds():
    sensors = register_sensors()
    assert isinstance(sensors["battery_power"], BasicSensor)
    assert sensors["battery_power"].name == "Battery Power"
    assert tuple(sensors["battery_power"].registers) == (190,)
    assert isinstance(sensors["priority_load"], BinarySensor)
    assert tuple(sensors["priority_load"].registers) == (243,)
    assert isinstance(sensors["battery_temperature"], TemperatureSensor)
    assert tuple(sensors["battery_temperature"].registers) == (182,)
    assert isinstance(sensors["non_essential_power"], CompoundSensor)
    assert tuple(sensors["non_essential_power"].registers) == (172, 176)
    assert isinstance(sensors["sunsynk_fault_codes"], FaultSensor)
    assert tuple(sensors["sunsynk_fault_codes"].registers) == (103, 104, 105, 106)


def test_mutability():
    sensors = register_sensors()
    assert sensors["priority_load"].is_mut is True
    assert sensors["grid_connected"].is_mut is False
    assert sensors["battery_power"].is_mut is False


@pytest.mark.asyncio
async def test_serial_sensor_reads_its_registers():
    async with worker({3: 513, 4: 513, 5: 513, 6: 513, 7: 513}) as queue:
        assert await SERIAL.read(queue) == "2121212121"


def test_metrics_registered_in_definitions_registry():
    register_sensors()
    text = REGISTRY.encode_text()
    assert "# TYPE battery_voltage gauge" in text


@pytest.mark.asyncio
async def test_read_battery_current_through_queue():
    sensors = register_sensors()
    async with worker({191: 500}) as queue:
        assert await sensors["battery_current"].read(queue) == "5"


@pytest.mark.asyncio
async def test_read_two_register_total():
    sensors = register_sensors()
    async with worker({63: 100, 64: 0}) as queue:
        assert await sensors["total_active_energy"].read(queue) == "10"