import asyncio
import contextlib

import pytest

from samsynk.modbus import (
    ReadQuery,
    WriteQuery,
    modbus_read,
    modbus_write,
    query_modbus_source,
)
from samsynk.rtu import ModbusError


class FakeClient:
    def __init__(self, registers=None, error=None):
        self.registers = dict(registers or {})
        self.error = error
        self.reads = []
        self.writes = []

    def read_holding_registers(self, address, count):
        if self.error is not None:
            raise self.error
        self.reads.append((address, count))
        return [self.registers[r] for r in range(address, address + count)]

    def write_single_register(self, address, value):
        if self.error is not None:
            raise self.error
        self.writes.append((address, value))
        self.registers[address] = value


@contextlib.asynccontextmanager
async def running(client):
    queue = asyncio.Queue()
    task = asyncio.create_task(query_modbus_source(client, queue))
    try:
        yield queue
    finally:
        await queue.put(None)
        await asyncio.wait_for(task, 5)


REGISTERS = {1: 10, 2: 20, 3: 30, 5: 50, 6: 60, 9: 90}


@pytest.mark.asyncio
async def test_read_groups_consecutive_registers():
    client = FakeClient(REGISTERS)
    async with running(client) as queue:
        values = await modbus_read(queue, [1, 2, 3, 5, 6, 9])
    assert values == [10, 20, 30, 50, 60, 90]
    assert client.reads == [(1, 3), (5, 2), (9, 1)]


@pytest.mark.asyncio
async def test_read_returns_values_in_register_order():
    client = FakeClient(REGISTERS)
    async with running(client) as queue:
        values = await modbus_read(queue, [3, 1, 2])
    assert values == [REGISTERS[1], REGISTERS[2], REGISTERS[3]]


@pytest.mark.asyncio
async def test_empty_read_makes_no_request():
    client = FakeClient(REGISTERS)
    async with running(client) as queue:
        values = await modbus_read(queue, [])
    assert values == []
    assert client.reads == []


@pytest.mark.asyncio
async def test_write_then_read_back():
    client = FakeClient({220: 0})
    async with running(client) as queue:
        await modbus_write(queue, 220, 45)
        values = await modbus_read(queue, [220])
    assert client.writes == [(220, 45)]
    assert values == [45]


@pytest.mark.asyncio
async def test_error_reaches_caller_and_worker_continues():
    client = FakeClient(REGISTERS, error=ModbusError("timed out"))
    async with running(client) as queue:
        with pytest.raises(ModbusError):
            await modbus_read(queue, [1])
        client.error = None
        values = await modbus_read(queue, [9])
    assert values == [REGISTERS[9]]


@pytest.mark.asyncio
async def test_concurrent_callers_get_their_own_results():
    client = FakeClient(REGISTERS)
    async with running(client) as queue:
        results = await asyncio.gather(
            modbus_read(queue, [1]),
            modbus_read(queue, [5, 6]),
            modbus_read(queue, [9]),
        )
    assert results == [[10], [50, 60], [90]]


@pytest.mark.asyncio
async def test_none_stops_worker():
    queue = asyncio.Queue()
    task = asyncio.create_task(query_modbus_source(FakeClient(), queue))
    await queue.put(None)
    result = await asyncio.wait_for(task, 5)
    assert result is None
    assert task.done()


@pytest.mark.asyncio
async def test_unknown_query_raises_type_error():
    client = FakeClient(REGISTERS)
    queue = asyncio.Queue()
    task = asyncio.create_task(query_modbus_source(client, queue))
    future = asyncio.get_running_loop().create_future()
    await queue.put(("bogus", future))
    with pytest.raises(TypeError):
        await future
    values = await modbus_read(queue, [9])
    assert values == [90]
    assert client.reads == [(9, 1)]
    await queue.put(None)
    await asyncio.wait_for(task, 5)


def test_queries_compare_by_value():
    assert ReadQuery((183,)) == ReadQuery((183,))
    assert WriteQuery(220, 45) == WriteQuery(220, 45)
    assert WriteQuery(220, 45) != WriteQuery(220, 46)