"""Serialise register reads and writes from many tasks onto one Modbus client."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from .helpers import group_consecutive


@dataclass(frozen=True)
class ReadQuery:
    """Read the given holding registers."""

    registers: tuple[int, ...]


@dataclass(frozen=True)
class WriteQuery:
    """Write ``value`` into one holding register."""

    register: int
    value: int


Query = Union[ReadQuery, WriteQuery]
Job = tuple[Query, "asyncio.Future[Optional[list[int]]]"]
# Jobs are put on an asyncio.Queue; putting None stops the worker.
ModbusQueue = "asyncio.Queue[Optional[Job]]"


class RegisterClient(Protocol):
    def read_holding_registers(self, address: int, count: int) -> list[int]: ...

    def write_single_register(self, address: int, value: int) -> None: ...


async def _submit(queue: asyncio.Queue, query: Query) -> Optional[list[int]]:
    future: asyncio.Future = asyncio.get_running_loop().create_future()
    await queue.put((query, future))
    return await future


async def modbus_read(queue: asyncio.Queue, registers: Iterable[int]) -> list[int]:
    """Read registers through the queue; values come back in ascending register order."""
    result = await _submit(queue, ReadQuery(tuple(registers)))
    return list(result or [])


async def modbus_write(queue: asyncio.Queue, register: int, value: int) -> None:
    """Write one register through the queue and wait for it to complete."""
    await _submit(queue, WriteQuery(register, value))


async def _execute(client: RegisterClient, query: Query) -> Optional[list[int]]:
    if isinstance(query, ReadQuery):
        values: list[int] = []
        for start, count in group_consecutive(query.registers):
            if count:
                values.extend(
                    await asyncio.to_thread(client.read_holding_registers, start, count)
                )
        return values
    if isinstance(query, WriteQuery):
        await asyncio.to_thread(client.write_single_register, query.register, query.value)
        return None
    raise TypeError(f"unsupported query: {query!r}")


async def query_modbus_source(client: RegisterClient, queue: asyncio.Queue) -> None:
    """Run queued queries one at a time against ``client`` until ``None`` is queued.

    A failing query raises its error in the caller waiting on it; the
    worker carries on with the next job.
    """
    while True:
        job = await queue.get()
        try:
            if job is None:
                return
            query, future = job
            try:
                result = await _execute(client, query)
            except Exception as exc:  # delivered to the waiting caller
                if not future.done():
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)
        finally:
            queue.task_done()