"""Small helpers shared by the sensor and Modbus layers."""

from __future__ import annotations

from collections.abc import Iterable

_SIGN_THRESHOLD = 0x7FFF
_SIGN_OFFSET = 0xFFFF


def signed(raw_value: int) -> int:
    """Interpret an unsigned 16-bit register value as a signed one.

    Values above 0x7FFF are shifted down by 0xFFFF, which is how the
    inverter reports negative readings.
    """
    if raw_value <= _SIGN_THRESHOLD:
        return raw_value
    return raw_value - _SIGN_OFFSET


def slug_name(name: str) -> str:
    """Turn a human-readable sensor name into a metric/URL friendly slug."""
    return name.strip().lower().replace(" ", "_").replace("-", "_")


def group_consecutive(registers: Iterable[int]) -> list[tuple[int, int]]:
    """Group registers into runs of consecutive addresses.

    Returns ``(start, length)`` pairs in ascending order, e.g.
    ``[1, 2, 3, 5, 6, 9] -> [(1, 3), (5, 2), (9, 1)]``.
    An empty input yields a single ``(0, 0)`` run.
    """
    runs: list[tuple[int, int]] = []
    start = 0
    length = 0
    previous: int | None = None
    for register in sorted(registers):
        if previous is not None and previous + 1 == register:
            length += 1
        else:
            if previous is not None:
                runs.append((start, length))
            start = register
            length = 1
        previous = register
    runs.append((start, length))
    return runs