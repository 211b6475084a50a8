"""Modbus RTU framing and a small holding-register client for serial lines."""

from __future__ import annotations

import struct
from typing import Optional, Protocol

READ_HOLDING_REGISTERS = 0x03
WRITE_SINGLE_REGISTER = 0x06
EXCEPTION_FLAG = 0x80
MAX_READ_COUNT = 125

SLAVE = 1
BAUD_RATE = 9600
TIMEOUT = 2.0


class ModbusError(Exception):
    """A Modbus exchange failed: bad frame, timeout or device exception."""

    def __init__(self, message: str, exception_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.exception_code = exception_code


class SerialPort(Protocol):
    def read(self, size: int) -> bytes: ...

    def write(self, data: bytes) -> Optional[int]: ...

    def close(self) -> None: ...


def crc16(data: bytes) -> int:
    """Compute the Modbus CRC-16 of ``data``."""
    crc = 0xFFFF
    for byte in data:
        crc ^= byte
        for _ in range(8):
            crc = (crc >> 1) ^ 0xA001 if crc & 1 else crc >> 1
    return crc


def encode_frame(slave: int, pdu: bytes) -> bytes:
    """Wrap a PDU in an RTU frame: slave address, PDU, little-endian CRC."""
    if not 0 <= slave <= 0xFF:
        raise ValueError(f"slave address out of range: {slave}")
    body = bytes([slave]) + bytes(pdu)
    return body + struct.pack("<H", crc16(body))


def decode_frame(frame: bytes) -> tuple[int, bytes]:
    """Check an RTU frame's CRC and split it into ``(slave, pdu)``."""
    frame = bytes(frame)
    if len(frame) < 4:
        raise ModbusError(f"frame too short: {len(frame)} bytes")
    body = frame[:-2]
    (expected,) = struct.unpack("<H", frame[-2:])
    if crc16(body) != expected:
        raise ModbusError("CRC mismatch in frame")
    return body[0], body[1:]


def _check_u16(value: int, what: str) -> None:
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"{what} out of range: {value}")


class RtuClient:
    """Blocking Modbus RTU client talking to one slave over a serial port."""

    def __init__(self, port: SerialPort, slave: int = SLAVE) -> None:
        if not 0 <= slave <= 0xFF:
            raise ValueError(f"slave address out of range: {slave}")
        self.port = port
        self.slave = slave

    def __enter__(self) -> RtuClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def read_holding_registers(self, address: int, count: int) -> list[int]:
        """Read ``count`` consecutive holding registers starting at ``address``."""
        _check_u16(address, "address")
        if not 1 <= count <= MAX_READ_COUNT:
            raise ValueError(f"register count out of range: {count}")
        pdu = self._exchange(struct.pack(">BHH", READ_HOLDING_REGISTERS, address, count))
        byte_count = pdu[1] if len(pdu) > 1 else 0
        data = pdu[2:]
        if byte_count != 2 * count or len(data) != byte_count:
            raise ModbusError(
                f"expected {2 * count} data bytes, got {len(data)}"
            )
        return list(struct.unpack(f">{count}H", data))

    def write_single_register(self, address: int, value: int) -> None:
        """Write one holding register; the device must echo the request."""
        _check_u16(address, "address")
        _check_u16(value, "value")
        request = struct.pack(">BHH", WRITE_SINGLE_REGISTER, address, value)
        if self._exchange(request) != request:
            raise ModbusError("write response does not echo the request")

    def close(self) -> None:
        self.port.close()

    def _exchange(self, request: bytes) -> bytes:
        function = request[0]
        self.port.write(encode_frame(self.slave, request))

        head = self._read_exact(2)
        if head[1] == function | EXCEPTION_FLAG:
            frame = head + self._read_exact(3)
        elif head[1] != function:
            raise ModbusError(f"unexpected function code {head[1]:#04x} in response")
        elif function == READ_HOLDING_REGISTERS:
            byte_count = self._read_exact(1)
            frame = head + byte_count + self._read_exact(byte_count[0] + 2)
        else:
            frame = head + self._read_exact(6)

        slave, pdu = decode_frame(frame)
        if slave != self.slave:
            raise ModbusError(f"response from slave {slave}, expected {self.slave}")
        if pdu[0] & EXCEPTION_FLAG:
            raise ModbusError(f"device returned exception code {pdu[1]}", pdu[1])
        return pdu

    def _read_exact(self, size: int) -> bytes:
        buffer = bytearray()
        while len(buffer) < size:
            chunk = self.port.read(size - len(buffer))
            if not chunk:
                raise ModbusError("timed out waiting for response")
            buffer += chunk
        return bytes(buffer)