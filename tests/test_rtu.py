import struct

import pytest

from samsynk.rtu import (
    ModbusError,
    RtuClient,
    crc16,
    decode_frame,
    encode_frame,
)

KNOWN_FRAME = bytes.fromhex("010300000001840a")


class FakePort:
    def __init__(self, response=b""):
        self.pending = bytearray(response)
        self.written = bytearray()
        self.closed = False

    def read(self, size):
        chunk = bytes(self.pending[:size])
        del self.pending[:size]
        return chunk

    def write(self, data):
        self.written += data
        return len(data)

    def close(self):
        self.closed = True


class TricklePort(FakePort):
    def read(self, size):
        return super().read(1)


def test_encode_known_frame():
    assert encode_frame(1, bytes([0x03, 0x00, 0x00, 0x00, 0x01])) == KNOWN_FRAME


def test_decode_known_frame():
    assert decode_frame(KNOWN_FRAME) == (1, bytes([0x03, 0x00, 0x00, 0x00, 0x01]))


def test_crc_over_frame_with_crc_is_zero():
    frame = encode_frame(7, b"\x06\x00\xdc\x00\x2d")
    assert crc16(frame) == 0


def test_frame_round_trip():
    pdu = b"\x03\x00\xb7\x00\x02"
    assert decode_frame(encode_frame(17, pdu)) == (17, pdu)


def test_decode_rejects_bad_crc():
    corrupted = KNOWN_FRAME[:-1] + bytes([KNOWN_FRAME[-1] ^ 0xFF])
    with pytest.raises(ModbusError):
        decode_frame(corrupted)


def test_decode_rejects_short_frame():
    with pytest.raises(ModbusError):
        decode_frame(b"\x01\x03")


def test_encode_rejects_bad_slave():
    with pytest.raises(ValueError):
        encode_frame(256, b"\x03")


def _read_response(slave, values):
    data = struct.pack(f">{len(values)}H", *values)
    return encode_frame(slave, bytes([0x03, len(data)]) + data)


def test_read_holding_registers():
    port = FakePort(_read_response(1, [240, 1110]))
    client = RtuClient(port, 1)
    assert client.read_holding_registers(183, 2) == [240, 1110]
    assert bytes(port.written) == encode_frame(1, struct.pack(">BHH", 3, 183, 2))


def test_read_with_partial_reads():
    port = TricklePort(_read_response(1, [513, 513, 513]))
    client = RtuClient(port, 1)
    assert client.read_holding_registers(3, 3) == [513, 513, 513]


def test_read_device_exception():
    port = FakePort(encode_frame(1, bytes([0x83, 0x02])))
    client = RtuClient(port, 1)
    with pytest.raises(ModbusError) as info:
        client.read_holding_registers(0, 1)
    assert info.value.exception_code == 2


def test_read_timeout():
    client = RtuClient(FakePort(), 1)
    with pytest.raises(ModbusError):
        client.read_holding_registers(0, 1)


def test_read_wrong_slave():
    client = RtuClient(FakePort(_read_response(2, [5])), 1)
    with pytest.raises(ModbusError):
        client.read_holding_registers(0, 1)


def test_read_wrong_count():
    client = RtuClient(FakePort(_read_response(1, [5])), 1)
    with pytest.raises(ModbusError):
        client.read_holding_registers(0, 2)


@pytest.mark.parametrize("count", [0, 126])
def test_read_rejects_bad_count(count):
    client = RtuClient(FakePort(), 1)
    with pytest.raises(ValueError):
        client.read_holding_registers(0, count)


def test_write_single_register():
    request = struct.pack(">BHH", 6, 220, 45)
    port = FakePort(encode_frame(1, request))
    client = RtuClient(port, 1)
    client.write_single_register(220, 45)
    assert bytes(port.written) == encode_frame(1, request)
    assert port.pending == bytearray()


def test_write_echo_mismatch():
    port = FakePort(encode_frame(1, struct.pack(">BHH", 6, 220, 46)))
    client = RtuClient(port, 1)
    with pytest.raises(ModbusError):
        client.write_single_register(220, 45)


def test_write_rejects_large_value():
    client = RtuClient(FakePort(), 1)
    with pytest.raises(ValueError):
        client.write_single_register(220, 0x10000)


def test_close_and_context_manager():
    port = FakePort()
    with RtuClient(port, 1) as client:
        assert client.slave == 1
    assert port.closed is True