# samsynk

samsynk monitors a Sunsynk inverter over Modbus RTU on a serial line. It
reads the inverter's holding registers every 10 seconds and keeps the
readings as Prometheus-style gauges. It also serves a small HTTP API for
reading and writing individual sensors.

## Installation

```
pip install samsynk
```

To run the test suite, install the `test` extra:

```
pip install "samsynk[test]"
```

## Running

```
samsynk
```

By default the command opens `/dev/ttyUSB0` at 9600 baud, with 8 data bits,
1 stop bit and a 2 second timeout. It talks to Modbus slave 1 and serves HTTP
on `127.0.0.1:8080`. These options change the defaults:

| Option    | Default         | Meaning                         |
|-----------|-----------------|---------------------------------|
| `--tty`   | `/dev/ttyUSB0`  | serial device of the inverter   |
| `--host`  | `127.0.0.1`     | IPv4 address to listen on       |
| `--port`  | `8080`          | HTTP port                       |
| `--baud`  | `9600`          | serial baud rate                |
| `--slave` | `1`             | Modbus slave address            |

If the serial port cannot be opened, the command exits with
`Could not open port <tty>.`. Stop it with Ctrl-C.

## HTTP API

| Method | Path                     | Response |
|--------|--------------------------|----------|
| GET    | `/api/healthcheck`       | `Everything is OK!` |
| GET    | `/api/unstable/<sensor>` | The sensor's current value as text. Returns 404 `NOT FOUND` for an unknown sensor and 500 `INTERNAL_SERVER_ERROR` if the read fails. |
| POST   | `/api/unstable/<sensor>` | Writes the integer in the request body to the sensor. Returns 400 if the body is not an integer. Returns 404 if the sensor is unknown or refuses the write. |
| GET    | `/metrics`               | Every gauge in the Prometheus text format. |

Sensor names are slugs of their display names: the name is lower-cased, and
spaces and hyphens become underscores. For example, "Battery Power" becomes
`battery_power` and "Non-Essential Power" becomes `non_essential_power`.

```
curl http://127.0.0.1:8080/api/unstable/battery_soc
curl -X POST --data 1 http://127.0.0.1:8080/api/unstable/priority_load
```

Only sensors built as mutable accept writes. These are `grid_charge_enabled`,
`priority_load`, `solar_export` and `use_timer`, and they accept only `0` or
`1`.

## Sensors

`samsynk.sensor_definitions.register_sensors()` returns the predefined
sensors as a dict keyed by slug. The set covers battery, inverter, grid,
load, solar and energy readings, plus temperatures, compound power readings
and fault codes. The gauges of these sensors live in
`samsynk.sensor_definitions.REGISTRY`. `samsynk.sensor_definitions.SERIAL`
reads the device serial number, but it is not part of that dict.

The sensor kinds are in `samsynk.sensor`. Every kind has an async
`read(queue)` that returns a string and an async `write(queue, data)`.

- `BasicSensor`: combines one or more registers (low word first),
  optionally treats the result as signed, and divides it by a factor.
- `BinarySensor`: like `BasicSensor`, but a write must be `0` or `1`.
- `TemperatureSensor`: a scaled reading with 100 subtracted.
- `CompoundSensor`: a sum of single-register readings, each divided by its
  own factor. A negative factor marks a signed register. This kind can
  clamp its result to zero or take the absolute value.
- `FaultSensor`: decodes fault bitfields into text such as `F1, F8, F32`
  and sets a `code`-labelled gauge for each active fault.
  `faults_decode()` does the decoding on its own.
- `SerialSensor`: the serial number.
- `SDStatusSensor`: the SD card status, one of `Fault`, `Ok` or `Unknown`.

A write to a read-only sensor raises `SensorNotMutableError`. A write to a
kind that cannot be written raises `SensorNotWritableError`. Both are
subclasses of `SensorError`. Results are integers, and division truncates
toward zero.

## Using the library

```python
import asyncio

import serial

from samsynk.rtu import RtuClient
from samsynk.sensor_definitions import register_sensors
from samsynk.server import Server


async def run():
    port = serial.Serial("/dev/ttyUSB0", 9600, timeout=2.0)
    with RtuClient(port, 1) as client:
        async with Server(client, ((127, 0, 0, 1), 8080), register_sensors()) as server:
            await server.wait()


asyncio.run(run())
```

`Server.start()` starts three things: the Modbus worker
(`samsynk.modbus.query_modbus_source`), the periodic collector and the HTTP
server. It then waits up to 5 seconds for the healthcheck to answer, and
raises `RuntimeError` if it does not. Requests from all tasks go through one
`asyncio.Queue`, so only one Modbus exchange runs at a time.
`samsynk.server.create_app()` builds the `aiohttp` application on its own,
for use with a queue you supply.

`samsynk.rtu` holds the RTU framing (`crc16`, `encode_frame`,
`decode_frame`) and `RtuClient`. `RtuClient` works over any object with
`read`, `write` and `close`, such as a `serial.Serial`. It raises
`ModbusError` on a bad CRC, a timeout or a device exception.

## Testing without hardware

`samsynk.mock_device` lets the whole stack run without an inverter:

- `SerialInterface(port_a, port_b)` starts `socat` to link two
  pseudo-terminals. `socat` must be installed.
- `MockModbusService` answers read-holding-registers and
  write-single-register requests from an in-memory register dict. With no
  dict set, reads return zeros and writes are refused.
  `set_sensor_state(sensors, name, values)` fills in the registers behind a
  sensor.
- `ModbusServer(port, service)` serves request frames from a serial port
  (a path or an open port object) in `serve_forever()` until `stop()` is
  called.

## Limitations

The HTTP server has no authentication and listens on an IPv4 address only.
Only Modbus function codes 3 (read holding registers) and 6 (write single
register) are supported.