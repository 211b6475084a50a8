"""Sunsynk inverter monitoring over Modbus RTU, with an HTTP API and Prometheus metrics."""

__version__ = "2025.8.2"