"""A small Prometheus-style metrics registry with integer gauges."""

from __future__ import annotations

import re
import threading
from typing import Union

_METRIC_NAME = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")
_LABEL_NAME = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

Sample = tuple[tuple[tuple[str, str], ...], int]


class AlreadyRegisteredError(Exception):
    """A collector with the same metric name is already in the registry."""


def _check_descriptor(name: str, help: str) -> None:
    if not _METRIC_NAME.match(name):
        raise ValueError(f"invalid metric name: {name!r}")
    if not help:
        raise ValueError(f"metric {name!r} has an empty help text")


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def _escape_label_value(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


class IntGauge:
    """An integer value that can go up and down."""

    def __init__(self, name: str, help: str) -> None:
        _check_descriptor(name, help)
        self.name = name
        self.help = help
        self._value = 0

    def set(self, value: int) -> None:
        self._value = int(value)

    def get(self) -> int:
        return self._value

    def _samples(self) -> list[Sample]:
        return [((), self._value)]


class IntGaugeVec:
    """A family of integer gauges told apart by label values."""

    def __init__(self, name: str, help: str, label_names: list[str]) -> None:
        _check_descriptor(name, help)
        label_names = list(label_names)
        for label in label_names:
            if not _LABEL_NAME.match(label) or label.startswith("__"):
                raise ValueError(f"invalid label name: {label!r}")
        if len(set(label_names)) != len(label_names):
            raise ValueError(f"duplicate label names in {label_names!r}")
        self.name = name
        self.help = help
        self.label_names = tuple(label_names)
        self._children: dict[tuple[str, ...], IntGauge] = {}
        self._lock = threading.Lock()

    def with_label_values(self, *args: str) -> IntGauge:
        """Return the gauge for these label values, creating it on first use."""
        if len(args) != len(self.label_names):
            raise ValueError(
                f"expected {len(self.label_names)} label values, got {len(args)}"
            )
        key = tuple(str(arg) for arg in args)
        with self._lock:
            child = self._children.get(key)
            if child is None:
                child = IntGauge(self.name, self.help)
                self._children[key] = child
            return child

    def _samples(self) -> list[Sample]:
        with self._lock:
            children = sorted(self._children.items())
        return [
            (tuple(zip(self.label_names, values)), child.get())
            for values, child in children
        ]


Collector = Union[IntGauge, IntGaugeVec]


class Registry:
    """Holds collectors by metric name and renders them in the text format."""

    def __init__(self) -> None:
        self._collectors: dict[str, Collector] = {}
        self._lock = threading.Lock()

    def register(self, collector: Collector) -> None:
        with self._lock:
            if collector.name in self._collectors:
                raise AlreadyRegisteredError(
                    f"a metric named {collector.name!r} is already registered"
                )
            self._collectors[collector.name] = collector

    def encode_text(self) -> str:
        """Render every non-empty metric family, sorted by name."""
        with self._lock:
            collectors = sorted(self._collectors.items())
        lines: list[str] = []
        for name, collector in collectors:
            samples = collector._samples()
            if not samples:
                continue
            lines.append(f"# HELP {name} {_escape_help(collector.help)}")
            lines.append(f"# TYPE {name} gauge")
            for labels, value in samples:
                if labels:
                    pairs = ",".join(
                        f'{label}="{_escape_label_value(text)}"' for label, text in labels
                    )
                    lines.append(f"{name}{{{pairs}}} {value}")
                else:
                    lines.append(f"{name} {value}")
        return "\n".join(lines) + "\n" if lines else ""