from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Tuple

STATUS_OPEN = "open"
STATUS_CLOSED = "closed"


@dataclass(frozen=True)
class ProbeUnit:
    host: str
    port: int


@dataclass(frozen=True)
class ProbeResult:
    host: str
    port: int
    status: str
    banner: str = ""
    elapsed_s: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.status == STATUS_OPEN

    @classmethod
    def closed(cls, unit: ProbeUnit, elapsed_s: float = 0.0) -> "ProbeResult":
        return cls(host=unit.host, port=unit.port, status=STATUS_CLOSED, banner="", elapsed_s=elapsed_s)


@dataclass(frozen=True)
class ScanConfig:
    concurrency: int = 1000
    connect_timeout: float = 3.0
    read_timeout: float = 1.0
    probe_timeout: float = 2.0
    read_size: int = 1024
    deep: bool = False


def sort_key(r: ProbeResult) -> Tuple[int, int]:
    """Numeric (address, port) ordering; the expander only emits IPv4 strings."""
    return int(ipaddress.IPv4Address(r.host)), r.port
