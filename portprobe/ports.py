from __future__ import annotations

import logging
from types import MappingProxyType
from typing import List, Mapping, Optional

logger = logging.getLogger(__name__)

MIN_PORT = 0
MAX_PORT = 65535

# Well-known port -> label used when nothing on the wire identified the service.
PORT_SERVICES: Mapping[int, str] = MappingProxyType({
    21: "FTP",
    22: "SSH",
    23: "Telnet",
    25: "SMTP",
    53: "DNS",
    80: "HTTP",
    110: "POP3",
    111: "RPCBind",
    135: "MSRPC",
    139: "NetBIOS-SSN",
    143: "IMAP",
    389: "LDAP",
    443: "HTTPS",
    445: "SMB",
    465: "SMTPS",
    587: "SMTP Submission",
    636: "LDAPS",
    873: "Rsync",
    993: "IMAPS",
    995: "POP3S",
    1080: "SOCKS",
    1433: "MSSQL",
    1521: "Oracle",
    2049: "NFS",
    2181: "ZooKeeper",
    2375: "Docker API",
    3306: "MySQL",
    3389: "RDP",
    5432: "PostgreSQL",
    5900: "VNC",
    5985: "WinRM",
    6379: "Redis",
    7001: "WebLogic",
    8080: "HTTP-Proxy",
    8443: "HTTPS-Alt",
    8888: "HTTP-Alt",
    9092: "Kafka",
    9200: "Elasticsearch",
    11211: "Memcached",
    27017: "MongoDB",
})

DEFAULT_PORTS: List[int] = sorted(PORT_SERVICES)


def _parse_token(part: str) -> List[int]:
    if "-" in part:
        start_s, end_s = part.split("-", 1)
        start = int(start_s)
        end = int(end_s)
        if start < MIN_PORT or end > MAX_PORT or start > end:
            raise ValueError(f"Invalid port range: {part}")
        return list(range(start, end + 1))
    p = int(part)
    if p < MIN_PORT or p > MAX_PORT:
        raise ValueError(f"Invalid port: {p}")
    return [p]


def parse_ports(spec: str) -> List[int]:
    """Comma list of ports and low-high ranges; bad tokens are skipped, not fatal."""
    ports = set()
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ports.update(_parse_token(part))
        except ValueError as e:
            logger.debug("skipping port token %r: %s", part, e)

    return sorted(ports)


def build_ports(spec: Optional[str] = None, full: bool = False) -> List[int]:
    """Precedence: full scan > explicit spec > default set."""
    if full:
        return list(range(1, MAX_PORT + 1))
    if spec is not None:
        return parse_ports(spec)
    return list(DEFAULT_PORTS)
