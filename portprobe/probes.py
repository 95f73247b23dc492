from __future__ import annotations

import logging
import socket
from typing import Optional

from .banner import classify
from .models import ProbeUnit, ScanConfig

logger = logging.getLogger(__name__)

RDP_NEGOTIATED_LABEL = "RDP Protocol Detected (negotiated)"

# TPKT + X.224 Connection Request carrying an RDP Negotiation Request (TLS | CredSSP)
RDP_NEG_REQUEST = bytes([
    0x03, 0x00, 0x00, 0x13,
    0x0E, 0xE0, 0x00, 0x00, 0x00, 0x00, 0x00,
    0x01, 0x00, 0x08, 0x00, 0x03, 0x00, 0x00, 0x00,
])
_X224_CONNECTION_CONFIRM = 0xD0


def recv_some(sock: socket.socket, n: int = 1024, timeout: float = 1.0) -> bytes:
    """
    Single bounded read. A timeout is "nothing to read" and returns b"";
    resets and other socket errors are left to the caller.
    """
    sock.settimeout(timeout)
    try:
        return sock.recv(n)
    except socket.timeout:
        return b""


def http_request(sock: socket.socket, host: str, n: int = 1024, timeout: float = 2.0) -> Optional[str]:
    req = f"GET / HTTP/1.0\r\nHost: {host}\r\n\r\n"
    sock.sendall(req.encode())
    data = recv_some(sock, n=n, timeout=timeout)
    return classify(data) or None


def probe_http(sock: socket.socket, unit: ProbeUnit, config: ScanConfig) -> Optional[str]:
    """
    GET / on the already-open socket; if that produced nothing (peer hung up,
    earlier probes left it unusable), one more try on a fresh connection.
    """
    try:
        banner = http_request(sock, unit.host, n=config.read_size, timeout=config.probe_timeout)
        if banner:
            return banner
    except OSError as e:
        logger.debug("%s:%d http probe failed: %s", unit.host, unit.port, e)

    try:
        with socket.create_connection((unit.host, unit.port), timeout=config.connect_timeout) as retry:
            return http_request(retry, unit.host, n=config.read_size, timeout=config.probe_timeout)
    except OSError as e:
        logger.debug("%s:%d http retry failed: %s", unit.host, unit.port, e)
        return None


def is_rdp_negotiated(buf: bytes) -> bool:
    return len(buf) >= 6 and buf[0] == 0x03 and buf[1] == 0x00 and buf[5] == _X224_CONNECTION_CONFIRM


def negotiate_rdp(sock: socket.socket, n: int = 1024, timeout: float = 2.0) -> Optional[str]:
    sock.sendall(RDP_NEG_REQUEST)
    reply = recv_some(sock, n=n, timeout=timeout)
    if is_rdp_negotiated(reply):
        return RDP_NEGOTIATED_LABEL
    return None
