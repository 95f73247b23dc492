import socket
import struct
import threading

import pytest

from portprobe.models import ScanConfig


def mysql_greeting(version: bytes = b"8.0.36", plugin: bytes = b"caching_sha2_password") -> bytes:
    payload = (
        b"\x0a"
        + version + b"\x00"
        + struct.pack("<I", 42)  # connection id
        + b"abcdefgh\x00"  # auth-plugin-data part 1 + filler
        + b"\xff\xf7\x21\x02\x00\xff\xdf\x15"
        + b"\x00" * 10
        + b"ijklmnopqrst\x00"
        + plugin + b"\x00"
    )
    return len(payload).to_bytes(3, "little") + b"\x00" + payload


HTTP_RESPONSE = b"HTTP/1.0 200 OK\r\nContent-Type: text/html\r\nServer: TestHTTP/1.2\r\n\r\n<html></html>"
RDP_CONFIRM = b"\x03\x00\x00\x13\x0e\xd0\x00\x00\x12\x34\x00\x02\x1f\x08\x00\x02\x00\x00\x00"


@pytest.fixture
def fast_config():
    return ScanConfig(concurrency=20, connect_timeout=1.0, read_timeout=0.2, probe_timeout=0.5)


def _handle(handler, conn):
    with conn:
        conn.settimeout(3)
        try:
            handler(conn)
        except OSError:
            pass


@pytest.fixture
def tcp_server():
    """Start loopback servers running ``handler(conn)`` per connection; returns the port."""
    servers = []

    def start(handler):
        srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        srv.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        srv.bind(("127.0.0.1", 0))
        srv.listen(16)
        srv.settimeout(0.1)
        stop = threading.Event()

        def loop():
            while not stop.is_set():
                try:
                    conn, _ = srv.accept()
                except socket.timeout:
                    continue
                except OSError:
                    break
                threading.Thread(target=_handle, args=(handler, conn), daemon=True).start()

        t = threading.Thread(target=loop, daemon=True)
        t.start()
        servers.append((srv, stop, t))
        return srv.getsockname()[1]

    yield start

    for srv, stop, t in servers:
        stop.set()
        t.join(timeout=1)
        srv.close()


@pytest.fixture
def closed_port():
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port
