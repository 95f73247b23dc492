import time
from dataclasses import replace

from portprobe.banner import RDP_LABEL
from portprobe.models import STATUS_CLOSED, STATUS_OPEN, ProbeUnit
from portprobe.prober import (
    ProbeContext,
    http_step,
    lookup_step,
    negotiate_step,
    passive_step,
    pipeline,
    probe_unit,
    run_steps,
)
from portprobe.probes import RDP_NEGOTIATED_LABEL

from conftest import HTTP_RESPONSE, RDP_CONFIRM, mysql_greeting


def http_only(conn):
    if conn.recv(1024).startswith(b"GET "):
        conn.sendall(HTTP_RESPONSE)


def rdp_only(conn):
    if conn.recv(1024)[:2] == b"\x03\x00":
        conn.sendall(RDP_CONFIRM)


def test_closed_port(closed_port, fast_config):
    r = probe_unit(ProbeUnit("127.0.0.1", closed_port), fast_config)
    assert r.status == STATUS_CLOSED
    assert r.banner == ""
    assert r.elapsed_s < fast_config.connect_timeout + 0.5


def test_passive_mysql_greeting(tcp_server, fast_config):
    port = tcp_server(lambda conn: conn.sendall(mysql_greeting()))
    r = probe_unit(ProbeUnit("127.0.0.1", port), fast_config)
    assert r.status == STATUS_OPEN
    assert r.banner == "MySQL 8.0.36 caching_sha2_password"


def test_passive_text_banner(tcp_server, fast_config):
    port = tcp_server(lambda conn: conn.sendall(b"SSH-2.0-OpenSSH_9.6\r\n"))
    r = probe_unit(ProbeUnit("127.0.0.1", port), fast_config)
    assert r.banner == "SSH-2.0-OpenSSH_9.6"


def test_passive_rdp_signature(tcp_server, fast_config):
    port = tcp_server(lambda conn: conn.sendall(b"\x03\x00\x00\x0b\x02\xf0\x80\x00\x00\x00\x00"))
    r = probe_unit(ProbeUnit("127.0.0.1", port), fast_config)
    assert r.banner == RDP_LABEL


def test_silent_service_answers_http(tcp_server, fast_config):
    port = tcp_server(http_only)
    r = probe_unit(ProbeUnit("127.0.0.1", port), fast_config)
    assert r.status == STATUS_OPEN
    assert r.banner == "HTTP/1.0 200 OK | Server: TestHTTP/1.2"


def test_deep_mode_confirms_rdp(tcp_server, fast_config):
    port = tcp_server(rdp_only)
    r = probe_unit(ProbeUnit("127.0.0.1", port), replace(fast_config, deep=True))
    assert r.banner == RDP_NEGOTIATED_LABEL


def test_deep_mode_falls_through_to_http(tcp_server, fast_config):
    # the RDP request spoils the first connection; the HTTP retry uses a new one
    port = tcp_server(http_only)
    r = probe_unit(ProbeUnit("127.0.0.1", port), replace(fast_config, deep=True))
    assert r.banner == "HTTP/1.0 200 OK | Server: TestHTTP/1.2"


def test_open_unknown_service(tcp_server, fast_config):
    port = tcp_server(rdp_only)
    r = probe_unit(ProbeUnit("127.0.0.1", port), fast_config)
    assert r.status == STATUS_OPEN
    assert r.banner == ""


def test_pipeline_order(fast_config):
    assert pipeline(fast_config) == (passive_step, lookup_step, http_step)
    assert pipeline(replace(fast_config, deep=True)) == (passive_step, negotiate_step, http_step)


def test_lookup_step_uses_port_table(fast_config):
    ctx = ProbeContext(unit=ProbeUnit("10.0.0.1", 3306), config=fast_config, sock=None)
    assert lookup_step(ctx) == "MySQL"
    ctx = ProbeContext(unit=ProbeUnit("10.0.0.1", 40000), config=fast_config, sock=None)
    assert lookup_step(ctx) is None


def test_run_steps_stops_at_first_banner(fast_config):
    seen = []

    def blank(ctx):
        seen.append("blank")
        return "   "

    def found(ctx):
        seen.append("found")
        return " SSH \r\n"

    def never(ctx):
        seen.append("never")
        return "nope"

    ctx = ProbeContext(unit=ProbeUnit("10.0.0.1", 22), config=fast_config, sock=None)
    assert run_steps(ctx, (blank, found, never)) == "SSH"
    assert seen == ["blank", "found"]


def test_run_steps_io_error_aborts_remaining(fast_config):
    seen = []

    def reset(ctx):
        seen.append("reset")
        raise ConnectionResetError("peer reset")

    def after(ctx):
        seen.append("after")
        return "late"

    ctx = ProbeContext(unit=ProbeUnit("10.0.0.1", 22), config=fast_config, sock=None)
    assert run_steps(ctx, (reset, after)) == ""
    assert seen == ["reset"]


def test_probe_reports_open_within_bounded_time(tcp_server, fast_config):
    port = tcp_server(lambda conn: time.sleep(2))
    start = time.perf_counter()
    r = probe_unit(ProbeUnit("127.0.0.1", port), fast_config)
    took = time.perf_counter() - start
    assert r.status == STATUS_OPEN
    # passive read + one HTTP attempt + one retry, each bounded by its timeout
    budget = fast_config.read_timeout + 2 * (fast_config.probe_timeout + fast_config.connect_timeout)
    assert took < budget + 1.0
