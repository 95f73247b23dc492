from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .banner import classify
from .models import STATUS_OPEN, ProbeResult, ProbeUnit, ScanConfig
from .ports import PORT_SERVICES
from .probes import negotiate_rdp, probe_http, recv_some

logger = logging.getLogger(__name__)


@dataclass
class ProbeContext:
    unit: ProbeUnit
    config: ScanConfig
    sock: socket.socket


Step = Callable[[ProbeContext], Optional[str]]


def passive_step(ctx: ProbeContext) -> Optional[str]:
    data = recv_some(ctx.sock, n=ctx.config.read_size, timeout=ctx.config.read_timeout)
    return classify(data)


def negotiate_step(ctx: ProbeContext) -> Optional[str]:
    return negotiate_rdp(ctx.sock, n=ctx.config.read_size, timeout=ctx.config.probe_timeout)


def lookup_step(ctx: ProbeContext) -> Optional[str]:
    return PORT_SERVICES.get(ctx.unit.port)


def http_step(ctx: ProbeContext) -> Optional[str]:
    return probe_http(ctx.sock, ctx.unit, ctx.config)


def pipeline(config: ScanConfig) -> Tuple[Step, ...]:
    # deep mode trusts a live handshake over the static port table
    fallback = negotiate_step if config.deep else lookup_step
    return (passive_step, fallback, http_step)


# first non-blank banner wins; a socket error skips the remaining steps
def run_steps(ctx: ProbeContext, steps: Tuple[Step, ...]) -> str:
    banner = ""
    for step in steps:
        try:
            found = step(ctx)
        except OSError as e:
            logger.debug("%s:%d %s aborted: %s", ctx.unit.host, ctx.unit.port, step.__name__, e)
            break
        if found and found.strip():
            banner = found
            break
    return banner.strip()


def probe_unit(unit: ProbeUnit, config: ScanConfig) -> ProbeResult:
    start = time.perf_counter()
    try:
        sock = socket.create_connection((unit.host, unit.port), timeout=config.connect_timeout)
    except OSError as e:
        logger.debug("%s:%d closed: %s", unit.host, unit.port, e)
        return ProbeResult.closed(unit, elapsed_s=round(time.perf_counter() - start, 4))

    elapsed = time.perf_counter() - start
    with sock:
        banner = run_steps(ProbeContext(unit=unit, config=config, sock=sock), pipeline(config))

    return ProbeResult(
        host=unit.host,
        port=unit.port,
        status=STATUS_OPEN,
        banner=banner,
        elapsed_s=round(elapsed, 4),
    )
