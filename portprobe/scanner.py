from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterator, List, Optional

from .models import ProbeResult, ProbeUnit, ScanConfig
from .prober import probe_unit

logger = logging.getLogger(__name__)

ResultCallback = Callable[[ProbeResult], None]


def iter_units(targets: List[str], ports: List[int]) -> Iterator[ProbeUnit]:
    for t in targets:
        for p in ports:
            yield ProbeUnit(host=t, port=p)


def scan(
    targets: List[str],
    ports: List[int],
    config: ScanConfig,
    on_result: Optional[ResultCallback] = None,
) -> List[ProbeResult]:
    """
    Probe every (target, port) pair with at most ``config.concurrency`` units in flight.

    The dispatch loop blocks on a counting semaphore before submitting each unit,
    so the executor queue never holds more than the limit (full-range scans over
    large blocks would otherwise mean millions of pending futures). Returns one
    result per unit, in completion order.
    """
    if config.concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    results: List[ProbeResult] = []
    results_lock = threading.Lock()
    slots = threading.BoundedSemaphore(config.concurrency)

    def run(unit: ProbeUnit) -> None:
        try:
            try:
                result = probe_unit(unit, config)
            except Exception:
                logger.exception("probe of %s:%d crashed; recording as closed", unit.host, unit.port)
                result = ProbeResult.closed(unit)

            with results_lock:
                results.append(result)

            if on_result is not None:
                try:
                    on_result(result)
                except Exception:
                    logger.exception("result callback failed for %s:%d", unit.host, unit.port)
        finally:
            slots.release()

    with ThreadPoolExecutor(max_workers=config.concurrency, thread_name_prefix="probe") as pool:
        for unit in iter_units(targets, ports):
            slots.acquire()
            pool.submit(run, unit)

    logger.debug("scan finished: %d results", len(results))
    return results
