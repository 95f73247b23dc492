from __future__ import annotations

import argparse
import logging
import time

from .logger import create_logger
from .models import ScanConfig
from .output import FORMATS, FileSink, LivePrinter, print_results
from .ports import build_ports
from .scanner import scan
from .targets import expand_targets

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    defaults = ScanConfig()
    p = argparse.ArgumentParser(prog="portprobe", description="TCP port scanner with service fingerprinting")
    p.add_argument("-t", "--targets", required=True, help="IP, range (10.0.0.1-20), CIDR, or a comma list of these")
    p.add_argument("-p", "--ports", help="Port spec: 1-1024 or 22,80,443 or mixed (default: common ports)")
    p.add_argument("--full", action="store_true", help="Scan all ports 1-65535 (overrides --ports)")
    p.add_argument("--deep", action="store_true", help="Confirm services with live handshakes instead of the port table")
    p.add_argument("-c", "--concurrency", type=int, default=defaults.concurrency,
                   help=f"Max connections in flight (default: {defaults.concurrency})")
    p.add_argument("--connect-timeout", type=float, default=defaults.connect_timeout,
                   help=f"Connect timeout seconds (default: {defaults.connect_timeout})")
    p.add_argument("--read-timeout", type=float, default=defaults.read_timeout,
                   help=f"Passive banner read timeout seconds (default: {defaults.read_timeout})")
    p.add_argument("--probe-timeout", type=float, default=defaults.probe_timeout,
                   help=f"Active probe read timeout seconds (default: {defaults.probe_timeout})")
    p.add_argument("--open-only", action="store_true", help="Only display/save open ports")
    p.add_argument("--format", choices=FORMATS, help="Save results to file")
    p.add_argument("--out-dir", default="PortScans", help="Output directory for saved files")
    p.add_argument("--progress-every", type=int, default=5000, help="Progress update interval (default: 5000)")
    p.add_argument("-v", "--verbose", action="count", default=0, help="-v for info, -vv for debug logging")
    p.add_argument("--log-file", help="Also write logs to this file")
    return p


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    create_logger(level, args.log_file)

    if args.concurrency < 1:
        parser.error("--concurrency must be >= 1")

    try:
        targets = expand_targets(args.targets)
    except ValueError as e:
        print(f"[!] {e}")
        return 2

    ports = build_ports(args.ports, full=args.full)
    if not ports:
        print(f"[!] No valid ports in '{args.ports}'")
        return 2

    config = ScanConfig(
        concurrency=args.concurrency,
        connect_timeout=args.connect_timeout,
        read_timeout=args.read_timeout,
        probe_timeout=args.probe_timeout,
        deep=args.deep,
    )

    total = len(targets) * len(ports)
    print(f"[*] Targets: {len(targets)} | Ports: {len(ports)} | Total scans: {total}")
    logger.info("scan config: %s", config)

    start = time.perf_counter()
    results = scan(targets, ports, config, on_result=LivePrinter(total, progress_every=args.progress_every))
    elapsed = time.perf_counter() - start

    print_results(results, open_only=args.open_only)
    print(f"Finished in {elapsed:.2f}s")

    if args.format:
        path = FileSink(args.format, out_dir=args.out_dir, open_only=args.open_only).write(results)
        print(f"Saved results to {path}")

    return 0
