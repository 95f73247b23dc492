from __future__ import annotations

import csv
import html
import json
import os
import sys
import threading
import time
from datetime import datetime
from typing import IO, List, Optional, Protocol

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from .models import ProbeResult, sort_key

COLUMNS = ["ip", "port", "status", "elapsed_s", "banner"]
FORMATS = ("txt", "csv", "json", "html", "xlsx")


def format_row(r: ProbeResult) -> str:
    banner = r.banner or "null"
    return f"{r.host:<15} | Port {r.port:<5} | {r.status:<6} ({r.elapsed_s:.4f}s) | Banner: {banner}"


def _row_values(r: ProbeResult) -> list:
    return [r.host, r.port, r.status, r.elapsed_s, r.banner]


def print_results(results: List[ProbeResult], open_only: bool, stream: Optional[IO[str]] = None) -> None:
    stream = stream or sys.stdout
    open_count = sum(1 for r in results if r.is_open)
    print(f"Found {open_count} open ports", file=stream)

    for r in sorted(results, key=sort_key):
        if open_only and not r.is_open:
            continue
        print(format_row(r), file=stream)


def _write_xlsx(path: str, rows: List[ProbeResult]) -> None:
    wb = Workbook()
    ws = wb.active
    ws.title = "portscan"
    ws.append(COLUMNS)
    values = [_row_values(r) for r in rows]
    for row in values:
        ws.append(row)

    for col_idx, header in enumerate(COLUMNS, start=1):
        max_len = max([len(header)] + [len(str(row[col_idx - 1])) for row in values])
        ws.column_dimensions[get_column_letter(col_idx)].width = min(max(10, max_len + 2), 60)
    ws.auto_filter.ref = f"A1:{get_column_letter(len(COLUMNS))}{len(rows) + 1}"
    ws.freeze_panes = "A2"
    wb.save(path)


def save_results(
    results: List[ProbeResult],
    fmt: str,
    out_dir: str = "PortScans",
    open_only: bool = False,
) -> str:
    if fmt not in FORMATS:
        raise ValueError(f"Unsupported format: {fmt}")

    os.makedirs(out_dir, exist_ok=True)
    ts = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    path = os.path.join(out_dir, f"{ts}_port_scan.{fmt}")

    rows = sorted((r for r in results if (r.is_open or not open_only)), key=sort_key)
    open_count = sum(1 for r in results if r.is_open)

    if fmt == "txt":
        with open(path, "w", encoding="utf-8") as f:
            f.write(f"Found {open_count} open ports\n")
            for r in rows:
                f.write(format_row(r) + "\n")

    elif fmt == "csv":
        with open(path, "w", newline="", encoding="utf-8") as f:
            w = csv.writer(f)
            w.writerow(COLUMNS)
            for r in rows:
                w.writerow(_row_values(r))

    elif fmt == "json":
        payload = [dict(zip(COLUMNS, _row_values(r))) for r in rows]
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)

    elif fmt == "html":
        with open(path, "w", encoding="utf-8") as f:
            f.write("<html><body>\n")
            f.write("<h1>Port Scan Results</h1>\n")
            f.write(f"<p>Open ports: {open_count}</p>\n")
            f.write("<ul>\n")
            for r in rows:
                f.write(f"<li>{html.escape(format_row(r))}</li>\n")
            f.write("</ul>\n</body></html>\n")

    else:
        _write_xlsx(path, rows)

    return path


class ResultSink(Protocol):
    def write(self, results: List[ProbeResult]) -> str:
        ...


class FileSink:
    """Persists a finished scan in one of FORMATS; ``write`` returns the file path."""

    def __init__(self, fmt: str, out_dir: str = "PortScans", open_only: bool = False):
        if fmt not in FORMATS:
            raise ValueError(f"Unsupported format: {fmt}")
        self.fmt = fmt
        self.out_dir = out_dir
        self.open_only = open_only

    def write(self, results: List[ProbeResult]) -> str:
        return save_results(results, fmt=self.fmt, out_dir=self.out_dir, open_only=self.open_only)


class LivePrinter:
    """
    Scan callback: prints open ports as they are found plus a progress line
    every ``progress_every`` results. Called from worker threads.
    """

    def __init__(self, total: int, progress_every: int = 5000, stream: Optional[IO[str]] = None):
        self.total = total
        self.progress_every = progress_every
        self.stream = stream or sys.stdout
        self.scanned = 0
        self.open_count = 0
        self._start = time.perf_counter()
        self._lock = threading.Lock()

    def __call__(self, r: ProbeResult) -> None:
        with self._lock:
            self.scanned += 1
            if r.is_open:
                self.open_count += 1
                print(f"[+] {r.host}:{r.port} open | {r.banner or 'unknown'}", file=self.stream, flush=True)

            if self.progress_every > 0 and (self.scanned % self.progress_every == 0 or self.scanned == self.total):
                elapsed = time.perf_counter() - self._start
                rate = self.scanned / elapsed if elapsed > 0 else 0.0
                print(
                    f"[*] Scanned {self.scanned}/{self.total} | open={self.open_count} | {rate:.0f} scans/s",
                    file=self.stream,
                    flush=True,
                )
