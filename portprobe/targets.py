from __future__ import annotations

import ipaddress
import re
import logging
from typing import List

logger = logging.getLogger(__name__)


class TargetSpecError(ValueError):
    def __init__(self, token: str, reason: str):
        super().__init__(f"Invalid target '{token}': {reason}")
        self.token = token
        self.reason = reason


def _parse_address(token: str, text: str) -> ipaddress.IPv4Address:
    try:
        return ipaddress.IPv4Address(text.strip())
    except ValueError:
        raise TargetSpecError(token, f"'{text.strip()}' is not an IPv4 address") from None


def _expand_cidr(token: str) -> List[str]:
    base_s, mask_s = token.split("/", 1)
    base = _parse_address(token, base_s)
    mask_s = mask_s.strip()
    if not re.fullmatch(r"[0-9]+", mask_s):
        raise TargetSpecError(token, f"mask '{mask_s}' is not an integer")
    mask = int(mask_s)
    if mask > 32:
        raise TargetSpecError(token, "mask must be between 0 and 32")

    net = ipaddress.IPv4Network(f"{base}/{mask}", strict=False)
    # hosts() drops network + broadcast; /31 and /32 keep their addresses
    return [str(ip) for ip in net.hosts()]


def _expand_range(token: str) -> List[str]:
    base_s, end_s = token.rsplit("-", 1)
    base = _parse_address(token, base_s)
    end_s = end_s.strip()
    if not re.fullmatch(r"[0-9]+", end_s) or int(end_s) > 255:
        raise TargetSpecError(token, f"range end '{end_s}' is not an octet (0-255)")

    octets = str(base).split(".")
    start, end = int(octets[3]), int(end_s)
    if end < start:
        raise TargetSpecError(token, f"range end {end} is lower than start {start}")

    prefix = ".".join(octets[:3])
    return [f"{prefix}.{i}" for i in range(start, end + 1)]


def expand_targets(spec: str) -> List[str]:
    """
    Supports (comma-separated, any mix):
      - Single IP: "172.20.0.10"
      - Last-octet range: "172.20.0.10-20"
      - CIDR: "172.20.0.0/24" (network and broadcast addresses excluded)

    Fails on the first bad token; nothing is returned in that case.
    """
    if not spec or not spec.strip():
        raise TargetSpecError(spec or "", "empty target specification")

    hosts: List[str] = []
    for token in spec.split(","):
        token = token.strip()
        if not token:
            raise TargetSpecError(token, "empty target")
        if "/" in token:
            hosts.extend(_expand_cidr(token))
        elif "-" in token:
            hosts.extend(_expand_range(token))
        else:
            hosts.append(str(_parse_address(token, token)))

    logger.debug("expanded %r into %d hosts", spec, len(hosts))
    return hosts
