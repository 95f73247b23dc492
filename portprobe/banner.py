from __future__ import annotations

import re
from typing import Callable, Optional, Tuple

MYSQL_LABEL = "MySQL"
RDP_LABEL = "RDP Protocol Detected"
HTTP_PLACEHOLDER = "HTTP Service"

# MySQL greeting: [payload length(3)][sequence id(1)][protocol version(1)][server version NUL-terminated]...
_MYSQL_PROTOCOL_OFFSET = 4
_MYSQL_PROTOCOL_V10 = 0x0A
_MYSQL_VERSION_OFFSET = 5

_MYSQL_AUTH_PLUGINS = (
    b"caching_sha2_password",
    b"mysql_native_password",
    b"sha256_password",
    b"mysql_clear_password",
    b"auth_gssapi_client",
    b"client_ed25519",
)

_HTTP_STATUS_LINE = re.compile(r"^HTTP/\d(?:\.\d)? +\d{3}\b")
_PRINTABLE = re.compile(r"[^\x09\x0a\x0d\x20-\x7e\xa0-\U0010ffff]")

Classifier = Callable[[bytes], Optional[str]]


def _strict_decode(data: bytes) -> Optional[str]:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _clean_text(s: str) -> str:
    # strips terminal escapes and other control bytes; keeps tab/CR/LF
    return _PRINTABLE.sub("", s).strip()


def printable_ascii(data: bytes) -> str:
    """Keep graphic ASCII and spaces, in order; drop everything else."""
    return "".join(chr(b) for b in data if 0x21 <= b <= 0x7E or b == 0x20)


def is_mysql_greeting(buf: bytes) -> bool:
    return len(buf) > _MYSQL_VERSION_OFFSET and buf[_MYSQL_PROTOCOL_OFFSET] == _MYSQL_PROTOCOL_V10


def _mysql_auth_plugin(rest: bytes) -> Optional[str]:
    """``rest`` is everything after the server version's NUL terminator."""
    for plugin in _MYSQL_AUTH_PLUGINS:
        if plugin in rest:
            return plugin.decode("ascii")

    # No known plugin name; take whatever trails the last NUL.
    text = _strict_decode(rest[rest.rfind(b"\x00") + 1:])
    if text and text.strip():
        return text.strip()
    return None


def extract_mysql_banner(buf: bytes) -> str:
    """
    "MySQL <server version> [<auth plugin>]".
    The plugin part is best effort; a greeting without one is still a MySQL banner.
    """
    parts = [MYSQL_LABEL]

    end = buf.find(b"\x00", _MYSQL_VERSION_OFFSET)
    if end == -1:
        return MYSQL_LABEL

    version = _strict_decode(buf[_MYSQL_VERSION_OFFSET:end])
    if version:
        parts.append(version)

    plugin = _mysql_auth_plugin(buf[end + 1:])
    if plugin:
        parts.append(plugin)
    return " ".join(parts)


def is_rdp_confirm(buf: bytes) -> bool:
    # TPKT header (03 00) followed by an X.224 data TPDU (02 F0 80)
    return (
        len(buf) >= 7
        and buf[0] == 0x03
        and buf[1] == 0x00
        and buf[4] == 0x02
        and buf[5] == 0xF0
        and buf[6] == 0x80
    )


def detect_mysql(buf: bytes) -> Optional[str]:
    if not is_mysql_greeting(buf):
        return None
    return extract_mysql_banner(buf)


def detect_rdp(buf: bytes) -> Optional[str]:
    return RDP_LABEL if is_rdp_confirm(buf) else None


def detect_http(buf: bytes) -> Optional[str]:
    """
    HTTP responses: status line, plus the Server header when there is one.
    Only the header block has to be valid text; bodies are often compressed
    or cut off mid-character by the read size.
    """
    head = buf.split(b"\r\n\r\n", 1)[0]
    text = _strict_decode(head)
    if text is None or not text.startswith("HTTP/"):
        return None

    status = None
    server = None
    for line in text.splitlines():
        line = line.strip()
        if status is None and _HTTP_STATUS_LINE.match(line):
            status = line
        elif server is None and line.lower().startswith("server:"):
            server = line.split(":", 1)[1].strip()

    if status and server:
        return f"{status} | Server: {server}"
    if status:
        return status
    if server:
        return f"{HTTP_PLACEHOLDER} | Server: {server}"
    return HTTP_PLACEHOLDER


def decode_fallback(buf: bytes) -> Optional[str]:
    if not buf:
        return None
    text = _strict_decode(buf)
    if text is not None:
        return _clean_text(text)
    return printable_ascii(buf)


# Evaluated in order on every call; first non-blank answer wins.
CLASSIFIERS: Tuple[Classifier, ...] = (
    detect_mysql,
    detect_rdp,
    detect_http,
    decode_fallback,
)


def classify(buf: bytes) -> str:
    """Return a display banner for ``buf``, or "" when nothing usable was found."""
    for strategy in CLASSIFIERS:
        banner = _clean_text(strategy(buf) or "")
        if banner:
            return banner
    return ""
