"""Access log parser."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime

from .base import Matched, ParseOutcome, Rejected

# Shared prefix of both httpd dialects: ip ident user [datetime] "METHOD target PROTO" status size
_PREFIX = (
    r"^(?P<ip>\S+)\s+\S+\s+\S+\s+\[(?P<ts>[^\]]+)\]\s+"
    r'"(?P<method>[A-Z]+)\s+(?P<target>\S+)(?:\s+HTTP/\d(?:\.\d)?)?"\s+'
    r"(?P<status>\d{3})\s+"
    r"(?P<size>\d+|-)"
)


@dataclass(frozen=True, slots=True)
class AccessLogParser:
    """Parse Apache/Nginx access logs (combined first, then common format)."""

    combined_source: str = "nginx"
    common_source: str = "apache"

    _combined = re.compile(_PREFIX + r'\s+"(?P<referrer>[^"]*)"\s+"(?P<ua>[^"]*)"(?:\s+.*)?$')
    _common = re.compile(_PREFIX + r"\s*$")

    @staticmethod
    def level_from_status(status: int) -> str:
        """Map HTTP status codes to a log level."""
        if status >= 500:
            return "ERROR"
        if status >= 400:
            return "WARN"
        return "INFO"

    @staticmethod
    def _parse_ts(ts_str: str) -> datetime | None:
        """Parse access-log timestamps into UTC."""
        try:
            return datetime.strptime(ts_str, "%d/%b/%Y:%H:%M:%S %z").astimezone(UTC)
        except ValueError:
            return None

    def parse(self, line: str) -> ParseOutcome:
        """Parse an access-log line into canonical fields."""
        line = line.strip()
        m = self._combined.match(line)
        source = self.combined_source
        if m is None:
            m = self._common.match(line)
            source = self.common_source
        if m is None:
            return None

        ts = self._parse_ts(m.group("ts"))
        if ts is None:
            return Rejected(f"invalid access-log datetime: {m.group('ts')!r}")

        method = m.group("method")
        endpoint = m.group("target").split("?", 1)[0]
        status = int(m.group("status"))
        size_raw = m.group("size")

        fields = {
            "timestamp": ts,
            "logLevel": self.level_from_status(status),
            "message": f"{method} {endpoint} {status}",
            "source": source,
            "ip": m.group("ip"),
            "method": method,
            "endpoint": endpoint,
            "status": status,
            "size": int(size_raw) if size_raw != "-" else None,
        }
        if source == self.combined_source:
            fields["referrer"] = m.group("referrer")
            fields["userAgent"] = m.group("ua")
        return Matched(fields)
