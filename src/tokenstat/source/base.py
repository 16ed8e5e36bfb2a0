from typing import Protocol

from tokenstat.models import Source, UsageRecord
from tokenstat.scanner.base import LogScanner, ScanRequest, ScanResult
from tokenstat.window import Window


class UsageSource(Protocol):
    """
    UsageSource stands as a common protocol that every assistant
    backend adapter must satisfy.

    A source knows where its logs live, which scanner call
    serves them and how to turn the scanned files into delta
    records for one window. Any per-scan state (dedup maps,
    session reconcilers) lives inside records() and dies with
    the call.
    """

    @property
    def name(self) -> "Source": ...

    def request(self, window: "Window") -> "ScanRequest": ...

    async def scan(self, scanner: "LogScanner", request: "ScanRequest") -> "ScanResult": ...

    def records(self, result: "ScanResult", window: "Window") -> "list[UsageRecord]": ...
