from tokenstat.models import Source, UsageRecord
from tokenstat.parser import parse_droid_document
from tokenstat.scanner.base import LogScanner, ScanRequest, ScanResult
from tokenstat.window import Window

DROID_PATTERN = "**/*.settings.json"


class DroidSource:
    """
    DroidSource reads the per-session settings documents of
    droid (Kiro / Factory). The documents carry no timestamp;
    the scanner selects them by modification time instead.
    """

    def __init__(self, base_path: "str" = "~/.factory/sessions") -> "None":
        self._base_path = base_path

    @property
    def name(self) -> "Source":
        return Source.DROID

    def request(self, window: "Window") -> "ScanRequest":
        return ScanRequest(
            base_path=self._base_path,
            pattern=DROID_PATTERN,
            start=window.start,
            end=window.end,
        )

    async def scan(self, scanner: "LogScanner", request: "ScanRequest") -> "ScanResult":
        return await scanner.scan_settings_files(request)

    def records(self, result: "ScanResult", window: "Window") -> "list[UsageRecord]":
        records: "list[UsageRecord]" = []
        for file in result.files:
            record = parse_droid_document("\n".join(file.lines))
            if record is not None:
                records.append(record)
        return records
