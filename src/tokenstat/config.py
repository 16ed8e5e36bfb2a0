import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo

from tokenstat.scanner.local import DEFAULT_MAX_FILES


@dataclass
class Config:
    # civil timezone every window is anchored to
    timezone: "str" = "Asia/Shanghai"

    claude_dir: "str" = "~/.claude/projects"
    codex_dir: "str" = "~/.codex/sessions"
    droid_dir: "str" = "~/.factory/sessions"
    # cap on files read per source scan
    max_files: "int" = DEFAULT_MAX_FILES

    log_level: "str" = "info"
    json_logs: "bool" = False

    # exporter mode only; format ":9186" or "0.0.0.0:9186"
    listen_address: "str" = ""
    # refresh interval in seconds
    scrape_interval: "int" = 300

    @classmethod
    def from_env(cls) -> "Config":
        """
        reads overrides from TOKENSTAT_* variables. Raises
        ValueError when TOKENSTAT_MAX_FILES is not an integer.
        """
        defaults = cls()
        raw_max_files = os.environ.get("TOKENSTAT_MAX_FILES", str(defaults.max_files))
        try:
            max_files = int(raw_max_files)
        except ValueError:
            raise ValueError(
                f"TOKENSTAT_MAX_FILES must be an integer, got {raw_max_files!r}"
            ) from None

        return cls(
            timezone=os.environ.get("TOKENSTAT_TIMEZONE", defaults.timezone),
            claude_dir=os.environ.get("TOKENSTAT_CLAUDE_DIR", defaults.claude_dir),
            codex_dir=os.environ.get("TOKENSTAT_CODEX_DIR", defaults.codex_dir),
            droid_dir=os.environ.get("TOKENSTAT_DROID_DIR", defaults.droid_dir),
            max_files=max_files,
        )

    @property
    def tz(self) -> "ZoneInfo":
        return ZoneInfo(self.timezone)

    @property
    def exporter_enabled(self) -> "bool":
        return bool(self.listen_address)
