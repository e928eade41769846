from __future__ import annotations

import time
from dataclasses import asdict, dataclass

from ingest.timestamps import utc_now_iso


_STARTED_AT = time.monotonic()


def uptime_seconds() -> float:
    return time.monotonic() - _STARTED_AT


@dataclass
class CycleHealth:
    last_run_at: str | None = None
    last_success_at: str | None = None
    last_error_at: str | None = None
    last_error: str | None = None
    consecutive_failures: int = 0
    success_count: int = 0
    error_count: int = 0
    skipped_ticks: int = 0
    sent_count: int = 0
    failed_count: int = 0

    def record_success(self, *, sent: int, failed: int) -> None:
        now_iso = utc_now_iso()
        self.last_run_at = now_iso
        self.last_success_at = now_iso
        self.last_error = None
        self.consecutive_failures = 0
        self.success_count += 1
        self.sent_count += sent
        self.failed_count += failed

    def record_error(self, error: str) -> None:
        now_iso = utc_now_iso()
        self.last_run_at = now_iso
        self.last_error_at = now_iso
        self.last_error = error
        self.consecutive_failures += 1
        self.error_count += 1

    def record_skip(self) -> None:
        self.skipped_ticks += 1

    def to_json(self) -> dict:
        return asdict(self)
