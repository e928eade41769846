from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta

from ingest.timestamps import utc_now
from normalize.models import WarningEvent


class RetainedIdSet:
    """Identifiers remembered until unseen for longer than ``retention``."""

    def __init__(self, retention: timedelta) -> None:
        self.retention = retention
        self._last_seen: dict[str, datetime] = {}

    def __len__(self) -> int:
        return len(self._last_seen)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._last_seen

    def prune(self, now: datetime) -> int:
        cutoff = now - self.retention
        expired = [k for k, seen_at in self._last_seen.items() if seen_at < cutoff]
        for k in expired:
            del self._last_seen[k]
        return len(expired)

    def add_if_new(self, identifier: str, now: datetime | None = None) -> bool:
        now = now or utc_now()
        self.prune(now)
        is_new = identifier not in self._last_seen
        self._last_seen[identifier] = now
        return is_new


class DiscussionSeenSet(RetainedIdSet):
    pass


class WarningTracker:
    """Current warning list plus the identifiers used to decide what is new.

    With the ``previous_cycle`` policy a warning is new when it was absent
    from the immediately preceding cycle, so a warning that drops out and
    comes back is reported again. ``cumulative`` remembers every identifier
    until it has been absent for ``retention`` instead.
    """

    def __init__(
        self,
        policy: str = "previous_cycle",
        retention: timedelta = timedelta(hours=72),
    ) -> None:
        if policy not in ("previous_cycle", "cumulative"):
            raise ValueError(f"unknown dedup policy: {policy}")
        self.policy = policy
        self._current: list[WarningEvent] = []
        self._previous_ids: set[str] = set()
        self._notified = RetainedIdSet(retention)

    @property
    def current(self) -> list[WarningEvent]:
        return list(self._current)

    def update(
        self, warnings: Iterable[WarningEvent], now: datetime | None = None
    ) -> list[WarningEvent]:
        """Replace the current list and return the warnings that are new."""
        now = now or utc_now()
        current = list(warnings)
        if self.policy == "cumulative":
            new = [w for w in current if self._notified.add_if_new(w.id, now)]
        else:
            new = [w for w in current if w.id not in self._previous_ids]

        self._current = current
        self._previous_ids = {w.id for w in current}
        return new
