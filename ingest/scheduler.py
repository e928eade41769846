from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Literal

import httpx

from app.settings import Settings
from health.health import CycleHealth
from ingest.fetch import FetchError, fetch_active, fetch_discussions, fetch_range
from ingest.timestamps import utc_now_iso
from normalize.models import FeedDocument, WarningEvent
from normalize.warnings import ExtractOptions, extract_warnings
from notify.webhook import DispatchTally, WebhookDispatcher
from store.seen import DiscussionSeenSet, WarningTracker


logger = logging.getLogger(__name__)

CycleName = Literal["warnings", "discussions"]
CycleState = Literal["idle", "running"]


@dataclass(frozen=True)
class CycleReport:
    new: int = 0
    sent: int = 0
    failed: int = 0
    error: str | None = None


@dataclass(frozen=True)
class SimulationReport:
    count: int
    sent: int
    failed: int


def extract_options(settings: Settings) -> ExtractOptions:
    return ExtractOptions(
        phenomenon=settings.target_phenomenon,
        margin=settings.bbox_margin,
        radmap_url=settings.radmap_url,
        plot_url=settings.plot_url,
        nwstext_url=settings.nwstext_url,
    )


def _log_active(warnings: list[WarningEvent], phenomenon: str) -> None:
    if not warnings:
        logger.info("no active %s records", phenomenon)
        return
    logger.info("%d active %s records", len(warnings), phenomenon)
    for w in warnings:
        flags = "".join(
            [" [PDS]" if w.is_pds else "", " [EMERGENCY]" if w.is_emergency else ""]
        )
        logger.info(
            "- %s event %s: %s (expires %s)%s", w.wfo, w.eventid, w.status, w.expires, flags
        )


class Scheduler:
    """Owns the polling cycles and every piece of state they mutate.

    Each cycle class fires every ``poll_seconds``. A tick that finds the
    previous run of the same class still in flight is skipped, so the
    tracked warning list and the seen sets only ever have one writer.
    """

    def __init__(self, *, settings: Settings, client: httpx.AsyncClient) -> None:
        self.settings = settings
        self.client = client
        self.options = extract_options(settings)
        retention = timedelta(hours=settings.discussion_retention_hours)
        self.warnings = WarningTracker(settings.warning_dedup_policy, retention)
        self.discussions = DiscussionSeenSet(retention)
        self.warning_dispatcher = WebhookDispatcher(
            client,
            url=settings.warning_webhook_url,
            user_agent=settings.user_agent,
            text_budget=settings.text_budget,
            warning_title=settings.target_phenomenon,
            warning_image=settings.warning_image,
        )
        self.discussion_dispatcher = WebhookDispatcher(
            client,
            url=settings.discussion_webhook_url,
            user_agent=settings.user_agent,
            text_budget=settings.text_budget,
        )
        self.last_update: str | None = None
        self.state: dict[CycleName, CycleState] = {
            "warnings": "idle",
            "discussions": "idle",
        }
        self.health: dict[CycleName, CycleHealth] = {
            "warnings": CycleHealth(),
            "discussions": CycleHealth(),
        }
        self._inflight: dict[CycleName, asyncio.Task] = {}

    @property
    def current_warnings(self) -> list[WarningEvent]:
        return self.warnings.current

    async def fetch_active(self) -> FeedDocument | FetchError:
        return await fetch_active(
            self.client,
            base_url=self.settings.sbw_api_url,
            user_agent=self.settings.user_agent,
        )

    async def query_range(self, start: str, end: str) -> list[WarningEvent] | FetchError:
        doc = await fetch_range(
            self.client,
            base_url=self.settings.sbw_api_url,
            user_agent=self.settings.user_agent,
            start=start,
            end=end,
        )
        if isinstance(doc, FetchError):
            return doc
        return extract_warnings(doc, self.options)

    async def run_warning_cycle(self) -> CycleReport:
        health = self.health["warnings"]
        doc = await self.fetch_active()
        if isinstance(doc, FetchError):
            logger.warning("warning cycle: %s", doc)
            health.record_error(doc.reason)
            return CycleReport(error=doc.reason)

        current = extract_warnings(doc, self.options)
        _log_active(current, self.options.phenomenon)
        new = self.warnings.update(current)
        self.last_update = utc_now_iso()

        tally = await self.warning_dispatcher.dispatch_all(new)
        health.record_success(sent=tally.sent, failed=tally.failed)
        if new:
            logger.info(
                "warning cycle: %d new, %d sent, %d failed",
                len(new),
                tally.sent,
                tally.failed,
            )
        return CycleReport(new=len(new), sent=tally.sent, failed=tally.failed)

    async def run_discussion_cycle(self) -> CycleReport:
        health = self.health["discussions"]
        items = await fetch_discussions(
            self.client,
            url=self.settings.md_rss_url,
            user_agent=self.settings.user_agent,
        )
        if isinstance(items, FetchError):
            logger.warning("discussion cycle: %s", items)
            health.record_error(items.reason)
            return CycleReport(error=items.reason)

        new = [item for item in items if self.discussions.add_if_new(item.id)]
        tally = await self.discussion_dispatcher.dispatch_all(new)
        health.record_success(sent=tally.sent, failed=tally.failed)
        if new:
            logger.info(
                "discussion cycle: %d new, %d sent, %d failed",
                len(new),
                tally.sent,
                tally.failed,
            )
        return CycleReport(new=len(new), sent=tally.sent, failed=tally.failed)

    async def simulate(self, start: str, end: str) -> SimulationReport | FetchError:
        """Dispatch every warning valid in ``[start, end]``, ignoring dedup state."""
        warnings = await self.query_range(start, end)
        if isinstance(warnings, FetchError):
            return warnings
        tally: DispatchTally = await self.warning_dispatcher.dispatch_all(warnings)
        logger.info(
            "simulated %d warnings: %d sent, %d failed",
            len(warnings),
            tally.sent,
            tally.failed,
        )
        return SimulationReport(count=len(warnings), sent=tally.sent, failed=tally.failed)

    async def _guarded(self, name: CycleName) -> None:
        self.state[name] = "running"
        try:
            if name == "warnings":
                await self.run_warning_cycle()
            else:
                await self.run_discussion_cycle()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("%s cycle failed", name)
            self.health[name].record_error(f"{e.__class__.__name__}: {e}")
        finally:
            self.state[name] = "idle"
            self._inflight.pop(name, None)

    def tick(self, name: CycleName) -> asyncio.Task | None:
        if self.state[name] == "running":
            logger.warning("%s cycle still running, skipping tick", name)
            self.health[name].record_skip()
            return None
        # Mark running before the task is scheduled so a second tick in the
        # same loop iteration sees it.
        self.state[name] = "running"
        task = asyncio.create_task(self._guarded(name))
        self._inflight[name] = task
        return task

    async def _loop(self, name: CycleName, *, immediate: bool) -> None:
        interval = self.settings.poll_seconds
        if not immediate:
            await asyncio.sleep(interval)
        while True:
            self.tick(name)
            await asyncio.sleep(interval)

    async def run(self) -> None:
        logger.info(
            "polling %s and %s every %ss",
            self.settings.sbw_api_url,
            self.settings.md_rss_url,
            self.settings.poll_seconds,
        )
        try:
            await asyncio.gather(
                self._loop("warnings", immediate=True),
                self._loop("discussions", immediate=False),
            )
        finally:
            inflight = list(self._inflight.values())
            for task in inflight:
                task.cancel()
            await asyncio.gather(*inflight, return_exceptions=True)
