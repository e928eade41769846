from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

import httpx

from normalize.models import DiscussionItem, WarningEvent


logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "..."
_ZERO_WIDTH_SPACE = "\u200b"


class DispatchError(Exception):
    pass


@dataclass(frozen=True)
class Sent:
    event_id: str


@dataclass(frozen=True)
class Failed:
    event_id: str
    reason: str


DispatchOutcome = Sent | Failed


@dataclass
class DispatchTally:
    sent: int = 0
    failed: int = 0

    def add(self, outcome: DispatchOutcome) -> None:
        if isinstance(outcome, Sent):
            self.sent += 1
        else:
            self.failed += 1


def truncate(text: str, budget: int) -> str:
    if len(text) <= budget:
        return text
    return text[:budget] + TRUNCATION_MARKER


def compose_warning_message(
    warning: WarningEvent, text: str, *, title: str = "Tornado Warning", budget: int = 1800
) -> str:
    lines = [
        f"**{title}**",
        f"WFO: {warning.wfo}",
        f"Event ID: {warning.eventid}",
        f"Status: {warning.status}",
        f"Expires: {warning.expires}",
    ]
    if warning.is_pds:
        lines.append("PDS: Particularly Dangerous Situation")
    if warning.is_emergency:
        lines.append("EMERGENCY")
    summary = "\n".join(lines)
    return f"{summary}\n\n**Raw Text:**\n{_ZERO_WIDTH_SPACE}\n{truncate(text, budget)}"


def compose_discussion_message(item: DiscussionItem) -> str:
    return f"**Mesoscale Discussion**\n{item.title}\n\n{item.text}"


def product_text(payload: object) -> str:
    """Text body of the first product in an nwstext response, or ``""``."""
    if not isinstance(payload, dict):
        return ""
    products = payload.get("products")
    if not isinstance(products, list) or not products:
        return ""
    first = products[0]
    if not isinstance(first, dict):
        return ""
    data = first.get("data")
    return data if isinstance(data, str) else ""


class WebhookDispatcher:
    """Posts enriched notifications to a single outbound webhook.

    Text and image enrichment are best effort: a failed text fetch yields an
    empty body and a failed image fetch drops the attachment. Only a failed
    webhook POST turns into a ``Failed`` outcome.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        url: str,
        user_agent: str,
        text_budget: int = 1800,
        warning_title: str = "Tornado Warning",
        warning_image: str = "plot",
    ) -> None:
        self.client = client
        self.url = url
        self.user_agent = user_agent
        self.text_budget = text_budget
        self.warning_title = warning_title
        self.warning_image = warning_image

    async def fetch_text(self, url: str | None) -> str:
        if not url:
            return ""
        try:
            res = await self.client.get(
                url, headers={"User-Agent": self.user_agent, "Accept": "application/json"}
            )
        except httpx.RequestError as e:
            logger.warning("text fetch failed for %s: %s", url, e.__class__.__name__)
            return ""
        if res.status_code != 200:
            logger.warning("text fetch for %s returned http_%d", url, res.status_code)
            return ""
        try:
            return product_text(res.json())
        except ValueError:
            return ""

    async def fetch_image(self, url: str | None) -> bytes | None:
        if not url:
            return None
        try:
            res = await self.client.get(url, headers={"User-Agent": self.user_agent})
        except httpx.RequestError as e:
            logger.warning("image fetch failed for %s: %s", url, e.__class__.__name__)
            return None
        if res.status_code != 200:
            logger.warning("image fetch for %s returned http_%d", url, res.status_code)
            return None
        return res.content

    async def post(self, content: str, attachment: tuple[str, bytes] | None) -> None:
        files: list[tuple[str, tuple]] = [("content", (None, content))]
        if attachment is not None:
            filename, data = attachment
            files.append(("file", (filename, data, "image/png")))
        try:
            res = await self.client.post(
                self.url, files=files, headers={"User-Agent": self.user_agent}
            )
        except httpx.RequestError as e:
            raise DispatchError(f"request_error:{e.__class__.__name__}") from e
        if not res.is_success:
            raise DispatchError(f"http_{res.status_code}")

    def _warning_image_url(self, warning: WarningEvent) -> tuple[str | None, str]:
        if self.warning_image == "radmap":
            return warning.radmap_image_url, "radmap.png"
        return warning.plot_image_url, "plot.png"

    async def dispatch(self, event: WarningEvent | DiscussionItem) -> DispatchOutcome:
        if isinstance(event, WarningEvent):
            text = await self.fetch_text(event.nwstext_url)
            content = compose_warning_message(
                event, text, title=self.warning_title, budget=self.text_budget
            )
            image_url, filename = self._warning_image_url(event)
        else:
            content = compose_discussion_message(event)
            image_url, filename = event.image_url, "md.png"

        image = await self.fetch_image(image_url)
        attachment = (filename, image) if image is not None else None
        try:
            await self.post(content, attachment)
        except DispatchError as e:
            logger.error("failed to send %s to webhook: %s", event.id, e)
            return Failed(event_id=event.id, reason=str(e))
        logger.info("sent %s to webhook", event.id)
        return Sent(event_id=event.id)

    async def dispatch_all(
        self, events: Iterable[WarningEvent | DiscussionItem]
    ) -> DispatchTally:
        tally = DispatchTally()
        for event in events:
            tally.add(await self.dispatch(event))
        return tally
