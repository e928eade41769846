import asyncio
from dataclasses import replace

import httpx

from conftest import WARNING_HOOK, FakeUpstream
from normalize.models import DiscussionItem
from notify.webhook import (
    Failed,
    Sent,
    WebhookDispatcher,
    compose_warning_message,
    product_text,
    truncate,
)
from test_seen import _warning


WARNING = replace(
    _warning("W1"),
    expires="2024-05-26T19:45:00Z",
    nwstext_url="https://mesonet.test/json/nwstext.py?product_id=X",
    plot_image_url="https://mesonet.test/plot.png",
)


def _dispatch(upstream: FakeUpstream, event, **kwargs):
    async def run():
        async with upstream.client() as client:
            dispatcher = WebhookDispatcher(
                client, url=WARNING_HOOK, user_agent="test", **kwargs
            )
            return await dispatcher.dispatch(event)

    return asyncio.run(run())


def test_truncate_marks_long_text() -> None:
    assert truncate("abc", 5) == "abc"
    assert truncate("a" * 5, 5) == "aaaaa"
    assert truncate("a" * 6, 5) == "aaaaa..."


def test_compose_warning_message() -> None:
    message = compose_warning_message(replace(WARNING, is_pds=True), "x" * 2000)
    assert message.startswith("**Tornado Warning**\nWFO: OUN\nEvent ID: 1\nStatus: NEW")
    assert "Expires: 2024-05-26T19:45:00Z" in message
    assert "Particularly Dangerous Situation" in message
    assert "**Raw Text:**\n\u200b\n" in message
    assert message.endswith("x" * 1800 + "...")


def test_product_text_shapes() -> None:
    assert product_text({"products": [{"data": "TEXT"}]}) == "TEXT"
    assert product_text({"products": []}) == ""
    assert product_text({"products": [{"data": None}]}) == ""
    assert product_text(["products"]) == ""


def test_dispatch_warning_with_text_and_attachment(upstream) -> None:
    upstream.product_text = "BULLETIN - EAS ACTIVATION REQUESTED"
    outcome = _dispatch(upstream, WARNING)
    assert outcome == Sent(event_id="W1")

    (post,) = upstream.posts
    assert str(post.url) == WARNING_HOOK
    assert post.headers["content-type"].startswith("multipart/form-data")
    body = post.content.decode("utf-8", errors="replace")
    assert 'name="content"' in body
    assert "BULLETIN - EAS ACTIVATION REQUESTED" in body
    assert 'name="file"; filename="plot.png"' in body


def test_dispatch_proceeds_without_failed_image(upstream) -> None:
    upstream.fail_images = True
    assert _dispatch(upstream, WARNING) == Sent(event_id="W1")
    body = upstream.posted_contents()[0]
    assert 'name="file"' not in body


def test_dispatch_survives_text_fetch_error() -> None:
    posts = []

    def handler(request: httpx.Request) -> httpx.Response:
        if "nwstext" in str(request.url):
            raise httpx.ConnectError("down", request=request)
        if request.method == "POST":
            posts.append(request)
        return httpx.Response(200)

    async def run():
        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport) as client:
            dispatcher = WebhookDispatcher(client, url=WARNING_HOOK, user_agent="test")
            return await dispatcher.dispatch(replace(WARNING, plot_image_url=None))

    assert asyncio.run(run()) == Sent(event_id="W1")
    assert len(posts) == 1


def test_dispatch_reports_webhook_failure(upstream) -> None:
    upstream.fail_webhook_for = {"Event ID: 1"}
    assert _dispatch(upstream, WARNING) == Failed(event_id="W1", reason="http_500")


def test_dispatch_radmap_attachment(upstream) -> None:
    warning = replace(WARNING, radmap_image_url="https://mesonet.test/radmap.png")
    _dispatch(upstream, warning, warning_image="radmap")
    assert 'filename="radmap.png"' in upstream.posted_contents()[0]


def test_dispatch_discussion(upstream) -> None:
    item = DiscussionItem(
        id="md1012",
        title="SPC MD 1012",
        text="Areas affected...central Oklahoma",
        image_url="https://www.spc.noaa.gov/products/md/mcd1012.png",
    )
    assert _dispatch(upstream, item) == Sent(event_id="md1012")
    body = upstream.posted_contents()[0]
    assert "**Mesoscale Discussion**\nSPC MD 1012\n\nAreas affected" in body
    assert 'filename="md.png"' in body
