import asyncio

import httpx

from conftest import FakeUpstream, collection, feature
from ingest.fetch import FetchError, fetch_active, fetch_discussions, fetch_range


SBW_URL = "https://mesonet.test/geojson/sbw.geojson"
RSS_URL = "https://spc.test/products/spcmdrss.xml"


def _call(upstream: FakeUpstream, fn, **kwargs):
    async def run():
        async with upstream.client() as client:
            return await fn(client, user_agent="test", **kwargs)

    return asyncio.run(run())


def test_fetch_active_with_preloaded_response(upstream) -> None:
    upstream.sbw = collection(feature("A"))
    doc = _call(upstream, fetch_active, base_url=SBW_URL)
    assert not isinstance(doc, FetchError)
    assert [f["id"] for f in doc.features] == ["A"]


def test_fetch_range_sends_normalized_window(upstream) -> None:
    doc = _call(
        upstream, fetch_range, base_url=SBW_URL, start="2024-05-27", end="2024-05-26"
    )
    assert not isinstance(doc, FetchError)
    params = upstream.sbw_requests[0].url.params
    assert params["sts"] == "2024-05-27T00:00:00.000Z"
    assert params["ets"] == "2024-05-26T00:00:00.000Z"


def test_fetch_discussions(upstream) -> None:
    items = _call(upstream, fetch_discussions, url=RSS_URL)
    assert [i.title for i in items] == ["SPC MD 1012", "SPC MD 1011"]


def test_fetch_errors_are_returned(upstream) -> None:
    upstream.sbw_status = 404
    assert _call(upstream, fetch_active, base_url=SBW_URL).reason == "http_404"

    upstream.sbw = None
    assert _call(upstream, fetch_active, base_url=SBW_URL).reason == (
        "request_error:ConnectError"
    )


def test_fetch_malformed_body_is_parse_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>not json</html>")

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await fetch_active(client, base_url=SBW_URL, user_agent="test")

    result = asyncio.run(run())
    assert isinstance(result, FetchError)
    assert result.reason == "parse_error"
