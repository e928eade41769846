from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from app.settings import Settings


FIXTURES = Path(__file__).resolve().parent / "fixtures"

WARNING_HOOK = "https://hooks.test/warnings"
DISCUSSION_HOOK = "https://hooks.test/discussions"


def feature(event_id: str, ps: str = "Tornado Warning", **props) -> dict:
    return {
        "type": "Feature",
        "id": event_id,
        "properties": {"ps": ps, "wfo": "OUN", "status": "NEW", **props},
        "geometry": {
            "type": "Polygon",
            "coordinates": [[[-98.0, 35.0], [-97.0, 35.0], [-97.0, 36.0], [-98.0, 35.0]]],
        },
    }


def collection(*features: dict) -> dict:
    return {"type": "FeatureCollection", "features": list(features)}


class FakeUpstream:
    """Answers every outbound request the monitor makes."""

    def __init__(self) -> None:
        self.sbw: dict | None = collection()
        self.sbw_status = 200
        self.rss: bytes = (FIXTURES / "spcmdrss.xml").read_bytes()
        self.product_text = "TORNADO WARNING TEXT"
        self.fail_webhook_for: set[str] = set()
        self.fail_images = False
        self.sbw_requests: list[httpx.Request] = []
        self.posts: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if request.method == "POST":
            self.posts.append(request)
            body = request.content.decode("utf-8", errors="replace")
            if any(marker in body for marker in self.fail_webhook_for):
                return httpx.Response(500)
            return httpx.Response(200, text="Accepted")
        if "sbw.geojson" in url:
            self.sbw_requests.append(request)
            if self.sbw is None:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(self.sbw_status, json=self.sbw)
        if "spcmdrss.xml" in url:
            return httpx.Response(200, content=self.rss)
        if "nwstext.py" in url:
            return httpx.Response(200, json={"products": [{"data": self.product_text}]})
        if url.endswith(".png"):
            if self.fail_images:
                return httpx.Response(404)
            return httpx.Response(200, content=b"\x89PNG\r\n\x1a\nfake")
        return httpx.Response(404)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def posted_contents(self) -> list[str]:
        return [r.content.decode("utf-8", errors="replace") for r in self.posts]


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(_env_file=None).model_copy(
        update={
            "warning_webhook_url": WARNING_HOOK,
            "discussion_webhook_url": DISCUSSION_HOOK,
            "static_dir": tmp_path / "missing",
        }
    )


@pytest.fixture
def sbw_fixture() -> dict:
    return json.loads((FIXTURES / "sbw.geojson").read_text(encoding="utf-8"))
