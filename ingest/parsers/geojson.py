from __future__ import annotations

import json

from normalize.models import FeedDocument


def parse_feed_document(data: bytes) -> FeedDocument:
    doc = json.loads(data)
    if not isinstance(doc, dict):
        raise ValueError("feed document is not an object")
    features = doc.get("features")
    if features is None:
        features = []
    if not isinstance(features, list):
        raise ValueError("feed document features is not a list")
    return FeedDocument(raw=doc, features=[f for f in features if isinstance(f, dict)])
