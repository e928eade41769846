from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict


class SbwProperties(BaseModel):
    """Storm-based warning attributes as published by the upstream feed.

    Every field is optional; the feed omits or nulls attributes freely and
    callers branch on ``None`` rather than on missing keys.
    """

    model_config = ConfigDict(extra="allow")

    ps: str | None = None
    wfo: str | None = None
    eventid: int | str | None = None
    year: int | str | None = None
    phenomena: str | None = None
    significance: str | None = None
    status: str | None = None
    issue: str | None = None
    expire_utc: str | None = None
    polygon_begin: str | None = None
    polygon_end: str | None = None
    windtag: float | str | None = None
    hailtag: float | str | None = None
    tornadotag: str | None = None
    is_pds: bool | None = None
    is_emergency: bool | None = None
    product_id: str | None = None
    product_signature: str | None = None
    href: str | None = None


class Geometry(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    coordinates: Any = None


class SbwFeature(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | int | None = None
    properties: SbwProperties
    geometry: Geometry | None = None


@dataclass(frozen=True)
class FeedDocument:
    raw: dict
    features: list[dict]


@dataclass(frozen=True)
class BoundingBox:
    xmin: float
    ymin: float
    xmax: float
    ymax: float


@dataclass(frozen=True)
class WarningEvent:
    id: str
    wfo: str | None
    eventid: int | str | None
    status: str | None
    issued: str | None
    expires: str | None
    polygon_begin: str | None
    polygon_end: str | None
    windtag: float | str | None
    hailtag: float | str | None
    tornadotag: str | None
    is_pds: bool
    is_emergency: bool
    product_signature: str | None
    href: str | None
    radmap_image_url: str | None
    plot_image_url: str | None
    nwstext_url: str | None
    properties: dict = field(default_factory=dict)
    geometry: dict | None = None

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "wfo": self.wfo,
            "eventid": self.eventid,
            "status": self.status,
            "issued": self.issued,
            "expires": self.expires,
            "polygonBegin": self.polygon_begin,
            "polygonEnd": self.polygon_end,
            "windtag": self.windtag,
            "hailtag": self.hailtag,
            "tornadotag": self.tornadotag,
            "isPDS": self.is_pds,
            "isEmergency": self.is_emergency,
            "productSignature": self.product_signature,
            "href": self.href,
            "radmapImageUrl": self.radmap_image_url,
            "plotImageUrl": self.plot_image_url,
            "nwstextUrl": self.nwstext_url,
            "properties": self.properties,
            "geometry": self.geometry,
        }


@dataclass(frozen=True)
class DiscussionItem:
    id: str
    title: str
    text: str
    image_url: str | None
