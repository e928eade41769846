from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlencode

from pydantic import ValidationError

from ingest.timestamps import radmap_timestamp
from normalize.models import (
    BoundingBox,
    FeedDocument,
    Geometry,
    SbwFeature,
    SbwProperties,
    WarningEvent,
)


logger = logging.getLogger(__name__)

_RADMAP_LAYERS = ("nexrad", "sbw", "places", "interstates", "uscounties")


@dataclass(frozen=True)
class ExtractOptions:
    phenomenon: str = "Tornado Warning"
    margin: float = 0.2
    radmap_url: str = "https://mesonet.agron.iastate.edu/GIS/radmap.php"
    plot_url: str = "https://mesonet.agron.iastate.edu/plotting/auto/plot/208/"
    nwstext_url: str = "https://mesonet.agron.iastate.edu/json/nwstext.py"


def _points(geometry: Geometry) -> list[tuple[float, float]]:
    coords = geometry.coordinates
    if coords is None:
        return []

    points: list[tuple[float, float]] = []
    if geometry.type == "Polygon":
        for ring in coords:
            for lon, lat, *_ in ring:
                points.append((float(lon), float(lat)))
    elif geometry.type == "MultiPolygon":
        for polygon in coords:
            for ring in polygon:
                for lon, lat, *_ in ring:
                    points.append((float(lon), float(lat)))
    return points


def bounding_box(geometry: Geometry | None, margin: float = 0.2) -> BoundingBox | None:
    """Extent of a (multi)polygon, padded by ``margin`` degrees on every side."""
    if geometry is None:
        return None
    try:
        points = _points(geometry)
    except (TypeError, ValueError):
        return None
    if not points:
        return None
    return BoundingBox(
        xmin=min(p[0] for p in points) - margin,
        ymin=min(p[1] for p in points) - margin,
        xmax=max(p[0] for p in points) + margin,
        ymax=max(p[1] for p in points) + margin,
    )


def _present(value: object) -> bool:
    return value is not None and value != ""


def radmap_image_url(
    bbox: BoundingBox | None, issued: str | None, options: ExtractOptions
) -> str | None:
    if bbox is None or not issued:
        return None
    ts = radmap_timestamp(issued)
    if not ts:
        return None
    layers = "&".join(f"layers[]={layer}" for layer in _RADMAP_LAYERS)
    return (
        f"{options.radmap_url}?{layers}"
        f"&bbox={bbox.xmin},{bbox.ymin},{bbox.xmax},{bbox.ymax}"
        f"&width=800&height=600&ts={ts}&title={quote(options.phenomenon)}"
    )


def plot_image_url(props: SbwProperties, options: ExtractOptions) -> str | None:
    required = (
        props.wfo,
        props.year,
        props.phenomena,
        props.significance,
        props.eventid,
    )
    if not all(_present(v) for v in required):
        return None
    return (
        f"{options.plot_url}network:WFO::wfo:{props.wfo}::year:{props.year}"
        f"::phenomenav:{props.phenomena}::significancev:{props.significance}"
        f"::etn:{props.eventid}::opt:single::n:auto::_r:88::dpi:200.png"
    )


def nwstext_url(props: SbwProperties, options: ExtractOptions) -> str | None:
    if not _present(props.product_id):
        return None
    return f"{options.nwstext_url}?{urlencode({'product_id': props.product_id})}"


def _to_warning(
    record: dict[str, Any], feature: SbwFeature, options: ExtractOptions
) -> WarningEvent | None:
    props = feature.properties
    event_id = feature.id if _present(feature.id) else props.product_id
    if not _present(event_id):
        return None

    bbox = bounding_box(feature.geometry, options.margin)
    radmap = radmap_image_url(bbox, props.issue, options)
    if radmap is None:
        logger.debug("no bbox or issue time for warning %s", event_id)

    return WarningEvent(
        id=str(event_id),
        wfo=props.wfo,
        eventid=props.eventid,
        status=props.status,
        issued=props.issue,
        expires=props.expire_utc,
        polygon_begin=props.polygon_begin,
        polygon_end=props.polygon_end,
        windtag=props.windtag,
        hailtag=props.hailtag,
        tornadotag=props.tornadotag,
        is_pds=bool(props.is_pds),
        is_emergency=bool(props.is_emergency),
        product_signature=props.product_signature,
        href=props.href,
        radmap_image_url=radmap,
        plot_image_url=plot_image_url(props, options),
        nwstext_url=nwstext_url(props, options),
        properties=dict(record["properties"]),
        geometry=record.get("geometry"),
    )


def extract_warnings(
    doc: FeedDocument, options: ExtractOptions | None = None
) -> list[WarningEvent]:
    """Warnings of the target phenomenon, in feed order.

    Records of other phenomena and records that do not validate against
    ``SbwFeature`` are skipped.
    """
    options = options or ExtractOptions()
    warnings: list[WarningEvent] = []
    for record in doc.features:
        props = record.get("properties")
        if not isinstance(props, dict) or props.get("ps") != options.phenomenon:
            continue
        try:
            feature = SbwFeature.model_validate(record)
        except ValidationError:
            logger.debug("skipping malformed record %s", record.get("id"))
            continue
        warning = _to_warning(record, feature, options)
        if warning is not None:
            warnings.append(warning)

    logger.info(
        "found %d %s records out of %d total",
        len(warnings),
        options.phenomenon,
        len(doc.features),
    )
    return warnings
