# app/services/geofence.py
"""
National boundary geofence.

Containment is a ray-casting point-in-polygon test on a (lat, lng) ring.
Points lying exactly on an edge are decided by the half-open crossing rule
(an edge counts when one endpoint is strictly above the point's latitude and
the other is not); they are not special-cased.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from app.exceptions import InvalidConfiguration
from app.utils.json_parser import safe_parse_json, get_nested
from app.utils.logger import get_logger

logger = get_logger(__name__)

LatLng = Tuple[float, float]

# Simplified Iraq boundary, (lat, lng), clockwise from the Syria/Turkey tripoint.
IRAQ_BOUNDARY: Tuple[LatLng, ...] = (
    (37.23, 42.35), (37.38, 42.78), (37.26, 43.94), (37.00, 44.29),
    (37.17, 44.77), (35.98, 45.42), (35.68, 46.08), (35.09, 46.15),
    (34.75, 45.65), (33.97, 45.42), (33.02, 46.11), (32.47, 47.33),
    (31.71, 47.85), (30.98, 47.68), (30.99, 48.00), (30.45, 48.01),
    (29.93, 48.57), (29.98, 47.97), (30.06, 47.30), (29.10, 46.57),
    (29.18, 44.71), (31.11, 42.08), (31.89, 40.40), (32.16, 39.20),
    (33.38, 38.79), (34.42, 41.01), (35.63, 41.38), (36.36, 41.29),
    (36.61, 41.84), (37.11, 42.36),
)

# Map centre used for default positions (Baghdad)
IRAQ_CENTER: LatLng = (33.3152, 44.3661)


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def clamp(self, lat: float, lng: float) -> LatLng:
        return (
            max(self.min_lat, min(self.max_lat, lat)),
            max(self.min_lng, min(self.max_lng, lng)),
        )


class GeofenceValidator:
    """Immutable boundary ring plus the containment test."""

    def __init__(self, ring: Iterable[Sequence[float]] = IRAQ_BOUNDARY):
        points = [(float(lat), float(lng)) for lat, lng in ring]
        if len(points) > 1 and points[0] == points[-1]:
            points = points[:-1]   # closed ring given, drop the repeated vertex
        if len(set(points)) < 3:
            raise InvalidConfiguration("Geofence polygon needs at least 3 distinct vertices")
        for lat, lng in points:
            if not (-90 <= lat <= 90 and -180 <= lng <= 180):
                raise InvalidConfiguration(f"Geofence vertex out of range: ({lat}, {lng})")

        self._ring: Tuple[LatLng, ...] = tuple(points)
        lats = [p[0] for p in points]
        lngs = [p[1] for p in points]
        self.bounding_box = BoundingBox(min(lats), max(lats), min(lngs), max(lngs))

    @property
    def ring(self) -> Tuple[LatLng, ...]:
        return self._ring

    def contains(self, lat: float, lng: float) -> bool:
        box = self.bounding_box
        if not (box.min_lat <= lat <= box.max_lat and box.min_lng <= lng <= box.max_lng):
            return False

        inside = False
        lat1, lng1 = self._ring[-1]
        for lat2, lng2 in self._ring:
            if (lat1 > lat) != (lat2 > lat):
                crossing = (lng2 - lng1) * (lat - lat1) / (lat2 - lat1) + lng1
                if lng < crossing:
                    inside = not inside
            lat1, lng1 = lat2, lng2
        return inside

    def clamp(self, lat: float, lng: float) -> LatLng:
        return self.bounding_box.clamp(lat, lng)


def ring_from_geojson(document: dict) -> list[LatLng]:
    """
    Extract the exterior ring of the first Polygon in a GeoJSON document
    (bare geometry, Feature or FeatureCollection). GeoJSON stores [lng, lat].
    """
    geometry = document
    if document.get("type") == "FeatureCollection":
        features = document.get("features") or []
        geometry = get_nested(features[0], "geometry") if features else None
    elif document.get("type") == "Feature":
        geometry = document.get("geometry")

    if not isinstance(geometry, dict):
        raise InvalidConfiguration("GeoJSON document has no geometry")

    coordinates = geometry.get("coordinates") or []
    if geometry.get("type") == "MultiPolygon":
        coordinates = coordinates[0] if coordinates else []
    elif geometry.get("type") != "Polygon":
        raise InvalidConfiguration(f"Unsupported geofence geometry: {geometry.get('type')}")

    if not coordinates:
        raise InvalidConfiguration("GeoJSON polygon is empty")
    return [(float(pt[1]), float(pt[0])) for pt in coordinates[0]]


def load_geofence(path: Optional[str] = None) -> GeofenceValidator:
    """Build the validator from a GeoJSON file, or the built-in Iraq ring when no path is given."""
    if not path:
        return GeofenceValidator()

    try:
        with open(path, "rb") as f:
            document = safe_parse_json(f.read())
    except OSError as e:
        raise InvalidConfiguration(f"Cannot read geofence file {path}: {e}") from e

    if not isinstance(document, dict):
        raise InvalidConfiguration(f"Geofence file {path} is not a JSON object")

    validator = GeofenceValidator(ring_from_geojson(document))
    logger.info(f"[GEOFENCE] Loaded {len(validator.ring)} vertices from {path}")
    return validator
