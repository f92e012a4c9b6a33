"""
Geographic helpers: great-circle distance for the nearby-station search and
GeoJSON conversion for the station map endpoints
"""
import math
from typing import Any, Dict, Iterable, List, Optional, Tuple

from shapely.geometry import Point, mapping

EARTH_RADIUS_KM = 6371.0

def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two WGS84 points in kilometres"""
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dl = math.radians(lon2 - lon1)
    dp = math.radians(lat2 - lat1)
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))

def validate_coordinates(lat: float, lng: float) -> None:
    if not (-90 <= lat <= 90):
        raise ValueError(f"Latitude must be between -90 and 90, got {lat}")
    if not (-180 <= lng <= 180):
        raise ValueError(f"Longitude must be between -180 and 180, got {lng}")

def within_radius(
    items: Iterable[Any],
    lat: float,
    lng: float,
    radius_km: float,
    coords=lambda item: (float(item.latitude), float(item.longitude)),
) -> List[Tuple[Any, float]]:
    """
    Pair each item with its distance from (lat, lng), keep those inside the
    radius and sort nearest first
    """
    results = []
    for item in items:
        item_lat, item_lng = coords(item)
        distance = haversine_km(lat, lng, item_lat, item_lng)
        if distance <= radius_km:
            results.append((item, distance))
    results.sort(key=lambda pair: pair[1])
    return results

def point_geometry(lat: float, lng: float) -> Dict[str, Any]:
    """GeoJSON Point geometry ([longitude, latitude] order)"""
    validate_coordinates(lat, lng)
    return dict(mapping(Point(lng, lat)))

def make_geojson_feature(geometry: Dict[str, Any], properties: Dict[str, Any]) -> Dict[str, Any]:
    """Create a GeoJSON Feature object"""
    return {
        "type": "Feature",
        "geometry": geometry,
        "properties": properties
    }

def make_feature_collection(features: list, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Create a GeoJSON FeatureCollection"""
    collection = {
        "type": "FeatureCollection",
        "features": features
    }
    if metadata:
        collection["metadata"] = metadata
    return collection
