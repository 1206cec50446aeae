"""
Geometry utilities for parcel polygons.

Parcels store their vertices as (latitude, longitude) pairs while every
geodetic computation consumes (longitude, latitude); the helpers here do
that swap in one place.
"""
import math
from typing import Any, Sequence
from pyproj import Geod
from shapely.geometry import Polygon, mapping


METERS_PER_DEGREE = 111000.0
SQUARE_METERS_PER_HECTARE = 10000.0

_geod = Geod(ellps="WGS84")


def open_ring(coordinates: Sequence[tuple[float, float]]) -> list[tuple[float, float]]:
    """
    Drop an explicit closing vertex, if present.

    Args:
        coordinates: Polygon vertices in any order convention

    Returns:
        Vertices without a repeated final point
    """
    coords = [tuple(c) for c in coordinates]
    if len(coords) > 1 and coords[0] == coords[-1]:
        coords = coords[:-1]
    return coords


def close_ring(coordinates: Sequence[tuple[float, float]]) -> list[tuple[float, float]]:
    """Return the vertices with the first point repeated at the end."""
    coords = open_ring(coordinates)
    if coords:
        coords.append(coords[0])
    return coords


def to_lon_lat(coordinates: Sequence[tuple[float, float]]) -> list[tuple[float, float]]:
    """Swap (latitude, longitude) pairs to (longitude, latitude)."""
    return [(lon, lat) for lat, lon in coordinates]


def compute_bounding_box(
    coordinates: Sequence[tuple[float, float]]
) -> tuple[float, float, float, float]:
    """
    Compute the bounding box of a parcel.

    Args:
        coordinates: Parcel vertices as (latitude, longitude) pairs

    Returns:
        (west, south, east, north) in degrees
    """
    if not coordinates:
        raise ValueError("Coordinates list cannot be empty")

    lons = [lon for lon, _ in to_lon_lat(coordinates)]
    lats = [lat for _, lat in to_lon_lat(coordinates)]
    return min(lons), min(lats), max(lons), max(lats)


def ground_footprint_meters(bbox: Sequence[float]) -> tuple[float, float]:
    """
    Approximate the ground extent of a bounding box.

    Uses the equirectangular approximation: a degree of latitude is taken as
    111 km and a degree of longitude is scaled by the cosine of the box's
    mid latitude.

    Args:
        bbox: [west, south, east, north] in degrees

    Returns:
        (north-south extent, east-west extent) in meters
    """
    west, south, east, north = bbox
    lat_distance = abs(north - south) * METERS_PER_DEGREE
    mid_lat = math.radians((south + north) / 2)
    lon_distance = abs(east - west) * METERS_PER_DEGREE * math.cos(mid_lat)
    return lat_distance, lon_distance


def select_grid_size(
    max_dimension: float,
    breakpoints: Sequence[tuple[float, int]],
    max_resolution: int,
) -> int:
    """
    Pick an output grid size for a footprint.

    Args:
        max_dimension: Largest footprint extent in meters
        breakpoints: Ascending (threshold meters, pixels) pairs; the first
            threshold strictly greater than the footprint wins
        max_resolution: Pixels used when the footprint exceeds every threshold

    Returns:
        Grid width/height in pixels
    """
    for threshold, pixels in sorted(breakpoints):
        if max_dimension < threshold:
            return int(pixels)
    return int(max_resolution)


def geodesic_area_hectares(coordinates: Sequence[tuple[float, float]]) -> float:
    """
    Compute the geodesic area of a parcel on the WGS84 ellipsoid.

    Args:
        coordinates: Parcel vertices as (latitude, longitude) pairs

    Returns:
        Area in hectares (always non-negative)
    """
    ring = open_ring(coordinates)
    lats = [lat for lat, _ in ring]
    lons = [lon for _, lon in ring]
    area, _ = _geod.polygon_area_perimeter(lons, lats)
    return abs(area) / SQUARE_METERS_PER_HECTARE


def parcel_polygon(coordinates: Sequence[tuple[float, float]]) -> Polygon:
    """Build a shapely polygon in (longitude, latitude) order."""
    return Polygon(close_ring(to_lon_lat(coordinates)))


def parcel_geojson(coordinates: Sequence[tuple[float, float]]) -> dict[str, Any]:
    """
    Convert parcel vertices to a GeoJSON Polygon geometry.

    Args:
        coordinates: Parcel vertices as (latitude, longitude) pairs

    Returns:
        GeoJSON mapping with a closed (longitude, latitude) ring
    """
    geometry = mapping(parcel_polygon(coordinates))
    return {
        "type": geometry["type"],
        "coordinates": [[list(point) for point in ring] for ring in geometry["coordinates"]],
    }


def is_simple_polygon(coordinates: Sequence[tuple[float, float]]) -> bool:
    """Check that the parcel ring does not self-intersect."""
    return parcel_polygon(coordinates).is_valid
