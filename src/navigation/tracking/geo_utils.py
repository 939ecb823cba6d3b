# geo_utils.py
# Pure mathematical / geographic helper functions.
# No side effects, no state.

import math
from typing import Sequence, Tuple, Union

import numpy as np

from .models import Coord, Route


EARTH_RADIUS_M = 6_371_000.0

_COMPASS_POINTS = ("north", "northeast", "east", "southeast",
                   "south", "southwest", "west", "northwest")


# ---------------------------------------------------------------------------
# Angles
# ---------------------------------------------------------------------------

def normalize_angle(degrees: float) -> float:
    """Bring an angle into [0, 360)."""
    while degrees < 0.0:
        degrees += 360.0
    while degrees >= 360.0:
        degrees -= 360.0
    return degrees


def angle_difference(target: float, source: float) -> float:
    """
    Signed shortest rotation from source to target, in [-180, 180].

    angle_difference(359, 1) == -2, not 358.
    """
    diff = target - source
    while diff > 180.0:
        diff -= 360.0
    while diff < -180.0:
        diff += 360.0
    return diff


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Forward azimuth (bearing) from point 1 to point 2 in degrees [0, 360).

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Bearing in degrees.
    """
    rlat1, rlon1 = math.radians(lat1), math.radians(lon1)
    rlat2, rlon2 = math.radians(lat2), math.radians(lon2)
    d_lon = rlon2 - rlon1
    y = math.sin(d_lon) * math.cos(rlat2)
    x = math.cos(rlat1) * math.sin(rlat2) - math.sin(rlat1) * math.cos(rlat2) * math.cos(d_lon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def bearing_to_compass(bearing: float) -> str:
    """Convert a bearing to one of eight compass words."""
    return _COMPASS_POINTS[round(bearing / 45) % 8]


# ---------------------------------------------------------------------------
# Distances
# ---------------------------------------------------------------------------

def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in metres.

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Distance in metres.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def coord_distance(a: Coord, b: Coord) -> float:
    return haversine_distance(a.lat, a.lon, b.lat, b.lon)


def _haversine_array(lat1: float, lon1: float, lat2: np.ndarray, lon2: np.ndarray) -> np.ndarray:
    """Vectorised haversine from one point to many."""
    rlat1 = np.radians(lat1)
    rlat2 = np.radians(lat2)
    d_lat = rlat2 - rlat1
    d_lon = np.radians(lon2 - lon1)
    a = np.sin(d_lat / 2) ** 2 + np.cos(rlat1) * np.cos(rlat2) * np.sin(d_lon / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    return EARTH_RADIUS_M * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def _as_array(points: Sequence[Coord]) -> np.ndarray:
    return np.array([(p.lat, p.lon) for p in points], dtype=float).reshape(-1, 2)


def segment_distances(point: Coord, points: Sequence[Coord]) -> np.ndarray:
    """
    Distance in metres from point to every segment of a polyline.

    The projection parameter is computed in a local equirectangular frame
    (longitude scaled by cos(lat)) and clamped to [0, 1]; zero-length
    segments fall back to the distance to their start point. The final
    distance to the projected point is a haversine distance.

    Returns:
        Array of len(points) - 1 distances (empty for a single point).
    """
    pts = _as_array(points)
    start = pts[:-1]
    end = pts[1:]

    scale = np.array([1.0, math.cos(math.radians(point.lat))])
    p = np.array([point.lat, point.lon])

    ab = (end - start) * scale
    ap = (p - start) * scale
    ab_sq = np.einsum("ij,ij->i", ab, ab)
    dot = np.einsum("ij,ij->i", ap, ab)

    t = np.divide(dot, ab_sq, out=np.zeros_like(ab_sq), where=ab_sq > 0)
    t = np.clip(t, 0.0, 1.0)

    closest = start + t[:, None] * (end - start)
    return _haversine_array(point.lat, point.lon, closest[:, 0], closest[:, 1])


def point_to_segment_distance(point: Coord, start: Coord, end: Coord) -> float:
    """Shortest distance in metres from point to the segment start→end."""
    return float(segment_distances(point, (start, end))[0])


def nearest_segment_index(point: Coord, points: Sequence[Coord]) -> Tuple[int, float]:
    """
    Index of the polyline segment closest to point, and its distance.

    A single-point polyline reports index 0 and the point-to-point distance.
    """
    if len(points) < 2:
        return 0, coord_distance(point, points[0])
    distances = segment_distances(point, points)
    index = int(np.argmin(distances))
    return index, float(distances[index])


def min_distance_to_route(
    point: Coord,
    route: Union[Route, Sequence[Coord]],
    fast_path_m: float = 5.0,
) -> float:
    """
    Minimum distance in metres from point to a route polyline.

    Segments are scanned in order and the scan stops at the first segment
    closer than fast_path_m, returning the running minimum at that point.
    A later, even closer segment is therefore not reported once the user
    is known to be on the route.

    Args:
        point:       Current position.
        route:       Route or plain sequence of polyline points.
        fast_path_m: On-route early exit distance; 0 disables it.

    Returns:
        Distance in metres.
    """
    points = route.points if isinstance(route, Route) else route
    if not points:
        raise ValueError("Polyline must contain at least one point.")
    if len(points) == 1:
        return coord_distance(point, points[0])

    running = np.minimum.accumulate(segment_distances(point, points))
    hits = np.flatnonzero(running < fast_path_m)
    if hits.size:
        return float(running[hits[0]])
    return float(running[-1])
