"""
Shared geometry functions for GPS calculations.

Points are (lat, lng) tuples in decimal degrees unless noted.
"""

import math
from typing import List, Optional, Sequence, Tuple

from lapsync import config
from lapsync.data.models import TrackLine

LatLng = Tuple[float, float]


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate great circle distance between two GPS points in meters.

    Args:
        lat1, lon1: First point (decimal degrees)
        lat2, lon2: Second point (decimal degrees)

    Returns:
        Distance in meters
    """
    R = config.EARTH_RADIUS_M

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return R * c


def path_distance(lat: Sequence[float], lng: Sequence[float]) -> List[float]:
    """Cumulative great-circle distance along a GPS path in meters."""
    if len(lat) == 0:
        return []

    distance = [0.0]
    for i in range(1, len(lat)):
        distance.append(distance[-1] + haversine_distance(lat[i - 1], lng[i - 1], lat[i], lng[i]))
    return distance



def bearing(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Initial great-circle bearing from point 1 to point 2 in degrees [0, 360)."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lng2 - lng1)

    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)

    return (math.degrees(math.atan2(y, x)) + 360) % 360


def offset_point(lat: float, lng: float, bearing_deg: float, distance_m: float) -> LatLng:
    """
    Point at a given distance and bearing from a start point.

    Spherical direct geodesic on a sphere of radius EARTH_RADIUS_M.

    Returns:
        (lat, lng) in decimal degrees
    """
    delta = distance_m / config.EARTH_RADIUS_M
    theta = math.radians(bearing_deg)
    phi1 = math.radians(lat)
    lambda1 = math.radians(lng)

    phi2 = math.asin(
        math.sin(phi1) * math.cos(delta)
        + math.cos(phi1) * math.sin(delta) * math.cos(theta)
    )
    lambda2 = lambda1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * math.sin(phi2),
    )

    return math.degrees(phi2), math.degrees(lambda2)


def _ccw(a: LatLng, b: LatLng, c: LatLng) -> bool:
    return (c[1] - a[1]) * (b[0] - a[0]) > (b[1] - a[1]) * (c[0] - a[0])


def segments_intersect(p1: LatLng, p2: LatLng, p3: LatLng, p4: LatLng) -> bool:
    """
    True if segment p1->p2 intersects segment p3->p4.

    Standard counter-clockwise orientation test. Collinear touching
    segments are not reported.
    """
    return _ccw(p1, p3, p4) != _ccw(p2, p3, p4) and _ccw(p1, p2, p3) != _ccw(p1, p2, p4)


def build_gate(line: TrackLine,
               half_width_m: float = config.GATE_HALF_WIDTH_M) -> Tuple[LatLng, LatLng]:
    """
    Gate segment perpendicular to the line's bearing, centred on its point.

    Returns:
        The two gate endpoints as (lat, lng) tuples
    """
    left = offset_point(line.lat, line.lng, (line.bearing + 90) % 360, half_width_m)
    right = offset_point(line.lat, line.lng, (line.bearing + 270) % 360, half_width_m)
    return left, right


def find_line_crossings(lat: Sequence[float], lng: Sequence[float],
                        line: Optional[TrackLine],
                        half_width_m: float = config.GATE_HALF_WIDTH_M) -> List[int]:
    """
    Find every index where a GPS path crosses a track line's gate.

    Args:
        lat, lng: GPS path in decimal degrees
        line: Finish or sector line (None means not configured)
        half_width_m: Gate half width in meters

    Returns:
        Index of the sample after each crossing, in path order
    """
    if line is None or len(lat) < 2:
        return []

    gate_p1, gate_p2 = build_gate(line, half_width_m)

    crossings = []
    for i in range(min(len(lat), len(lng)) - 1):
        if segments_intersect((lat[i], lng[i]), (lat[i + 1], lng[i + 1]), gate_p1, gate_p2):
            crossings.append(i + 1)

    return crossings


def track_bearing_at_index(lat: Sequence[float], lng: Sequence[float], idx: int,
                           lookaround: int = config.TRACK_BEARING_LOOKAROUND) -> float:
    """Direction of travel at a path index, from the samples around it."""
    lookback = max(0, idx - lookaround)
    lookahead = min(len(lat) - 1, idx + lookaround)
    return bearing(lat[lookback], lng[lookback], lat[lookahead], lng[lookahead])


def find_closest_track_point(lat: Sequence[float], lng: Sequence[float],
                             target_lat: float, target_lng: float) -> Tuple[int, float]:
    """
    Nearest path sample to a coordinate.

    Uses an equirectangular approximation, good enough for picking a
    line position on a circuit.

    Returns:
        (index, approximate distance in meters)
    """
    scale = math.cos(math.radians(target_lat))
    min_dist = math.inf
    min_idx = 0

    for i in range(len(lat)):
        d_lat = lat[i] - target_lat
        d_lng = (lng[i] - target_lng) * scale
        dist = math.sqrt(d_lat * d_lat + d_lng * d_lng)
        if dist < min_dist:
            min_dist = dist
            min_idx = i

    return min_idx, min_dist * config.METERS_PER_DEGREE


def track_line_at_index(lat: Sequence[float], lng: Sequence[float], idx: int) -> TrackLine:
    """TrackLine through a path sample, oriented along the direction of travel."""
    return TrackLine(lat=lat[idx], lng=lng[idx], bearing=track_bearing_at_index(lat, lng, idx))
