"""
Spherical polygon area, reported in square feet.

Area uses the sum of signed polar-triangle areas over each edge, which treats
edges as great-circle arcs on a sphere of radius ``earth_radius_m``.
"""
from __future__ import annotations

import math
from functools import reduce
from typing import Iterable, Optional, Sequence, Tuple, Union

from app.services.detection_config import DetectionConfig, DEFAULT_CONFIG
from app.services.geo_utils import LatLng

PointLike = Union[LatLng, Tuple[float, float], Sequence[float]]


def _lat_lng(point: PointLike) -> Tuple[float, float]:
    if isinstance(point, LatLng):
        return point.lat, point.lng
    if isinstance(point, dict):
        return float(point["lat"]), float(point["lng"])
    lat, lng = point
    return float(lat), float(lng)


def _polar_triangle_area(tan1: float, lng1: float, tan2: float, lng2: float) -> float:
    delta_lng = lng1 - lng2
    t = tan1 * tan2
    return 2.0 * math.atan2(t * math.sin(delta_lng), 1.0 + t * math.cos(delta_lng))


def signed_area_m2(polygon: Sequence[PointLike], radius_m: float = DEFAULT_CONFIG.earth_radius_m) -> float:
    if len(polygon) < 3:
        return 0.0
    prev_lat, prev_lng = _lat_lng(polygon[-1])
    prev_tan = math.tan((math.pi / 2.0 - math.radians(prev_lat)) / 2.0)
    prev_lng_r = math.radians(prev_lng)
    total = 0.0
    for point in polygon:
        lat, lng = _lat_lng(point)
        tan_lat = math.tan((math.pi / 2.0 - math.radians(lat)) / 2.0)
        lng_r = math.radians(lng)
        total += _polar_triangle_area(tan_lat, lng_r, prev_tan, prev_lng_r)
        prev_tan, prev_lng_r = tan_lat, lng_r
    return total * radius_m * radius_m


def _is_degenerate(points: Sequence[Tuple[float, float]], rel_tol: float = 1e-9) -> bool:
    """True when every vertex is coincident with or collinear to the first two distinct ones in (lat, lng)."""
    lat0, lng0 = points[0]
    ref = next(((lat - lat0, lng - lng0) for lat, lng in points[1:] if (lat, lng) != (lat0, lng0)), None)
    if ref is None:
        return True
    ref_len = math.hypot(*ref)
    for lat, lng in points[1:]:
        d = (lat - lat0, lng - lng0)
        cross = d[0] * ref[1] - d[1] * ref[0]
        if abs(cross) > rel_tol * math.hypot(*d) * ref_len:
            return False
    return True


def area_m2(polygon: Sequence[PointLike], radius_m: float = DEFAULT_CONFIG.earth_radius_m) -> float:
    if len(polygon) < 3 or _is_degenerate([_lat_lng(p) for p in polygon]):
        return 0.0
    return abs(signed_area_m2(polygon, radius_m))


def m2_to_sqft(value_m2: float, config: Optional[DetectionConfig] = None) -> int:
    """Convert and round half-up to whole square feet."""
    cfg = config or DEFAULT_CONFIG
    return int(math.floor(value_m2 * cfg.sqft_per_m2 + 0.5))


def measure(polygon: Sequence[PointLike], config: Optional[DetectionConfig] = None) -> int:
    """Area in whole square feet. Degenerate polygons (<3 vertices, collinear or coincident) measure 0."""
    cfg = config or DEFAULT_CONFIG
    polygon = list(polygon)
    if len(polygon) < 3:
        return 0
    return m2_to_sqft(area_m2(polygon, cfg.earth_radius_m), cfg)


def total_area_sqft(polygons: Iterable[Sequence[PointLike]], config: Optional[DetectionConfig] = None) -> int:
    """Sum of per-polygon rounded areas, folded left to right."""
    return reduce(lambda acc, poly: acc + measure(poly, config), polygons, 0)


__all__ = ["signed_area_m2", "area_m2", "m2_to_sqft", "measure", "total_area_sqft"]
