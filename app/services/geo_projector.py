from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple, Union

import numpy as np

from app.services.errors import MalformedPolygon
from app.services.geo_utils import Calibration, LatLng

PixelPoints = Union[np.ndarray, Sequence[Tuple[float, float]]]


def project_polygon(points: PixelPoints, calibration: Calibration) -> List[LatLng]:
    """Map every pixel vertex to (lat, lng). Vertex count and order are unchanged."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if pts.shape[0] < 3:
        raise MalformedPolygon(f"Polygon needs at least 3 vertices, got {pts.shape[0]}")
    return [calibration.to_geo(x, y) for x, y in pts]


def project_polygons(polygons: Iterable[PixelPoints], calibration: Calibration) -> List[List[LatLng]]:
    return [project_polygon(p, calibration) for p in polygons]


__all__ = ["project_polygon", "project_polygons"]
