import math
from dataclasses import dataclass
from typing import Tuple, Dict

from app.services.errors import InvalidBounds, InvalidDimensions


@dataclass(frozen=True)
class LatLng:
    lat: float
    lng: float

    def as_tuple(self) -> Tuple[float, float]:
        return self.lat, self.lng


@dataclass(frozen=True)
class GeoBoundingBox:
    """Viewport extent as (northeast, southwest) corners in WGS84 degrees."""
    northeast: LatLng
    southwest: LatLng

    @classmethod
    def from_corners(cls, min_lon: float, min_lat: float, max_lon: float, max_lat: float) -> "GeoBoundingBox":
        return cls(northeast=LatLng(float(max_lat), float(max_lon)),
                   southwest=LatLng(float(min_lat), float(min_lon)))

    @property
    def lat_span(self) -> float:
        return self.northeast.lat - self.southwest.lat

    @property
    def lng_span(self) -> float:
        return self.northeast.lng - self.southwest.lng

    def validate(self) -> None:
        """Raise InvalidBounds unless the box is finite, ordered and non-degenerate."""
        values = (self.northeast.lat, self.northeast.lng, self.southwest.lat, self.southwest.lng)
        if not all(math.isfinite(v) for v in values):
            raise InvalidBounds(f"Bounding box has non-finite coordinates: {values}")
        if not (-90.0 <= self.southwest.lat <= 90.0 and -90.0 <= self.northeast.lat <= 90.0):
            raise InvalidBounds("Latitudes must lie within [-90, 90]")
        if self.lat_span <= 0:
            raise InvalidBounds(
                f"Northeast latitude {self.northeast.lat} must be greater than southwest latitude {self.southwest.lat}"
            )
        if self.lng_span == 0:
            raise InvalidBounds("Bounding box has zero longitude span")


class EquirectangularProjection:
    """Latitude maps linearly onto image rows."""
    name = "equirectangular"

    def forward(self, lat: float) -> float:
        return lat

    def inverse(self, v: float) -> float:
        return v


class WebMercatorProjection:
    """
    Rows are linear in Mercator Y, as in a slippy-map screenshot.
    Exact for a north-up Web-Mercator viewport; longitude stays linear either way.
    """
    name = "web_mercator"
    # Web-Mercator's clipping latitude
    max_lat = 85.05112878

    def forward(self, lat: float) -> float:
        lat = max(-self.max_lat, min(self.max_lat, lat))
        return math.log(math.tan(math.pi / 4.0 + math.radians(lat) / 2.0))

    def inverse(self, v: float) -> float:
        return math.degrees(2.0 * math.atan(math.exp(v)) - math.pi / 2.0)


_PROJECTIONS: Dict[str, type] = {
    EquirectangularProjection.name: EquirectangularProjection,
    WebMercatorProjection.name: WebMercatorProjection,
}


def get_projection(name: str = "equirectangular"):
    try:
        return _PROJECTIONS[name.strip().lower()]()
    except KeyError:
        raise ValueError(f"Unknown projection '{name}'. Expected one of: {', '.join(sorted(_PROJECTIONS))}")


class Calibration:
    """
    Pixel <-> geographic mapping for one captured viewport.

    Pixel (0, 0) is the top-left corner (northwest); (W, H) is the bottom-right
    corner (southeast). Instances hold no mutable state and are rebuilt per capture.
    """

    def __init__(self, width: int, height: int, bounds: GeoBoundingBox, projection=None) -> None:
        if width is None or height is None or int(width) <= 0 or int(height) <= 0:
            raise InvalidDimensions(f"Image dimensions must be positive, got {width}x{height}")
        bounds.validate()
        self.width = int(width)
        self.height = int(height)
        self.bounds = bounds
        self.projection = projection or EquirectangularProjection()
        self._v_sw = self.projection.forward(bounds.southwest.lat)
        self._v_ne = self.projection.forward(bounds.northeast.lat)
        if self._v_ne == self._v_sw:
            raise InvalidBounds("Bounding box collapses to zero height under the selected projection")

    def to_geo(self, x: float, y: float) -> LatLng:
        v = self._v_sw + (self._v_ne - self._v_sw) * (1.0 - float(y) / self.height)
        lat = self.projection.inverse(v)
        lng = self.bounds.southwest.lng + self.bounds.lng_span * (float(x) / self.width)
        return LatLng(float(lat), float(lng))

    def to_pixel(self, lat: float, lng: float) -> Tuple[float, float]:
        x = (float(lng) - self.bounds.southwest.lng) / self.bounds.lng_span * self.width
        v = self.projection.forward(float(lat))
        y = (1.0 - (v - self._v_sw) / (self._v_ne - self._v_sw)) * self.height
        return float(x), float(y)
