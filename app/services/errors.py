"""Error kinds raised by the roof measurement core.

All of them subclass ``ValueError`` so the HTTP layer can keep mapping
``ValueError`` to a 400 response.
"""


class RoofMeasureError(ValueError):
    """Base class for recoverable image/geometry failures."""

    reason: str = "processing_error"


class InvalidBounds(RoofMeasureError):
    reason = "invalid_bounds"


class InvalidDimensions(RoofMeasureError):
    reason = "invalid_dimensions"


class MalformedPolygon(RoofMeasureError):
    reason = "malformed_polygon"


class InvalidImage(RoofMeasureError):
    reason = "invalid_image"


# Not an exception: an empty detection is a valid outcome carried by
# DetectionResult.reason.
NO_REGIONS_DETECTED = "no_regions_detected"


__all__ = [
    "RoofMeasureError",
    "InvalidBounds",
    "InvalidDimensions",
    "MalformedPolygon",
    "InvalidImage",
    "NO_REGIONS_DETECTED",
]
