import numpy as np
from typing import Tuple, Optional, Sequence, Union
from dataclasses import dataclass
from enum import Enum
import logging

from app.services import vision_ops
from app.services.detection_config import DetectionConfig, DEFAULT_CONFIG
from app.services.errors import MalformedPolygon

logger = logging.getLogger(__name__)


class PitchClass(str, Enum):
    """Ordinal steepness classes produced by the shadow heuristic"""
    SHALLOW = "shallow"
    MEDIUM = "medium"
    STEEP = "steep"


@dataclass
class PitchEstimate:
    """Result of pitch estimation"""
    pitch_class: PitchClass
    label: str
    intensity: Optional[float]
    band: Optional[Tuple[int, int, int, int]]  # x, y, w, h of the sampled shadow band


class PitchEstimator:
    """
    Roof pitch estimator using the shadow cast below a detected roof.

    Assumes a fixed sun position: a darker band directly under the roof's
    bounding box means a longer, denser shadow and therefore a steeper plane.
    This is an ordinal guess, not a photometric measurement.
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        """
        Initialize pitch estimator

        Args:
            config: heuristic constants (band height, intensity buckets, labels)
        """
        self.config = config or DEFAULT_CONFIG

    def classify_intensity(self, intensity: float) -> Tuple[PitchClass, str]:
        """
        Bucket a mean grayscale intensity (0-255) into a pitch class.

        Args:
            intensity: mean shadow-band intensity

        Returns:
            Tuple of (pitch class, rise/run label)
        """
        buckets = self.config.pitch_buckets
        if intensity < buckets.steep_below:
            return PitchClass.STEEP, buckets.steep_label
        if intensity < buckets.medium_below:
            return PitchClass.MEDIUM, buckets.medium_label
        return PitchClass.SHALLOW, buckets.shallow_label

    def shadow_band(self, polygon_px: Union[np.ndarray, Sequence[Tuple[float, float]]],
                    image_size: Tuple[int, int]) -> Optional[Tuple[int, int, int, int]]:
        """
        Locate the sampling band directly below the polygon's bounding box.

        Args:
            polygon_px: polygon vertices in pixel space
            image_size: (width, height) of the source image

        Returns:
            (x, y, w, h) clipped to the image, or None when nothing is left to sample
        """
        points = np.asarray(polygon_px, dtype=np.float64).reshape(-1, 2)
        if points.shape[0] < 3:
            raise MalformedPolygon(f"Polygon needs at least 3 vertices, got {points.shape[0]}")
        width, height = image_size
        x, y, w, h = vision_ops.bounding_rect(np.round(points))
        top = y + h
        x0 = max(0, x)
        x1 = min(width, x + w)
        band_h = min(self.config.shadow_band_height_px, height - top)
        if band_h <= 0 or x1 <= x0:
            return None
        return x0, top, x1 - x0, band_h

    def estimate(self, polygon_px, image: np.ndarray) -> PitchEstimate:
        """
        Estimate pitch for one polygon from the image it was detected in.

        Args:
            polygon_px: polygon vertices in pixel space
            image: source image (gray, RGB or RGBA array)

        Returns:
            PitchEstimate with the label and the sampled intensity
        """
        gray = vision_ops.to_gray(image)
        height, width = gray.shape[:2]
        band = self.shadow_band(polygon_px, (width, height))
        if band is None:
            # No pixels below the roof: treat as no visible shadow
            buckets = self.config.pitch_buckets
            logger.debug("Shadow band empty for polygon; defaulting to %s", buckets.shallow_label)
            return PitchEstimate(PitchClass.SHALLOW, buckets.shallow_label, None, None)

        x, y, w, h = band
        intensity = float(np.mean(gray[y:y + h, x:x + w]))
        pitch_class, label = self.classify_intensity(intensity)
        return PitchEstimate(pitch_class, label, intensity, band)
