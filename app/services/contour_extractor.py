from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from app.services import vision_ops
from app.services.detection_config import DetectionConfig, DEFAULT_CONFIG

logger = logging.getLogger(__name__)


@dataclass
class PixelPolygon:
    """Simplified closed polygon in image pixel space."""
    points: np.ndarray  # Nx2 int32, (x, y); closing edge implied
    area_px: float
    perimeter_px: float

    def vertices(self) -> List[Tuple[int, int]]:
        return [(int(x), int(y)) for x, y in self.points]

    def __len__(self) -> int:
        return int(self.points.shape[0])


class ContourExtractor:
    """
    Turns a binary roof mask into simplified polygons.

    Only outer boundaries are traced; holes inside a roof blob are not sections.
    Blobs under ``min_contour_area_px`` are dropped as noise, and each survivor
    is simplified with a tolerance proportional to its perimeter.
    """

    def __init__(self, config: Optional[DetectionConfig] = None) -> None:
        self.config = config or DEFAULT_CONFIG

    def extract(self, mask: np.ndarray) -> List[PixelPolygon]:
        if mask.ndim != 2:
            raise ValueError(f"Mask must be single-channel, got shape {mask.shape}")
        if mask.dtype != np.uint8:
            mask = (mask > 0).astype(np.uint8) * 255

        polygons: List[PixelPolygon] = []
        raw = vision_ops.find_external_contours(mask)
        for contour in raw:
            if contour.shape[0] < 3:
                continue
            area = vision_ops.contour_area(contour)
            if area < self.config.min_contour_area_px:
                continue
            perim = vision_ops.perimeter(contour)
            simplified = vision_ops.simplify(contour, self.config.simplify_epsilon_factor * perim)
            if simplified.shape[0] < 3:
                logger.debug("Dropping contour that simplified to %d vertices", simplified.shape[0])
                continue
            polygons.append(PixelPolygon(points=simplified.astype(np.int32), area_px=area, perimeter_px=perim))
        logger.debug("Contours: %d traced, %d kept", len(raw), len(polygons))
        return polygons


__all__ = ["PixelPolygon", "ContourExtractor"]
