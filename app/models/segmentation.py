import logging
from typing import Optional, Union

import numpy as np
from PIL import Image

from app.services import vision_ops
from app.services.detection_config import DetectionConfig, DEFAULT_CONFIG

logger = logging.getLogger(__name__)


ImageLike = Union[np.ndarray, Image.Image]


def image_to_array(image: ImageLike) -> np.ndarray:
    """Convert a PIL image or numpy array to an HxWx3 RGB uint8 array."""
    if isinstance(image, Image.Image):
        if image.mode != "RGB":
            image = image.convert("RGB")
        return np.array(image)
    if not isinstance(image, np.ndarray):
        raise TypeError("Expected a numpy array or PIL.Image")
    return vision_ops.to_rgb(image)


class RoofSegmenter:
    """
    Heuristic roof segmentation combining two cues:

    - color: low-saturation, mid-value pixels (gray/neutral roofing)
    - edges: Canny on a blurred grayscale image, dilated to close small gaps

    The cues are OR-ed and cleaned with a morphological opening. Output is a
    single-channel uint8 mask (0/255) the same size as the input.
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DEFAULT_CONFIG

    def color_mask(self, rgb: np.ndarray) -> np.ndarray:
        band = self.config.color_band
        hsv = vision_ops.to_hsv(rgb)
        return vision_ops.threshold(hsv, band.lower, band.upper)

    def edge_mask(self, rgb: np.ndarray) -> np.ndarray:
        cfg = self.config
        gray = vision_ops.to_gray(rgb)
        smoothed = vision_ops.blur(gray, cfg.blur_kernel)
        found = vision_ops.edges(smoothed, cfg.edge_low, cfg.edge_high)
        return vision_ops.dilate(found, cfg.edge_dilate_kernel, cfg.edge_dilate_iterations)

    def predict(self, image: ImageLike) -> np.ndarray:
        rgb = image_to_array(image)
        color = self.color_mask(rgb)
        edge = self.edge_mask(rgb)
        combined = np.bitwise_or(color, edge)
        mask = vision_ops.morphology_open(combined, self.config.open_kernel)
        logger.debug(
            "Segmentation: color=%d edge=%d final=%d roof pixels",
            int(np.count_nonzero(color)), int(np.count_nonzero(edge)), int(np.count_nonzero(mask)),
        )
        return mask
