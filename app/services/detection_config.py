from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class ColorBand:
    """Inclusive HSV range on OpenCV's 8-bit scale (hue 0-180, s/v 0-255)."""
    lower: Tuple[int, int, int] = (0, 0, 50)
    upper: Tuple[int, int, int] = (180, 50, 150)


@dataclass(frozen=True)
class PitchBuckets:
    """Shadow intensity buckets. Lower bounds are inclusive for the next bucket."""
    steep_below: float = 50.0
    medium_below: float = 100.0
    steep_label: str = "6/12"
    medium_label: str = "4/12"
    shallow_label: str = "2/12"


@dataclass(frozen=True)
class DetectionConfig:
    """
    Heuristic constants for the roof detection pipeline.

    Defaults are the tuned values for gray/neutral roofs in a single
    map viewport screenshot. Pass an alternative instance to the pipeline
    to experiment; nothing here is read from the environment.
    """
    # Segmentation: color cue
    color_band: ColorBand = field(default_factory=ColorBand)
    # Segmentation: edge cue
    blur_kernel: int = 5
    edge_low: int = 20
    edge_high: int = 80
    edge_dilate_kernel: int = 3
    edge_dilate_iterations: int = 1
    # Cleanup of the combined mask
    open_kernel: int = 3
    # Contour extraction
    min_contour_area_px: float = 100.0
    simplify_epsilon_factor: float = 0.01
    # Pitch estimation
    shadow_band_height_px: int = 30
    pitch_buckets: PitchBuckets = field(default_factory=PitchBuckets)
    manual_default_pitch: str = "3/12"
    # Measurement
    sqft_per_m2: float = 10.764
    earth_radius_m: float = 6378137.0


DEFAULT_CONFIG = DetectionConfig()


__all__ = ["ColorBand", "PitchBuckets", "DetectionConfig", "DEFAULT_CONFIG"]
