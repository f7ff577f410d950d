from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from app.models.contour_scorer import AcceptAllScorer, ContourScorer
from app.models.pitch_estimator import PitchEstimate, PitchEstimator
from app.models.roof import RoofSection, RoofSectionSet, SOURCE_DETECTED
from app.models.segmentation import ImageLike, RoofSegmenter, image_to_array
from app.services.contour_extractor import ContourExtractor, PixelPolygon
from app.services.detection_config import DetectionConfig, DEFAULT_CONFIG
from app.services.errors import InvalidImage, NO_REGIONS_DETECTED, RoofMeasureError
from app.services.geo_projector import project_polygon
from app.services.geo_utils import Calibration, GeoBoundingBox, get_projection
from app.services.measurement import measure

logger = logging.getLogger(__name__)


@dataclass
class DetectionResult:
    """
    Outcome of one detection run.

    ``reason`` is None when sections were found, ``no_regions_detected`` for a
    clean empty result, or an error code when the run was rejected.
    """
    sections: List[RoofSection] = field(default_factory=list)
    reason: Optional[str] = None
    detail: Optional[str] = None
    image_size: Optional[Tuple[int, int]] = None

    @property
    def found(self) -> bool:
        return bool(self.sections)

    @property
    def failed(self) -> bool:
        return self.reason is not None and self.reason != NO_REGIONS_DETECTED

    def total_area_sqft(self) -> int:
        return RoofSectionSet(list(self.sections)).total_area_sqft()


class RoofPipeline:
    """
    Image + viewport bounds -> geographic roof sections.

    Stages: calibration, segmentation, contour extraction, optional learned
    filtering, projection, then (optionally) per-section area and pitch. Each
    call owns its image and mask; the pipeline holds only configuration.
    """

    def __init__(self,
                 config: Optional[DetectionConfig] = None,
                 scorer: Optional[ContourScorer] = None,
                 min_confidence: float = 0.5,
                 projection: str = "equirectangular") -> None:
        self.config = config or DEFAULT_CONFIG
        self.segmenter = RoofSegmenter(self.config)
        self.extractor = ContourExtractor(self.config)
        self.pitch_estimator = PitchEstimator(self.config)
        self.scorer = scorer or AcceptAllScorer()
        self.min_confidence = float(min_confidence)
        self.projection = get_projection(projection)

    def _filter(self, polygons: List[PixelPolygon], rgb: np.ndarray) -> List[PixelPolygon]:
        if isinstance(self.scorer, AcceptAllScorer):
            return polygons
        kept = []
        for poly in polygons:
            confidence = self.scorer.score(poly.points, rgb)
            if confidence >= self.min_confidence:
                kept.append(poly)
            else:
                logger.debug("Scorer rejected contour (confidence=%.3f, area=%.0f)", confidence, poly.area_px)
        return kept

    def detect(self, image: ImageLike, bounds: GeoBoundingBox, with_measurements: bool = True) -> DetectionResult:
        try:
            rgb = image_to_array(image)
        except (TypeError, ValueError) as e:
            logger.warning("Rejected image: %s", e)
            return DetectionResult(reason=InvalidImage.reason, detail=str(e))

        height, width = rgb.shape[:2]
        try:
            calibration = Calibration(width, height, bounds, projection=self.projection)
            mask = self.segmenter.predict(rgb)
            polygons = self._filter(self.extractor.extract(mask), rgb)
            sections = [self._to_section(poly, calibration, rgb, with_measurements) for poly in polygons]
        except RoofMeasureError as e:
            logger.warning("Detection rejected (%s): %s", e.reason, e)
            return DetectionResult(reason=e.reason, detail=str(e), image_size=(width, height))
        except Exception as e:
            logger.exception("Detection failed")
            return DetectionResult(reason="processing_error", detail=str(e), image_size=(width, height))

        if not sections:
            logger.info("No roof sections detected in %dx%d image", width, height)
            return DetectionResult(reason=NO_REGIONS_DETECTED, detail="No roof sections found",
                                   image_size=(width, height))
        logger.info("Detected %d roof section(s) in %dx%d image", len(sections), width, height)
        return DetectionResult(sections=sections, image_size=(width, height))

    def _to_section(self, poly: PixelPolygon, calibration: Calibration,
                    rgb: np.ndarray, with_measurements: bool) -> RoofSection:
        vertices = project_polygon(poly.points, calibration)
        section = RoofSection(vertices=vertices, area_sqft=0, pitch="", source=SOURCE_DETECTED,
                              polygon_px=poly.vertices())
        if with_measurements:
            section.area_sqft = measure(vertices, self.config)
            estimate = self.pitch_estimator.estimate(poly.points, rgb)
            section.pitch = estimate.label
            section.shadow_intensity = estimate.intensity
        return section

    def estimate_pitch(self, polygon_px, image: ImageLike,
                       bounds: Optional[GeoBoundingBox] = None) -> PitchEstimate:
        rgb = image_to_array(image)
        if bounds is not None:
            # Same preconditions as detection so callers get consistent errors
            Calibration(rgb.shape[1], rgb.shape[0], bounds, projection=self.projection)
        return self.pitch_estimator.estimate(polygon_px, rgb)


_default_pipeline: Optional[RoofPipeline] = None


def _pipeline() -> RoofPipeline:
    global _default_pipeline
    if _default_pipeline is None:
        _default_pipeline = RoofPipeline()
    return _default_pipeline


def detect(image: ImageLike, bounds: GeoBoundingBox, with_measurements: bool = True) -> DetectionResult:
    return _pipeline().detect(image, bounds, with_measurements=with_measurements)


def estimate_pitch(polygon_px, image: ImageLike, bounds: Optional[GeoBoundingBox] = None) -> str:
    return _pipeline().estimate_pitch(polygon_px, image, bounds).label


__all__ = ["DetectionResult", "RoofPipeline", "detect", "estimate_pitch", "measure"]
