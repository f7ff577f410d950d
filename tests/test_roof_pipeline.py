import math

import numpy as np
import pytest
from PIL import Image

from app.services import roof_pipeline
from app.services.contour_extractor import ContourExtractor
from app.services.errors import MalformedPolygon
from app.services.geo_projector import project_polygon
from app.services.geo_utils import Calibration, GeoBoundingBox, LatLng
from app.services.measurement import area_m2, measure
from app.services.roof_pipeline import RoofPipeline

BOUNDS = GeoBoundingBox(northeast=LatLng(52.14, -106.66), southwest=LatLng(52.13, -106.68))
R = 6378137.0


def roof_scene() -> np.ndarray:
    """Dark gray 100x100 image, lighter 40x40 roof in the middle, darker shadow band under it."""
    img = np.full((100, 100, 3), 35, dtype=np.uint8)
    img[30:70, 30:70] = 120
    img[70:100, 30:70] = 30
    return img


class RejectAll:
    def score(self, contour, image):
        return 0.0


class KeepLarge:
    def __init__(self):
        self.calls = 0

    def score(self, contour, image):
        self.calls += 1
        return 0.9


def test_end_to_end_single_roof_with_steep_pitch():
    result = RoofPipeline().detect(roof_scene(), BOUNDS)
    assert result.reason is None
    assert result.found
    assert len(result.sections) == 1
    section = result.sections[0]
    assert section.pitch == "6/12"
    assert section.area_sqft > 0
    assert section.source == "detected"
    assert section.shadow_intensity < 50
    assert len(section.vertices) == len(section.polygon_px) >= 3
    for v in section.vertices:
        assert 52.13 <= v.lat <= 52.14
        assert -106.68 <= v.lng <= -106.66
    assert result.total_area_sqft() == section.area_sqft
    assert result.image_size == (100, 100)


def test_detection_is_deterministic():
    pipeline = RoofPipeline()
    first = pipeline.detect(roof_scene(), BOUNDS)
    second = pipeline.detect(roof_scene(), BOUNDS)
    assert len(first.sections) == len(second.sections)
    for a, b in zip(first.sections, second.sections):
        assert a.polygon_px == b.polygon_px
        assert a.vertices == b.vertices
        assert a.area_sqft == b.area_sqft
        assert a.pitch == b.pitch


def test_accepts_pil_image():
    result = RoofPipeline().detect(Image.fromarray(roof_scene()), BOUNDS)
    assert len(result.sections) == 1


def test_blank_image_is_an_empty_result_not_a_failure():
    blank = np.full((80, 80, 3), 10, dtype=np.uint8)
    result = RoofPipeline().detect(blank, BOUNDS)
    assert result.sections == []
    assert result.reason == "no_regions_detected"
    assert not result.found
    assert not result.failed
    assert result.total_area_sqft() == 0


def test_invalid_bounds_reported_without_raising():
    bad = GeoBoundingBox(northeast=LatLng(52.13, -106.66), southwest=LatLng(52.14, -106.68))
    result = RoofPipeline().detect(roof_scene(), bad)
    assert result.failed
    assert result.reason == "invalid_bounds"
    assert result.sections == []


def test_empty_image_reported_as_invalid_dimensions():
    result = RoofPipeline().detect(np.zeros((0, 0, 3), dtype=np.uint8), BOUNDS)
    assert result.reason == "invalid_dimensions"


def test_unreadable_image_reported_as_invalid_image():
    result = RoofPipeline().detect("not an image", BOUNDS)
    assert result.reason == "invalid_image"
    assert result.failed


def test_lazy_measurements():
    result = RoofPipeline().detect(roof_scene(), BOUNDS, with_measurements=False)
    section = result.sections[0]
    assert section.area_sqft == 0
    assert section.pitch == ""
    assert measure(section.vertices) > 0


def test_scorer_can_drop_everything():
    result = RoofPipeline(scorer=RejectAll()).detect(roof_scene(), BOUNDS)
    assert result.reason == "no_regions_detected"


def test_scorer_above_threshold_keeps_contours():
    scorer = KeepLarge()
    result = RoofPipeline(scorer=scorer, min_confidence=0.8).detect(roof_scene(), BOUNDS)
    assert scorer.calls == 1
    assert len(result.sections) == 1


def test_module_level_entry_points():
    result = roof_pipeline.detect(roof_scene(), BOUNDS)
    assert len(result.sections) == 1
    label = roof_pipeline.estimate_pitch(result.sections[0].polygon_px, roof_scene(), BOUNDS)
    assert label == "6/12"


def test_estimate_pitch_validates_bounds():
    bad = GeoBoundingBox(northeast=LatLng(1.0, 1.0), southwest=LatLng(1.0, 0.0))
    with pytest.raises(ValueError):
        RoofPipeline().estimate_pitch([(30, 30), (69, 30), (69, 69)], roof_scene(), bad)


def test_projection_preserves_vertex_count_and_order():
    cal = Calibration(100, 100, BOUNDS)
    pts = [(0, 0), (100, 0), (100, 100), (0, 100), (50, 50)]
    geo = project_polygon(pts, cal)
    assert len(geo) == 5
    assert geo[0] == cal.to_geo(0, 0)
    assert geo[-1] == cal.to_geo(50, 50)


def test_projection_rejects_short_polygons():
    with pytest.raises(MalformedPolygon):
        project_polygon([(0, 0), (1, 1)], Calibration(10, 10, BOUNDS))


def test_square_mask_area_over_one_degree_equator_box():
    bounds = GeoBoundingBox(northeast=LatLng(0.5, 0.5), southwest=LatLng(-0.5, -0.5))
    mask = np.zeros((100, 100), dtype=np.uint8)
    mask[30:70, 30:70] = 255
    poly = ContourExtractor().extract(mask)[0]
    geo = project_polygon(poly.points, Calibration(100, 100, bounds))

    # Traced corners are pixel centers 30..69, so the box spans 39 px each way
    top = -0.5 + (1 - 30 / 100)
    bottom = -0.5 + (1 - 69 / 100)
    width_deg = 39 / 100
    expected_m2 = R * R * math.radians(width_deg) * (math.sin(math.radians(top)) - math.sin(math.radians(bottom)))
    assert area_m2(geo) == pytest.approx(expected_m2, rel=1e-3)
    assert measure(geo) == pytest.approx(expected_m2 * 10.764, rel=1e-3)


def test_single_channel_3d_image_is_processed():
    gray = roof_scene()[:, :, :1].copy()
    result = RoofPipeline().detect(gray, BOUNDS)
    assert result.reason is None
    assert len(result.sections) == 1
