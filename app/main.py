from fastapi import FastAPI, File, Form, UploadFile, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import List
import base64
import binascii
import io
from PIL import Image, UnidentifiedImageError
import numpy as np

from app.middleware.request_id import add_request_id_middleware
from app.models.contour_scorer import load_contour_scorer
from app.models.roof import RoofSection, RoofSectionSet, SOURCE_MANUAL
from app.services.geo_utils import GeoBoundingBox, LatLng
from app.services.measurement import measure
from app.services.roof_pipeline import DetectionResult, RoofPipeline
from app.settings import get_settings

SETTINGS = get_settings()

app = FastAPI(
    title="Roof Measure Service",
    description="Detects roof sections in calibrated map screenshots and measures area and pitch",
    version="1.0.0"
)

add_request_id_middleware(app, log_requests=SETTINGS.enable_request_id_logging)

# CORS_ALLOW_ORIGINS is a comma-separated list, e.g.
#   CORS_ALLOW_ORIGINS=http://localhost:3000,https://roofmeasure.example
if SETTINGS.cors_allow_origins:
    allow_origins = [o.strip() for o in SETTINGS.cors_allow_origins.split(",") if o.strip()]
else:
    allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

pipeline = RoofPipeline(
    scorer=load_contour_scorer(SETTINGS.scorer_onnx_path),
    min_confidence=SETTINGS.scorer_min_confidence,
    projection=SETTINGS.projection,
)


class LatLngModel(BaseModel):
    lat: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    lng: float = Field(..., ge=-180, le=180, description="Longitude in degrees")

    def to_latlng(self) -> LatLng:
        return LatLng(self.lat, self.lng)


class BoundsModel(BaseModel):
    northeast: LatLngModel
    southwest: LatLngModel

    def to_bounds(self) -> GeoBoundingBox:
        return GeoBoundingBox(northeast=self.northeast.to_latlng(), southwest=self.southwest.to_latlng())


class DetectRequest(BaseModel):
    image_base64: str = Field(..., min_length=1, description="Base64 encoded PNG/JPEG map screenshot")
    bounds: BoundsModel
    with_measurements: bool = True


class MeasureRequest(BaseModel):
    polygon: List[LatLngModel]


class PitchRequest(BaseModel):
    image_base64: str = Field(..., min_length=1)
    polygon_px: List[List[float]] = Field(..., description="Polygon vertices as [x, y] pixel pairs")


class SectionInput(BaseModel):
    polygon: List[LatLngModel]
    pitch: str = "3/12"
    source: str = SOURCE_MANUAL


class SummaryRequest(BaseModel):
    sections: List[SectionInput]


def _decode_image(data: bytes) -> np.ndarray:
    try:
        image = Image.open(io.BytesIO(data))
    except (UnidentifiedImageError, OSError):
        raise HTTPException(status_code=400, detail="File must be a readable image")
    width, height = image.size
    if width * height > SETTINGS.max_image_pixels:
        raise HTTPException(status_code=400, detail=f"Image too large: {width}x{height}")
    if image.mode != "RGB":
        image = image.convert("RGB")
    return np.array(image)


def _decode_base64_image(payload: str) -> np.ndarray:
    if payload.startswith("data:") and "," in payload:
        # data URL from a canvas screenshot
        payload = payload.split(",", 1)[1]
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="image_base64 must be valid base64")
    return _decode_image(data)


def _detection_response(result: DetectionResult) -> dict:
    if result.failed:
        raise HTTPException(status_code=400, detail={"reason": result.reason, "detail": result.detail})
    return {
        "sections": [s.to_dict() for s in result.sections],
        "total_area_sqft": result.total_area_sqft(),
        "reason": result.reason,
        "detail": result.detail,
        "image_size": list(result.image_size) if result.image_size else None,
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "roof-measure"}


@app.post("/detect")
async def detect_sections(req: DetectRequest):
    """
    Detect roof sections in a base64 map screenshot covering ``bounds``.

    An image with nothing roof-like is not an error: the response carries an
    empty section list and ``reason: no_regions_detected``.
    """
    rgb = _decode_base64_image(req.image_base64)
    result = pipeline.detect(rgb, req.bounds.to_bounds(), with_measurements=req.with_measurements)
    return _detection_response(result)


@app.post("/detect/upload")
async def detect_sections_upload(file: UploadFile = File(...),
                                 ne_lat: float = Form(...), ne_lng: float = Form(...),
                                 sw_lat: float = Form(...), sw_lng: float = Form(...)):
    """Multipart variant of /detect for direct screenshot uploads"""
    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image")
    rgb = _decode_image(await file.read())
    bounds = GeoBoundingBox(northeast=LatLng(ne_lat, ne_lng), southwest=LatLng(sw_lat, sw_lng))
    return _detection_response(pipeline.detect(rgb, bounds))


@app.post("/measure")
async def measure_polygon(req: MeasureRequest):
    return {"area_sqft": measure([p.to_latlng() for p in req.polygon], pipeline.config)}


@app.post("/pitch")
async def estimate_pitch(req: PitchRequest):
    """Classify roof pitch from the shadow band under a pixel-space polygon"""
    rgb = _decode_base64_image(req.image_base64)
    try:
        estimate = pipeline.estimate_pitch(req.polygon_px, rgb)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "pitch": estimate.label,
        "pitch_class": estimate.pitch_class.value,
        "intensity": estimate.intensity,
        "band": list(estimate.band) if estimate.band else None,
    }


@app.post("/summary")
async def summarize(req: SummaryRequest):
    """Per-section areas (each rounded on its own) and their total, for report rendering"""
    sections = RoofSectionSet()
    for item in req.sections:
        vertices = [p.to_latlng() for p in item.polygon]
        section = RoofSection(vertices=vertices, area_sqft=measure(vertices, pipeline.config),
                              pitch=item.pitch, source=item.source)
        sections.add(section)
    return sections.summary()


@app.get("/")
async def root():
    """Root endpoint with service information"""
    return {
        "service": "Roof Measure Service",
        "version": "1.0.0",
        "endpoints": {
            "health": "/health",
            "detect": "/detect",
            "detect_upload": "/detect/upload",
            "measure": "/measure",
            "pitch": "/pitch",
            "summary": "/summary",
            "docs": "/docs"
        }
    }
