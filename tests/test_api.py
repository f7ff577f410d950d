import base64
import io

import numpy as np
from PIL import Image
from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)

BOUNDS = {
    "northeast": {"lat": 52.14, "lng": -106.66},
    "southwest": {"lat": 52.13, "lng": -106.68},
}


def png_bytes(arr: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(arr).save(buf, format="PNG")
    return buf.getvalue()


def roof_scene_b64() -> str:
    img = np.full((100, 100, 3), 35, dtype=np.uint8)
    img[30:70, 30:70] = 120
    img[70:100, 30:70] = 30
    return base64.b64encode(png_bytes(img)).decode()


def blank_b64() -> str:
    return base64.b64encode(png_bytes(np.full((64, 64, 3), 10, dtype=np.uint8))).decode()


def test_health_endpoint():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "roof-measure"}


def test_root_endpoint_lists_routes():
    data = client.get("/").json()
    assert data["service"] == "Roof Measure Service"
    for key in ("detect", "measure", "pitch", "summary"):
        assert key in data["endpoints"]


def test_detect_returns_section_with_area_and_pitch():
    response = client.post("/detect", json={"image_base64": roof_scene_b64(), "bounds": BOUNDS})
    assert response.status_code == 200
    data = response.json()
    assert data["reason"] is None
    assert len(data["sections"]) == 1
    section = data["sections"][0]
    assert section["pitch"] == "6/12"
    assert section["area_sqft"] > 0
    assert len(section["vertices"]) >= 3
    assert data["total_area_sqft"] == section["area_sqft"]
    assert data["image_size"] == [100, 100]


def test_detect_accepts_data_url():
    payload = "data:image/png;base64," + roof_scene_b64()
    response = client.post("/detect", json={"image_base64": payload, "bounds": BOUNDS})
    assert response.status_code == 200
    assert len(response.json()["sections"]) == 1


def test_detect_nothing_found_is_ok():
    response = client.post("/detect", json={"image_base64": blank_b64(), "bounds": BOUNDS})
    assert response.status_code == 200
    data = response.json()
    assert data["sections"] == []
    assert data["reason"] == "no_regions_detected"
    assert data["total_area_sqft"] == 0


def test_detect_inverted_bounds_is_400():
    bad = {"northeast": BOUNDS["southwest"], "southwest": BOUNDS["northeast"]}
    response = client.post("/detect", json={"image_base64": roof_scene_b64(), "bounds": bad})
    assert response.status_code == 400
    assert response.json()["detail"]["reason"] == "invalid_bounds"


def test_detect_bad_base64_is_400():
    response = client.post("/detect", json={"image_base64": "***not-base64***", "bounds": BOUNDS})
    assert response.status_code == 400


def test_detect_non_image_payload_is_400():
    payload = base64.b64encode(b"definitely not a png").decode()
    response = client.post("/detect", json={"image_base64": payload, "bounds": BOUNDS})
    assert response.status_code == 400


def test_detect_out_of_range_latitude_is_422():
    bad = {"northeast": {"lat": 95.0, "lng": 0.0}, "southwest": {"lat": 0.0, "lng": 0.0}}
    response = client.post("/detect", json={"image_base64": roof_scene_b64(), "bounds": bad})
    assert response.status_code == 422


def test_detect_upload():
    img = np.full((100, 100, 3), 35, dtype=np.uint8)
    img[30:70, 30:70] = 120
    files = {"file": ("roof.png", png_bytes(img), "image/png")}
    form = {"ne_lat": "52.14", "ne_lng": "-106.66", "sw_lat": "52.13", "sw_lng": "-106.68"}
    response = client.post("/detect/upload", files=files, data=form)
    assert response.status_code == 200
    assert len(response.json()["sections"]) == 1


def test_detect_upload_rejects_non_image():
    files = {"file": ("notes.txt", b"hello", "text/plain")}
    form = {"ne_lat": "52.14", "ne_lng": "-106.66", "sw_lat": "52.13", "sw_lng": "-106.68"}
    response = client.post("/detect/upload", files=files, data=form)
    assert response.status_code == 400


def test_measure_endpoint():
    square = [
        {"lat": 52.1330, "lng": -106.6700},
        {"lat": 52.1330, "lng": -106.6699},
        {"lat": 52.1331, "lng": -106.6699},
        {"lat": 52.1331, "lng": -106.6700},
    ]
    response = client.post("/measure", json={"polygon": square})
    assert response.status_code == 200
    assert response.json()["area_sqft"] > 0
    response = client.post("/measure", json={"polygon": square[:2]})
    assert response.json() == {"area_sqft": 0}


def test_pitch_endpoint():
    response = client.post("/pitch", json={
        "image_base64": roof_scene_b64(),
        "polygon_px": [[30, 30], [69, 30], [69, 69], [30, 69]],
    })
    assert response.status_code == 200
    data = response.json()
    assert data["pitch"] == "6/12"
    assert data["pitch_class"] == "steep"
    assert data["band"] == [30, 70, 40, 30]


def test_pitch_endpoint_rejects_short_polygon():
    response = client.post("/pitch", json={"image_base64": roof_scene_b64(), "polygon_px": [[1, 1], [2, 2]]})
    assert response.status_code == 400


def test_summary_rounds_per_section():
    tri = [
        {"lat": 52.1330, "lng": -106.6700},
        {"lat": 52.1330, "lng": -106.6699},
        {"lat": 52.1331, "lng": -106.6699},
    ]
    response = client.post("/summary", json={"sections": [{"polygon": tri}, {"polygon": tri, "pitch": "6/12"}]})
    assert response.status_code == 200
    data = response.json()
    assert [s["section"] for s in data["sections"]] == ["Section 1", "Section 2"]
    assert data["sections"][0]["pitch"] == "3/12"
    assert data["total_area_sqft"] == 2 * data["sections"][0]["area_sqft"]


def test_request_id_header_round_trips():
    response = client.get("/health", headers={"X-Request-Id": "TEST-REQ-ID-123"})
    assert response.headers["X-Request-Id"] == "TEST-REQ-ID-123"
    generated = client.get("/health").headers["X-Request-Id"]
    assert len(generated) == 36


def test_openapi_contains_endpoints():
    spec = client.get("/openapi.json").json()
    for path in ("/detect", "/detect/upload", "/measure", "/pitch", "/summary"):
        assert path in spec["paths"]
