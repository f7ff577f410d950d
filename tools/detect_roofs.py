import argparse
import json
import logging
import os
import sys
from typing import Tuple

from PIL import Image, ImageDraw

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.models.roof import RoofSectionSet  # noqa: E402
from app.services.geo_utils import GeoBoundingBox, LatLng  # noqa: E402
from app.services.roof_pipeline import RoofPipeline  # noqa: E402


def parse_latlng(value: str) -> Tuple[float, float]:
    try:
        lat, lng = (float(v) for v in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected LAT,LNG, got '{value}'")
    return lat, lng


def draw_overlay(img: Image.Image, sections, color=(0, 0, 255), width: int = 2) -> Image.Image:
    out = img.convert("RGB").copy()
    draw = ImageDraw.Draw(out)
    for i, section in enumerate(sections):
        pts = [tuple(p) for p in (section.polygon_px or [])]
        if len(pts) < 3:
            continue
        draw.line(pts + [pts[0]], fill=color, width=width)
        draw.text(pts[0], f"{i + 1}: {section.pitch}", fill=color)
    return out


def main():
    ap = argparse.ArgumentParser(description="Detect roof sections in a calibrated map screenshot")
    ap.add_argument("--image", required=True, help="Path to the screenshot (PNG/JPEG)")
    ap.add_argument("--ne", required=True, type=parse_latlng, help="Northeast corner as LAT,LNG")
    ap.add_argument("--sw", required=True, type=parse_latlng, help="Southwest corner as LAT,LNG")
    ap.add_argument("--projection", default="equirectangular", choices=["equirectangular", "web_mercator"])
    ap.add_argument("--overlay", default=None, help="Optional output PNG with detected outlines")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    img = Image.open(args.image)
    bounds = GeoBoundingBox(northeast=LatLng(*args.ne), southwest=LatLng(*args.sw))
    result = RoofPipeline(projection=args.projection).detect(img, bounds)
    if result.failed:
        print(json.dumps({"reason": result.reason, "detail": result.detail}), file=sys.stderr)
        sys.exit(1)

    summary = RoofSectionSet(list(result.sections)).summary()
    summary["reason"] = result.reason
    print(json.dumps(summary, indent=2))

    if args.overlay:
        draw_overlay(img, result.sections).save(args.overlay)
        print(f"Wrote {args.overlay}", file=sys.stderr)


if __name__ == "__main__":
    main()
