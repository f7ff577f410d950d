from __future__ import annotations

import logging
import os
from typing import Optional, Protocol

import cv2
import numpy as np

try:
    import onnxruntime as ort  # type: ignore
except Exception:
    ort = None  # runtime optional

from app.services import vision_ops

logger = logging.getLogger(__name__)


class ContourScorer(Protocol):
    """Confidence in [0, 1] that a candidate contour is a roof."""

    def score(self, contour: np.ndarray, image: np.ndarray) -> float:
        ...


class AcceptAllScorer:
    """Default scorer: keeps every contour the heuristic pipeline produces."""

    def score(self, contour: np.ndarray, image: np.ndarray) -> float:
        return 1.0


class OnnxContourScorer:
    """
    Binary roof/not-roof classifier exported to ONNX.

    The contour's bounding-box crop is resized to ``input_size`` square, scaled
    to [0, 1] and fed as NCHW float32. The first output is read as a single
    logit (or two-class logits, roof = channel 1).
    """

    def __init__(self, onnx_path: str, input_size: int = 64):
        if ort is None:
            raise RuntimeError("onnxruntime not available")
        if not os.path.exists(onnx_path):
            raise FileNotFoundError(onnx_path)
        self.session = ort.InferenceSession(onnx_path, providers=["CPUExecutionProvider"])
        self.input_name = self.session.get_inputs()[0].name
        self.input_size = int(input_size)

    def _crop(self, contour: np.ndarray, image: np.ndarray) -> np.ndarray:
        rgb = vision_ops.to_rgb(image)
        x, y, w, h = vision_ops.bounding_rect(contour)
        crop = rgb[y:y + h, x:x + w]
        if crop.size == 0:
            crop = rgb
        return cv2.resize(crop, (self.input_size, self.input_size), interpolation=cv2.INTER_AREA)

    def score(self, contour: np.ndarray, image: np.ndarray) -> float:
        crop = self._crop(contour, image).astype(np.float32) / 255.0
        x = np.transpose(crop, (2, 0, 1))[None, ...]
        logits = np.asarray(self.session.run(None, {self.input_name: x})[0], dtype=np.float64).reshape(-1)
        logit = logits[1] - logits[0] if logits.size >= 2 else logits[0]
        return float(1.0 / (1.0 + np.exp(-logit)))


def load_contour_scorer(onnx_path: Optional[str] = None) -> ContourScorer:
    """Return the ONNX scorer when a model file and onnxruntime are both present."""
    if not onnx_path:
        return AcceptAllScorer()
    if ort is None or not os.path.exists(onnx_path):
        logger.warning("Contour scorer %s unavailable (onnxruntime=%s); keeping all contours", onnx_path, ort is not None)
        return AcceptAllScorer()
    logger.info("Loaded ONNX contour scorer from %s", onnx_path)
    return OnnxContourScorer(onnx_path)


__all__ = ["ContourScorer", "AcceptAllScorer", "OnnxContourScorer", "load_contour_scorer"]
