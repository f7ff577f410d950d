"""
Thin OpenCV layer used by the segmentation and contour stages.

Everything image-processing related goes through these helpers so the rest of
the pipeline only sees numpy arrays (uint8 masks, Nx2 int32 point arrays).
"""
from __future__ import annotations

from typing import List, Tuple

import cv2
import numpy as np


def to_rgb(image: np.ndarray) -> np.ndarray:
    """Normalize a 2D, HxWx1, RGB or RGBA array to HxWx3 uint8."""
    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]
    if image.ndim == 2:
        image = np.repeat(image[:, :, None], 3, axis=2)
    elif image.ndim == 3 and image.shape[2] == 4:
        image = image[:, :, :3]
    elif image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected a 1, 3 or 4 channel image, got shape {image.shape}")
    if image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)
    return np.ascontiguousarray(image)


def to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image.astype(np.uint8) if image.dtype != np.uint8 else image
    return cv2.cvtColor(to_rgb(image), cv2.COLOR_RGB2GRAY)


def to_hsv(image: np.ndarray) -> np.ndarray:
    return cv2.cvtColor(to_rgb(image), cv2.COLOR_RGB2HSV)


def blur(gray: np.ndarray, ksize: int) -> np.ndarray:
    return cv2.GaussianBlur(gray, (ksize, ksize), 0)


def threshold(hsv: np.ndarray, lower: Tuple[int, int, int], upper: Tuple[int, int, int]) -> np.ndarray:
    """0/255 mask of pixels inside the inclusive [lower, upper] HSV band."""
    return cv2.inRange(hsv, np.array(lower, dtype=np.uint8), np.array(upper, dtype=np.uint8))


def edges(gray: np.ndarray, low: int, high: int) -> np.ndarray:
    return cv2.Canny(gray, low, high)


def dilate(mask: np.ndarray, ksize: int, iterations: int = 1) -> np.ndarray:
    kernel = np.ones((ksize, ksize), np.uint8)
    return cv2.dilate(mask, kernel, iterations=iterations)


def morphology_open(mask: np.ndarray, ksize: int) -> np.ndarray:
    kernel = np.ones((ksize, ksize), np.uint8)
    return cv2.morphologyEx(mask, cv2.MORPH_OPEN, kernel)


def find_external_contours(mask: np.ndarray) -> List[np.ndarray]:
    """Outer boundaries only, each as an Nx2 int32 array of (x, y)."""
    contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    return [c.reshape(-1, 2) for c in contours]


def contour_area(contour: np.ndarray) -> float:
    return float(cv2.contourArea(contour.reshape(-1, 1, 2).astype(np.int32)))


def perimeter(contour: np.ndarray) -> float:
    return float(cv2.arcLength(contour.reshape(-1, 1, 2).astype(np.int32), True))


def simplify(contour: np.ndarray, epsilon: float) -> np.ndarray:
    """Douglas-Peucker simplification of a closed contour."""
    approx = cv2.approxPolyDP(contour.reshape(-1, 1, 2).astype(np.int32), epsilon, True)
    return approx.reshape(-1, 2)


def bounding_rect(points: np.ndarray) -> Tuple[int, int, int, int]:
    """(x, y, w, h) of the integer pixel box covering the points."""
    x, y, w, h = cv2.boundingRect(np.asarray(points, dtype=np.int32).reshape(-1, 1, 2))
    return int(x), int(y), int(w), int(h)


__all__ = [
    "to_rgb",
    "to_gray",
    "to_hsv",
    "blur",
    "threshold",
    "edges",
    "dilate",
    "morphology_open",
    "find_external_contours",
    "contour_area",
    "perimeter",
    "simplify",
    "bounding_rect",
]
