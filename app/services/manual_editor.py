from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional, Tuple, Union

from app.models.roof import RoofSection, SOURCE_MANUAL
from app.services.detection_config import DetectionConfig, DEFAULT_CONFIG
from app.services.geo_utils import LatLng
from app.services.measurement import measure

logger = logging.getLogger(__name__)


class EditorState(str, Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    READY = "ready"


class ManualPolygonEditor:
    """
    Click-by-click polygon drawing.

    idle (0 points) -> accumulating (1-2 points) -> ready (3+ points).
    ``finalize`` in the ready state emits a manual RoofSection and returns to idle;
    in any other state it returns None and keeps the points.
    """

    def __init__(self, config: Optional[DetectionConfig] = None) -> None:
        self.config = config or DEFAULT_CONFIG
        self._points: List[LatLng] = []

    @property
    def points(self) -> Tuple[LatLng, ...]:
        return tuple(self._points)

    @property
    def state(self) -> EditorState:
        n = len(self._points)
        if n == 0:
            return EditorState.IDLE
        if n < 3:
            return EditorState.ACCUMULATING
        return EditorState.READY

    def add_point(self, point: Union[LatLng, Tuple[float, float]]) -> EditorState:
        if not isinstance(point, LatLng):
            lat, lng = point
            point = LatLng(float(lat), float(lng))
        self._points.append(point)
        return self.state

    def undo(self) -> Optional[LatLng]:
        return self._points.pop() if self._points else None

    def reset(self) -> None:
        self._points = []

    def finalize(self) -> Optional[RoofSection]:
        if self.state is not EditorState.READY:
            logger.debug("finalize ignored: %d point(s) accumulated", len(self._points))
            return None
        vertices = list(self._points)
        section = RoofSection(
            vertices=vertices,
            area_sqft=measure(vertices, self.config),
            pitch=self.config.manual_default_pitch,
            source=SOURCE_MANUAL,
        )
        self._points = []
        return section


__all__ = ["EditorState", "ManualPolygonEditor"]
