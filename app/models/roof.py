from dataclasses import dataclass, field
from functools import reduce
from typing import List, Optional, Dict, Any, Tuple
import logging

from app.services.geo_utils import LatLng

logger = logging.getLogger(__name__)

SOURCE_DETECTED = "detected"
SOURCE_MANUAL = "manual"


@dataclass
class RoofSection:
    """One closed roof polygon with its area and pitch"""
    vertices: List[LatLng]
    area_sqft: int
    pitch: str
    source: str = SOURCE_DETECTED
    polygon_px: Optional[List[Tuple[int, int]]] = None
    shadow_intensity: Optional[float] = None

    def set_pitch(self, label: str) -> None:
        """Override the pitch label. Any non-empty string is accepted."""
        label = (label or "").strip()
        if not label:
            raise ValueError("Pitch label must be a non-empty string")
        self.pitch = label

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "vertices": [[v.lat, v.lng] for v in self.vertices],
            "area_sqft": self.area_sqft,
            "pitch": self.pitch,
            "source": self.source,
        }
        if self.polygon_px is not None:
            data["polygon_px"] = [list(p) for p in self.polygon_px]
        if self.shadow_intensity is not None:
            data["shadow_intensity"] = round(self.shadow_intensity, 2)
        return data


@dataclass
class RoofSectionSet:
    """
    Ordered roof sections for one project.

    Detected sections are replaced wholesale on re-detection; hand-drawn
    sections survive until the set is cleared.
    """
    sections: List[RoofSection] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.sections)

    def __iter__(self):
        return iter(self.sections)

    def add(self, section: RoofSection) -> None:
        self.sections.append(section)

    def replace_detected(self, detected: List[RoofSection]) -> None:
        manual = [s for s in self.sections if s.source == SOURCE_MANUAL]
        logger.debug("Replacing %d detected sections with %d", len(self.sections) - len(manual), len(detected))
        self.sections = list(detected) + manual

    def clear(self) -> None:
        self.sections = []

    def set_pitch(self, index: int, label: str) -> RoofSection:
        if not 0 <= index < len(self.sections):
            raise IndexError(f"No roof section at index {index}")
        section = self.sections[index]
        section.set_pitch(label)
        return section

    def total_area_sqft(self) -> int:
        # Sections are already rounded individually; the total is their plain sum
        return reduce(lambda acc, s: acc + s.area_sqft, self.sections, 0)

    def summary(self) -> Dict[str, Any]:
        """Plain data for report renderers: numbered sections plus total."""
        return {
            "sections": [
                {
                    "section": f"Section {i + 1}",
                    "area_sqft": s.area_sqft,
                    "pitch": s.pitch,
                    "source": s.source,
                    "vertices": [[v.lat, v.lng] for v in s.vertices],
                }
                for i, s in enumerate(self.sections)
            ],
            "total_area_sqft": self.total_area_sqft(),
        }
