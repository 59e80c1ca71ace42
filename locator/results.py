"""
Result containers shared by the feature and template pipelines.

Every outcome serializes to the plain dictionaries callers consume through
``to_dict()``.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Point:
    x: float
    y: float

    def to_dict(self):
        return {'x': self.x, 'y': self.y}


@dataclass
class ObjectError:
    """Per-object failure. ``template`` is only set by the template pipeline."""
    error: str
    template: Optional[str] = None

    def to_dict(self):
        if self.template is None:
            return {'error': self.error}
        return {'template': self.template, 'error': self.error}


@dataclass
class NoDetection:
    """Not enough evidence: no keypoints or too few good matches."""
    matches_count: int

    def to_dict(self):
        return {'matchesCount': self.matches_count}


@dataclass
class FeatureMatch:
    """Object outline located in the scene through a homography."""
    template: str
    corners: List[Point]
    confidence: float
    matches_count: int
    inliers_count: int = 0

    def __post_init__(self):
        self.confidence = min(1.0, max(0.0, float(self.confidence)))

    def to_dict(self):
        return {
            'template': self.template,
            'corners': [c.to_dict() for c in self.corners],
            'confidence': self.confidence,
            'matchesCount': self.matches_count,
        }


@dataclass
class TemplateBox:
    x: int
    y: int
    width: int
    height: int
    confidence: float
    template: Optional[str] = None

    def to_dict(self):
        return {
            'x': self.x,
            'y': self.y,
            'width': self.width,
            'height': self.height,
            'confidence': self.confidence,
        }


@dataclass
class TemplateMatchResult:
    template: str
    max_confidence: float
    matches: List[TemplateBox] = field(default_factory=list)

    def to_dict(self):
        return {
            'template': self.template,
            'maxConfidence': self.max_confidence,
            'matches': [m.to_dict() for m in self.matches],
        }
