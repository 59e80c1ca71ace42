"""
Pure implementation of object location in images without OpenCV.

This package locates small "object" images inside a larger "scene" image
using only NumPy, SciPy, and Pillow (no OpenCV).

Main components:
- SURF: Hessian-determinant keypoints with 64/128 float descriptors
- Feature Matching: Exhaustive two-nearest-neighbour matcher with Lowe's ratio test
- Homography: RANSAC-based homography estimation and outline projection
- Template Matching: FFT-accelerated sliding-window scoring with six metrics

Example usage:
    from locator import find_features, find_templates

    found = find_features('scene.png', ['box.png', 'logo.png'], 400)
    for outcome in found['matches']:
        print(outcome.get('corners'), outcome.get('confidence'))

    scanned = find_templates('scene.png', ['icon.png'], 5, 0.8)
"""

__version__ = '1.0.0'
__author__ = 'Pure Locator Team'

from .surf import SURF, Keypoint
from .matcher import FeatureMatcher, KnnMatch
from .homography import HomographyEstimator, perspective_transform
from .template import TemplateMethod, TemplateScanner, match_template
from .postprocess import calculate_iou, non_max_suppression
from .object_finder import ObjectFinder, find_features, find_templates
from .image_io import read_grayscale, write_image

__all__ = [
    'SURF',
    'Keypoint',
    'FeatureMatcher',
    'KnnMatch',
    'HomographyEstimator',
    'perspective_transform',
    'TemplateMethod',
    'TemplateScanner',
    'match_template',
    'calculate_iou',
    'non_max_suppression',
    'ObjectFinder',
    'find_features',
    'find_templates',
    'read_grayscale',
    'write_image',
]
