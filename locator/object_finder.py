"""
Object location pipelines: SURF feature matching with homography
verification, and exhaustive template matching.
"""

import numbers
import os
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from .homography import MIN_MATCH_COUNT, HomographyEstimator, match_confidence
from .image_io import read_grayscale
from .logging_setup import get_logger
from .matcher import FeatureMatcher, correspondences
from .results import FeatureMatch, NoDetection, ObjectError, Point
from .surf import SURF
from .template import TemplateMethod, TemplateScanner

logger = get_logger(__name__)

FEATURES_USAGE = ("Arguments: (string)sceneImagePath, (array)objectPaths, "
                  "(number)minHessian[, (number)ratioThreshold]")
TEMPLATES_USAGE = ("Arguments: (string)sceneImagePath, (array)objectPaths, "
                   "(number)method, (number)threshold")


class ObjectFinder:
    """
    Locates object images inside a scene image.

    This class coordinates all components:
    1. SURF feature detection (scene once per call, then each object)
    2. Two-nearest-neighbour matching with Lowe's ratio test
    3. Homography estimation with RANSAC and outline projection
    4. Template scanning as an independent second strategy

    Each object is processed independently; a failure on one object is
    recorded in its own result slot and never aborts the others.
    """

    def __init__(self,
                 surf_params=None,
                 matcher_params=None,
                 ransac_params=None,
                 workers=1,
                 seed=None):
        """
        Initialize Object Finder.

        Args:
            surf_params: Parameters for the SURF detector
            matcher_params: Parameters for the feature matcher
            ransac_params: Parameters for RANSAC
            workers: Number of threads for the per-object loop
            seed: Seed for RANSAC sampling; None samples from OS entropy
        """
        self.surf_params = dict(surf_params or {})
        self.matcher_params = dict(matcher_params or {})
        self.ransac_params = dict(ransac_params or {})
        self.workers = max(1, int(workers))
        self.seed = seed

    def find_features(self, scene_image_path, object_image_paths,
                      hessian_threshold, ratio_threshold=0.75, cancel_event=None):
        """
        Locate each object in the scene by feature matching.

        Returns:
            {'matches': [per-object outcome dict, in input order]}
        """
        outcomes = self.locate_features(scene_image_path, object_image_paths,
                                        hessian_threshold, ratio_threshold, cancel_event)
        return {'matches': [outcome.to_dict() for outcome in outcomes]}

    def find_templates(self, scene_image_path, object_image_paths,
                       method, threshold, cancel_event=None):
        """
        Scan each object over the scene with a template matching metric.

        Returns:
            {'results': [per-object outcome dict, in input order]}
        """
        outcomes = self.locate_templates(scene_image_path, object_image_paths,
                                         method, threshold, cancel_event)
        return {'results': [outcome.to_dict() for outcome in outcomes]}

    def locate_features(self, scene_image_path, object_image_paths,
                        hessian_threshold, ratio_threshold=0.75, cancel_event=None):
        """Feature pipeline returning result objects instead of dictionaries."""
        _check_paths(scene_image_path, object_image_paths, FEATURES_USAGE)
        if not _is_number(hessian_threshold) or not _is_number(ratio_threshold):
            raise TypeError(FEATURES_USAGE)

        scene = _load_scene(scene_image_path)

        surf = SURF(**{**self.surf_params, 'hessian_threshold': hessian_threshold})
        matcher = FeatureMatcher(**{**self.matcher_params, 'ratio_threshold': ratio_threshold})

        scene_kps, scene_desc = surf.detect_and_compute(scene)
        logger.info("Found %d keypoints in scene %s", len(scene_kps), scene_image_path)

        seeds = np.random.SeedSequence(self.seed).spawn(len(object_image_paths))

        def locate(index, path):
            return self._locate_object(path, surf, matcher, scene_kps, scene_desc,
                                       np.random.default_rng(seeds[index]))

        return self._run(locate, object_image_paths, cancel_event,
                         lambda path, message: ObjectError(message))

    def locate_templates(self, scene_image_path, object_image_paths,
                         method, threshold, cancel_event=None):
        """Template pipeline returning result objects instead of dictionaries."""
        _check_paths(scene_image_path, object_image_paths, TEMPLATES_USAGE)
        if not _is_number(method) or not _is_number(threshold):
            raise TypeError(TEMPLATES_USAGE)
        try:
            method = TemplateMethod(method)
        except ValueError:
            raise ValueError(f"Unknown template matching method: {method}")

        scene = _load_scene(scene_image_path)
        scanner = TemplateScanner(method)

        def scan(index, path):
            return self._scan_object(path, scene, scanner, threshold)

        return self._run(scan, object_image_paths, cancel_event,
                         lambda path, message: ObjectError(message, _template_name(path)))

    def _locate_object(self, path, surf, matcher, scene_kps, scene_desc, rng):
        name = _template_name(path)

        try:
            obj = read_grayscale(path)
        except IOError as e:
            logger.warning("%s", e)
            return ObjectError("Failed to load object image")

        try:
            obj_kps, obj_desc = surf.detect_and_compute(obj)
            logger.debug("Found %d keypoints in %s", len(obj_kps), name)

            if len(obj_kps) == 0 or len(scene_kps) == 0:
                return NoDetection(0)

            good = matcher.match(obj_desc, scene_desc)
            logger.debug("Found %d good matches for %s", len(good), name)

            if len(good) < MIN_MATCH_COUNT:
                return NoDetection(len(good))

            src_pts, dst_pts = correspondences(good, obj_kps, scene_kps)
            estimator = HomographyEstimator(**{**self.ransac_params, 'rng': rng})
            corners, _, inliers = estimator.verify(src_pts, dst_pts, obj.shape[1], obj.shape[0])
        except (ValueError, np.linalg.LinAlgError) as e:
            logger.warning("Failed to locate %s: %s", name, e)
            return ObjectError(str(e))

        confidence = match_confidence(len(good), len(obj_kps), len(scene_kps))
        num_inliers = int(np.sum(inliers))
        logger.info("Located %s: %d matches, %d inliers, confidence %.3f",
                    name, len(good), num_inliers, confidence)

        return FeatureMatch(
            template=name,
            corners=[Point(float(x), float(y)) for x, y in corners],
            confidence=confidence,
            matches_count=len(good),
            inliers_count=num_inliers,
        )

    def _scan_object(self, path, scene, scanner, threshold):
        name = _template_name(path)

        try:
            obj = read_grayscale(path)
        except IOError as e:
            logger.warning("%s", e)
            return ObjectError("Failed to load object image", name)

        try:
            result = scanner.scan(scene, obj, threshold, name=name)
        except ValueError as e:
            logger.warning("Failed to scan %s: %s", name, e)
            return ObjectError(str(e), name)

        logger.info("Scanned %s: best %.4f, %d positions pass",
                    name, result.max_confidence, len(result.matches))
        return result

    def _run(self, process, paths, cancel_event, failed):
        """
        Apply process to every path, preserving input order.

        ``failed(path, message)`` builds the outcome recorded for an object
        that was cancelled or raised an unexpected exception.
        """
        def guarded(item):
            index, path = item
            if cancel_event is not None and cancel_event.is_set():
                return failed(path, "Cancelled")
            try:
                return process(index, path)
            except Exception as e:
                logger.exception("Unexpected failure on %s", _template_name(path))
                return failed(path, f"{type(e).__name__}: {e}")

        items = list(enumerate(paths))

        if self.workers == 1 or len(items) <= 1:
            return [guarded(item) for item in items]

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            return list(executor.map(guarded, items))


def find_features(scene_image_path, object_image_paths, hessian_threshold,
                  ratio_threshold=0.75, **finder_kwargs):
    """Feature matching entry point; see ObjectFinder.find_features."""
    finder = ObjectFinder(**finder_kwargs)
    return finder.find_features(scene_image_path, object_image_paths,
                                hessian_threshold, ratio_threshold)


def find_templates(scene_image_path, object_image_paths, method, threshold,
                   **finder_kwargs):
    """Template matching entry point; see ObjectFinder.find_templates."""
    finder = ObjectFinder(**finder_kwargs)
    return finder.find_templates(scene_image_path, object_image_paths, method, threshold)


def _load_scene(path):
    try:
        return read_grayscale(path)
    except IOError as e:
        logger.error("%s", e)
        raise IOError("Failed to load scene image") from e


def _template_name(path):
    return os.path.basename(os.fspath(path))


def _is_path(value):
    return isinstance(value, (str, os.PathLike))


def _is_number(value):
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _check_paths(scene_image_path, object_image_paths, usage):
    if not _is_path(scene_image_path):
        raise TypeError(usage)
    if not isinstance(object_image_paths, (list, tuple)):
        raise TypeError(usage)
    if not all(_is_path(p) for p in object_image_paths):
        raise TypeError(usage)
