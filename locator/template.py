"""
Pure implementation of sliding-window template matching
using NumPy and SciPy - no OpenCV dependencies.

Cross terms are computed with FFT correlation and window energies with
integral images, so a scan costs O(N log N) rather than O(N * n).
"""

from enum import IntEnum

import numpy as np
from scipy.signal import fftconvolve

from .results import TemplateBox, TemplateMatchResult


class TemplateMethod(IntEnum):
    """Similarity metrics, numbered the way callers conventionally pass them."""
    SQDIFF = 0
    SQDIFF_NORMED = 1
    CCORR = 2
    CCORR_NORMED = 3
    CCOEFF = 4
    CCOEFF_NORMED = 5

    @property
    def lower_is_better(self):
        return self in (TemplateMethod.SQDIFF, TemplateMethod.SQDIFF_NORMED)

    @property
    def normed(self):
        return self in (TemplateMethod.SQDIFF_NORMED, TemplateMethod.CCORR_NORMED,
                        TemplateMethod.CCOEFF_NORMED)


def match_template(scene, template, method):
    """
    Compute the similarity score of the template at every offset.

    Args:
        scene: Grayscale scene (H x W)
        template: Grayscale template (h x w), h <= H and w <= W
        method: TemplateMethod or its integer code

    Returns:
        scores: (H - h + 1) x (W - w + 1) float64 array, scores[i, j] is the
                score with the template's top-left corner at (x=j, y=i)
    """
    method = TemplateMethod(method)
    H, W = scene.shape
    h, w = template.shape

    if h > H or w > W:
        raise ValueError("Scene image is smaller than template image")

    exact = _is_integral(scene) and _is_integral(template)
    S = scene.astype(np.float64)
    T = template.astype(np.float64)
    n = h * w

    cross = fftconvolve(S, T[::-1, ::-1], mode='valid')
    if exact:
        # Integer inputs give integer correlations; drop the FFT round-off
        cross = np.rint(cross)

    if method == TemplateMethod.CCORR:
        return cross

    wnd_sum = _window_sums(scene, h, w, exact)
    t_sum = T.sum()

    if method == TemplateMethod.CCOEFF:
        return cross - wnd_sum * (t_sum / n)

    wnd_sq = _window_sums(scene.astype(np.int64) ** 2 if exact else S ** 2, h, w, exact)
    t_sq = np.sum(T ** 2)

    if method == TemplateMethod.SQDIFF:
        return wnd_sq - 2 * cross + t_sq

    if method == TemplateMethod.CCOEFF_NORMED:
        t_var = t_sq - t_sum ** 2 / n
        if t_var < np.finfo(np.float64).eps:
            # A flat template correlates equally with every window
            return np.ones_like(cross)
        num = cross - wnd_sum * (t_sum / n)
        denom = np.sqrt(np.maximum(wnd_sq - wnd_sum ** 2 / n, 0) * t_var)
    elif method == TemplateMethod.CCORR_NORMED:
        num = cross
        denom = np.sqrt(wnd_sq * t_sq)
    else:
        num = wnd_sq - 2 * cross + t_sq
        denom = np.sqrt(wnd_sq * t_sq)

    return _normalize(num, denom, method)


def _normalize(num, denom, method):
    """Divide by the energy term, clamping where the division is ill-conditioned."""
    abs_num = np.abs(num)
    fallback = 1.0 if method == TemplateMethod.SQDIFF_NORMED else 0.0
    safe = np.divide(num, denom, out=np.zeros_like(num), where=denom > 0)
    return np.select(
        [abs_num < denom, abs_num < denom * 1.125],
        [safe, np.sign(num)],
        default=fallback,
    )


def _window_sums(image, h, w, exact):
    """Sum of every h x w window using an integral image."""
    dtype = np.int64 if exact else np.float64
    H, W = image.shape
    integral = np.zeros((H + 1, W + 1), dtype=dtype)
    integral[1:, 1:] = image.astype(dtype).cumsum(axis=0).cumsum(axis=1)
    sums = integral[h:, w:] - integral[:-h, w:] - integral[h:, :-w] + integral[:-h, :-w]
    return sums.astype(np.float64)


def _is_integral(image):
    return np.issubdtype(image.dtype, np.integer) or image.dtype == np.bool_


class TemplateScanner:
    """
    Exhaustive template scan with threshold enumeration.

    For squared-difference metrics lower scores are better and a position
    passes when ``score <= threshold``; for correlation metrics higher is
    better and a position passes when ``score >= threshold``.

    ``max_confidence`` on the result is the best score for the metric, so
    for SQDIFF and SQDIFF_NORMED it is the lowest score (0.0 for a perfect
    crop). Callers expecting the plain maximum that OpenCV's ``minMaxLoc``
    reports can take ``match_template(scene, template, method).max()``.
    """

    def __init__(self, method=TemplateMethod.CCOEFF_NORMED):
        self.method = TemplateMethod(method)

    def scan(self, scene, template, threshold, name=None):
        """
        Scan the template over the scene.

        Args:
            scene: Grayscale scene (H x W)
            template: Grayscale template (h x w)
            threshold: Score threshold, compared according to the metric polarity
            name: Template name recorded on the result and its boxes

        Returns:
            TemplateMatchResult with the best score and all passing positions
        """
        h, w = template.shape
        scores = match_template(scene, template, self.method)

        if self.method.lower_is_better:
            best = float(np.min(scores))
            passing = scores <= threshold
        else:
            best = float(np.max(scores))
            passing = scores >= threshold

        # np.nonzero walks row-major: y outer, x inner
        ys, xs = np.nonzero(passing)
        boxes = [TemplateBox(int(x), int(y), int(w), int(h), float(scores[y, x]), name)
                 for y, x in zip(ys, xs)]

        return TemplateMatchResult(name, best, boxes)
