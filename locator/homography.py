"""
Pure implementation of Homography computation and RANSAC algorithm
using only NumPy - no OpenCV dependencies.
"""

import numpy as np


MIN_MATCH_COUNT = 10


class HomographyEstimator:
    """
    Homography matrix estimation using RANSAC algorithm.

    A homography is a 3x3 matrix that describes the projective transformation
    between two planes (images).
    """

    def __init__(self, ransac_reproj_threshold=3.0, max_iters=2000,
                 confidence=0.995, min_inliers=4, rng=None):
        """
        Initialize Homography Estimator.

        Args:
            ransac_reproj_threshold: Maximum reprojection error to be considered inlier
            max_iters: Maximum number of RANSAC iterations
            confidence: Desired confidence level for RANSAC
            min_inliers: Minimum number of inliers required for refinement
            rng: numpy Generator or integer seed for sampling
        """
        self.ransac_reproj_threshold = ransac_reproj_threshold
        self.max_iters = max_iters
        self.confidence = confidence
        self.min_inliers = min_inliers
        self.rng = np.random.default_rng(rng)

    def find_homography(self, src_points, dst_points):
        """
        Find homography matrix using RANSAC.

        Args:
            src_points: Source points (N x 2)
            dst_points: Destination points (N x 2)

        Returns:
            H: Homography matrix (3 x 3), or None if no valid model was found
            mask: Inlier mask (N,), or None
        """
        src_points = np.array(src_points, dtype=np.float64).reshape(-1, 2)
        dst_points = np.array(dst_points, dtype=np.float64).reshape(-1, 2)

        if len(src_points) != len(dst_points):
            raise ValueError("Source and destination points must have same length")

        if len(src_points) < 4:
            raise ValueError("Need at least 4 point correspondences")

        best_H = None
        best_inliers = None
        best_num_inliers = 0

        n_points = len(src_points)
        max_iters = self.max_iters

        iteration = 0
        while iteration < max_iters:
            iteration += 1

            indices = self.rng.choice(n_points, 4, replace=False)
            src_sample = src_points[indices]
            dst_sample = dst_points[indices]

            if _has_collinear_triple(src_sample) or _has_collinear_triple(dst_sample):
                continue

            H = self._compute_homography_dlt(src_sample, dst_sample)

            if H is None:
                continue

            inliers = self._get_inliers(src_points, dst_points, H)
            num_inliers = int(np.sum(inliers))

            # Strictly greater keeps the first model found on ties
            if num_inliers > best_num_inliers:
                best_num_inliers = num_inliers
                best_inliers = inliers
                best_H = H

                # Adaptive termination
                inlier_ratio = num_inliers / n_points
                max_iters = min(max_iters, self._required_iterations(inlier_ratio))

        if best_H is None:
            return None, None

        # Refine homography using all inliers
        if best_num_inliers >= self.min_inliers:
            refined = self._compute_homography_dlt(src_points[best_inliers],
                                                   dst_points[best_inliers])
            if refined is not None:
                best_H = refined
                best_inliers = self._get_inliers(src_points, dst_points, best_H)

        return best_H, best_inliers

    def _required_iterations(self, inlier_ratio):
        """Iterations needed to draw one all-inlier sample with the target confidence."""
        if inlier_ratio >= 1.0:
            return 1
        if inlier_ratio <= 0.01:
            return self.max_iters
        denom = np.log(1 - inlier_ratio ** 4)
        if denom >= 0:
            return self.max_iters
        return int(np.ceil(np.log(1 - self.confidence) / denom))

    def _compute_homography_dlt(self, src_pts, dst_pts):
        """
        Compute homography using Direct Linear Transform.

        For each point correspondence (x, y) -> (x', y'), we have:
        x' = (h11*x + h12*y + h13) / (h31*x + h32*y + h33)
        y' = (h21*x + h22*y + h23) / (h31*x + h32*y + h33)

        This gives us 2 equations per point correspondence.
        We need at least 4 points (8 equations) to solve for 8 unknowns.
        """
        n = len(src_pts)

        if n < 4:
            return None

        # Normalize points for better numerical stability
        src_pts_norm, T_src = self._normalize_points(src_pts)
        dst_pts_norm, T_dst = self._normalize_points(dst_pts)

        x, y = src_pts_norm[:, 0], src_pts_norm[:, 1]
        xp, yp = dst_pts_norm[:, 0], dst_pts_norm[:, 1]
        zeros = np.zeros(n)
        ones = np.ones(n)

        # Two rows per correspondence
        A = np.empty((2 * n, 9))
        A[0::2] = np.column_stack([-x, -y, -ones, zeros, zeros, zeros, x * xp, y * xp, xp])
        A[1::2] = np.column_stack([zeros, zeros, zeros, -x, -y, -ones, x * yp, y * yp, yp])

        try:
            _, _, Vt = np.linalg.svd(A)
            H = Vt[-1].reshape(3, 3)

            # Denormalize
            H = np.linalg.inv(T_dst) @ H @ T_src
        except np.linalg.LinAlgError:
            return None

        if not np.all(np.isfinite(H)) or abs(H[2, 2]) < 1e-12:
            return None

        # Normalize so that H[2, 2] = 1
        return H / H[2, 2]

    def _normalize_points(self, points):
        """
        Normalize points for better numerical stability.

        Translates points so centroid is at origin and scales so
        average distance from origin is sqrt(2).
        """
        points = np.array(points, dtype=np.float64)

        centroid = np.mean(points, axis=0)
        points_centered = points - centroid

        avg_dist = np.mean(np.sqrt(np.sum(points_centered ** 2, axis=1)))

        if avg_dist < 1e-10:
            avg_dist = 1.0

        scale = np.sqrt(2) / avg_dist

        T = np.array([
            [scale, 0, -scale * centroid[0]],
            [0, scale, -scale * centroid[1]],
            [0, 0, 1]
        ])

        return points_centered * scale, T

    def _get_inliers(self, src_pts, dst_pts, H):
        """
        Get inlier mask based on reprojection error.

        Returns:
            mask: Boolean mask indicating inliers
        """
        dst_projected = perspective_transform(src_pts, H)

        errors = np.sqrt(np.sum((dst_pts - dst_projected) ** 2, axis=1))

        return errors < self.ransac_reproj_threshold

    def verify(self, src_points, dst_points, width, height):
        """
        Estimate the object-to-scene homography and project the object outline.

        Args:
            src_points: Object-space points (N x 2)
            dst_points: Scene-space points (N x 2)
            width: Object image width
            height: Object image height

        Returns:
            corners: Scene-space corners (4 x 2)
            H: Homography matrix (3 x 3)
            mask: Inlier mask (N,)

        Raises:
            ValueError: If no homography could be estimated
        """
        H, mask = self.find_homography(src_points, dst_points)

        if H is None:
            raise ValueError("Failed to compute homography")

        corners = perspective_transform(object_corners(width, height), H)
        return corners, H, mask


def perspective_transform(points, H):
    """
    Apply homography transformation to points.

    Args:
        points: Points to transform (N x 2)
        H: Homography matrix (3 x 3)

    Returns:
        Transformed points (N x 2); points mapped to infinity come out as (0, 0)
    """
    points = np.array(points, dtype=np.float64).reshape(-1, 2)

    points_homogeneous = np.hstack([points, np.ones((len(points), 1))])
    transformed = (H @ points_homogeneous.T).T

    w = transformed[:, 2:3]
    scale = np.divide(1.0, w, out=np.zeros_like(w), where=np.abs(w) > np.finfo(np.float64).eps)
    return transformed[:, :2] * scale


def object_corners(width, height):
    """Corners of a width x height image, clockwise from the origin."""
    return np.array([
        [0, 0],
        [width, 0],
        [width, height],
        [0, height]
    ], dtype=np.float64)


def match_confidence(good_matches, object_keypoints, scene_keypoints):
    """Density of good matches over all detected keypoints, capped at 1."""
    total = object_keypoints + scene_keypoints
    if total <= 0:
        return 0.0
    return min(1.0, good_matches / total * 2.0)


def _has_collinear_triple(points):
    """True if any three of the sample points are (nearly) collinear."""
    for i in range(len(points)):
        for j in range(i + 1, len(points)):
            for k in range(j + 1, len(points)):
                dx1, dy1 = points[j] - points[i]
                dx2, dy2 = points[k] - points[i]
                if abs(dx1 * dy2 - dy1 * dx2) <= np.finfo(np.float32).eps * (
                        abs(dx1) + abs(dy1) + abs(dx2) + abs(dy2)):
                    return True
    return False
