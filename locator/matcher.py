"""
Feature matching using L2 distance (Euclidean distance).
Pure implementation without OpenCV.
"""

from collections import namedtuple

import numpy as np


KnnMatch = namedtuple('KnnMatch', ['queryIdx', 'trainIdx', 'distance', 'secondDistance'])


class FeatureMatcher:
    """
    Feature matcher using L2 (Euclidean) distance.
    Implements exhaustive two-nearest-neighbour search with Lowe's ratio test.
    """

    def __init__(self, ratio_threshold=0.75, chunk_size=1024):
        """
        Initialize feature matcher.

        Args:
            ratio_threshold: Lowe's ratio test threshold (0.75 recommended)
            chunk_size: Number of query descriptors per distance block
        """
        self.ratio_threshold = ratio_threshold
        self.chunk_size = chunk_size

    def match(self, descriptors1, descriptors2):
        """
        Match features between two sets of descriptors.

        Args:
            descriptors1: Query descriptors (N x D)
            descriptors2: Reference descriptors (M x D)

        Returns:
            matches: List of KnnMatch that pass the ratio test, in query order
        """
        return [m for m in self.knn_match(descriptors1, descriptors2)
                if m.distance < self.ratio_threshold * m.secondDistance]

    def knn_match(self, descriptors1, descriptors2):
        """
        Find the two nearest reference descriptors for every query descriptor.

        Returns:
            List of KnnMatch, one per query row. Empty when the reference set
            has fewer than two descriptors.
        """
        if len(descriptors1) == 0 or len(descriptors2) < 2:
            return []

        desc1 = np.asarray(descriptors1, dtype=np.float64)
        desc2 = np.asarray(descriptors2, dtype=np.float64)
        sq_norms2 = np.sum(desc2 ** 2, axis=1)

        matches = []
        for start in range(0, len(desc1), self.chunk_size):
            block = desc1[start:start + self.chunk_size]
            distances = self._compute_distance_matrix(block, desc2, sq_norms2)
            matches.extend(self._two_nearest(distances, start))

        return matches

    def _compute_distance_matrix(self, desc1, desc2, sq_norms2):
        """
        Compute L2 distance matrix between two sets of descriptors.

        Returns:
            distances: N x M matrix where distances[i, j] is L2 distance
                      between desc1[i] and desc2[j]
        """
        # ||a - b||^2 = ||a||^2 + ||b||^2 - 2*a·b
        sq_norms1 = np.sum(desc1 ** 2, axis=1, keepdims=True)
        sq_distances = sq_norms1 + sq_norms2[None, :] - 2 * np.dot(desc1, desc2.T)

        # Ensure non-negative (numerical stability)
        sq_distances = np.maximum(sq_distances, 0)
        return np.sqrt(sq_distances)

    def _two_nearest(self, distances, offset):
        """Nearest and second nearest per row; ties go to the lower index."""
        rows = np.arange(distances.shape[0])

        best = np.argmin(distances, axis=1)
        best_dist = distances[rows, best]

        # Mask the winner in place; the block is not reused afterwards
        distances[rows, best] = np.inf
        second_dist = np.min(distances, axis=1)

        return [KnnMatch(int(offset + i), int(best[i]), float(best_dist[i]),
                         float(second_dist[i]))
                for i in rows]


def correspondences(matches, keypoints1, keypoints2):
    """
    Build aligned point arrays from matches.

    Args:
        matches: List of KnnMatch
        keypoints1: Query keypoints (object image)
        keypoints2: Reference keypoints (scene image)

    Returns:
        src_pts, dst_pts: N x 2 float64 arrays
    """
    src_pts = np.array([keypoints1[m.queryIdx].pt for m in matches],
                       dtype=np.float64).reshape(-1, 2)
    dst_pts = np.array([keypoints2[m.trainIdx].pt for m in matches],
                       dtype=np.float64).reshape(-1, 2)
    return src_pts, dst_pts
