"""
Pure SURF (Speeded-Up Robust Features) style detector and descriptor
using only NumPy and SciPy - no OpenCV dependencies.
"""

import numpy as np
from scipy.ndimage import correlate1d, gaussian_filter, map_coordinates, maximum_filter


SECOND_DIFF = np.array([1.0, -2.0, 1.0])
CENTRAL_DIFF = np.array([-0.5, 0.0, 0.5])


class Keypoint:
    """Simple keypoint class to store keypoint information."""

    def __init__(self, x, y, size=1.0, angle=0.0, response=0.0, octave=0, layer=0):
        self.pt = (x, y)  # (x, y) coordinates
        self.size = size
        self.angle = angle
        self.response = response
        self.octave = octave
        self.layer = layer

    def __repr__(self):
        return f"Keypoint(pt={self.pt}, size={self.size:.2f}, angle={self.angle:.2f})"


class SURF:
    """
    Speeded-Up Robust Features (SURF) style implementation.

    This class implements the SURF pipeline on a Gaussian scale space:
    1. Scale-normalized Hessian determinant response
    2. Non-maximum suppression in a 3x3x3 neighbourhood
    3. Sub-pixel / sub-scale localization
    4. Orientation from a sliding pi/3 window of gradient responses
    5. 64 (or 128 extended) float descriptor from 4x4 sub-regions
    """

    INITIAL_BLUR = 0.5
    MIN_OCTAVE_SIZE = 16
    ORIENTATION_STEP = 0.15
    ORIENTATION_WINDOW = np.pi / 3

    def __init__(self, hessian_threshold=100.0, n_octaves=4, n_octave_layers=3,
                 extended=False, upright=False, base_sigma=1.2):
        """
        Initialize SURF detector.

        Args:
            hessian_threshold: Minimum Hessian determinant for a keypoint
            n_octaves: Number of octaves in the scale space
            n_octave_layers: Number of detection layers per octave
            extended: Compute 128-element descriptors instead of 64
            upright: Skip orientation assignment (angle fixed at 0)
            base_sigma: Scale of the first layer of each octave
        """
        if n_octaves < 1 or n_octave_layers < 1:
            raise ValueError("n_octaves and n_octave_layers must be positive")

        self.hessian_threshold = float(hessian_threshold)
        self.n_octaves = int(n_octaves)
        self.n_octave_layers = int(n_octave_layers)
        self.extended = bool(extended)
        self.upright = bool(upright)
        self.base_sigma = float(base_sigma)

    @property
    def descriptor_size(self):
        return 128 if self.extended else 64

    def detect_and_compute(self, image):
        """
        Detect keypoints and compute descriptors.

        Args:
            image: Grayscale image (2D numpy array)

        Returns:
            keypoints: List of Keypoint objects
            descriptors: Array of descriptors (N x 64) or (N x 128), float32
        """
        if image.ndim != 2:
            raise ValueError("SURF expects a single-channel image")

        base = image.astype(np.float32)
        base_blur = self.INITIAL_BLUR

        keypoints = []
        descriptors = []

        for octave in range(self.n_octaves):
            if min(base.shape) < self.MIN_OCTAVE_SIZE:
                break

            sigmas = self._layer_sigmas()
            layers = [self._blur(base, sigma, base_blur) for sigma in sigmas]
            responses = np.stack([
                self._hessian_response(layer, sigma)
                for layer, sigma in zip(layers, sigmas)
            ])

            candidates = self._find_extrema(responses, sigmas)

            for layer_idx in range(1, len(layers) - 1):
                octave_kps = []
                for y, x in candidates.get(layer_idx, []):
                    refined = self._refine_keypoint(responses, layer_idx, y, x)
                    if refined is not None:
                        octave_kps.append(refined)

                if not octave_kps:
                    continue

                gy, gx = np.gradient(layers[layer_idx])
                kps, descs = self._describe(gx, gy, octave, layer_idx, octave_kps)
                keypoints.extend(kps)
                descriptors.append(descs)

            # Next octave starts from the layer at twice the base scale
            base = self._downsample(layers[self.n_octave_layers])
            base_blur = self.base_sigma

        if descriptors:
            descriptors = np.vstack(descriptors).astype(np.float32)
        else:
            descriptors = np.zeros((0, self.descriptor_size), dtype=np.float32)

        return keypoints, descriptors

    def _layer_sigmas(self):
        """Per-layer scales in octave pixel units, including the two guard layers."""
        return [self.base_sigma * 2 ** (layer / self.n_octave_layers)
                for layer in range(self.n_octave_layers + 2)]

    def _blur(self, image, sigma, current_blur):
        increment = np.sqrt(max(sigma ** 2 - current_blur ** 2, 0.0))
        if increment < 1e-3:
            return image.copy()
        return gaussian_filter(image, increment)

    def _hessian_response(self, layer, sigma):
        """Scale-normalized determinant of the Hessian."""
        dxx = correlate1d(layer, SECOND_DIFF, axis=1, mode='reflect')
        dyy = correlate1d(layer, SECOND_DIFF, axis=0, mode='reflect')
        dxy = correlate1d(correlate1d(layer, CENTRAL_DIFF, axis=1, mode='reflect'),
                          CENTRAL_DIFF, axis=0, mode='reflect')
        return (sigma ** 4) * (dxx * dyy - dxy * dxy)

    def _find_extrema(self, responses, sigmas):
        """Local maxima of the response stack above the Hessian threshold."""
        is_max = responses == maximum_filter(responses, size=3, mode='nearest')
        is_max &= responses > self.hessian_threshold

        h, w = responses.shape[1:]
        candidates = {}
        for layer_idx in range(1, len(sigmas) - 1):
            border = int(np.ceil(3 * sigmas[layer_idx])) + 1
            if 2 * border >= min(h, w):
                continue
            mask = np.zeros((h, w), dtype=bool)
            mask[border:h - border, border:w - border] = True
            coords = np.argwhere(is_max[layer_idx] & mask)
            if len(coords):
                candidates[layer_idx] = coords
        return candidates

    def _refine_keypoint(self, responses, layer_idx, y, x):
        """
        Refine keypoint location using quadratic interpolation.

        Returns (y, x, layer offset, response) in octave coordinates or None.
        """
        prev_r = responses[layer_idx - 1]
        curr_r = responses[layer_idx]
        next_r = responses[layer_idx + 1]

        # Gradient
        dx = (curr_r[y, x + 1] - curr_r[y, x - 1]) / 2.0
        dy = (curr_r[y + 1, x] - curr_r[y - 1, x]) / 2.0
        ds = (next_r[y, x] - prev_r[y, x]) / 2.0

        # Hessian
        dxx = curr_r[y, x + 1] + curr_r[y, x - 1] - 2 * curr_r[y, x]
        dyy = curr_r[y + 1, x] + curr_r[y - 1, x] - 2 * curr_r[y, x]
        dss = next_r[y, x] + prev_r[y, x] - 2 * curr_r[y, x]

        dxy = ((curr_r[y + 1, x + 1] - curr_r[y + 1, x - 1]) -
               (curr_r[y - 1, x + 1] - curr_r[y - 1, x - 1])) / 4.0
        dxs = ((next_r[y, x + 1] - next_r[y, x - 1]) -
               (prev_r[y, x + 1] - prev_r[y, x - 1])) / 4.0
        dys = ((next_r[y + 1, x] - next_r[y - 1, x]) -
               (prev_r[y + 1, x] - prev_r[y - 1, x])) / 4.0

        H = np.array([[dxx, dxy, dxs],
                      [dxy, dyy, dys],
                      [dxs, dys, dss]], dtype=np.float64)
        gradient = np.array([dx, dy, ds], dtype=np.float64)

        try:
            offset = -np.linalg.solve(H, gradient)
        except np.linalg.LinAlgError:
            return None

        if not np.all(np.isfinite(offset)) or np.any(np.abs(offset) > 1.0):
            return None

        response = curr_r[y, x] + 0.5 * np.dot(gradient, offset)
        if response <= self.hessian_threshold:
            return None

        return y + offset[1], x + offset[0], offset[2], float(response)

    def _describe(self, gx, gy, octave, layer_idx, refined):
        """Assign orientations and compute descriptors for one layer's keypoints."""
        ys = np.array([r[0] for r in refined])
        xs = np.array([r[1] for r in refined])
        scales = self.base_sigma * 2 ** ((layer_idx + np.array([r[2] for r in refined]))
                                         / self.n_octave_layers)

        if self.upright:
            angles = np.zeros(len(refined))
        else:
            angles = self._orientations(gx, gy, ys, xs, scales)

        descs = self._descriptors(gx, gy, ys, xs, scales, angles)

        # Rounding can wrap tiny negative angles onto 360
        degrees = np.degrees(angles) % 360.0
        degrees[degrees >= 360.0] = 0.0

        factor = 2 ** octave
        keypoints = []
        for i, r in enumerate(refined):
            keypoints.append(Keypoint(
                x=float(xs[i] * factor),
                y=float(ys[i] * factor),
                size=float(2 * scales[i] * factor),
                angle=float(degrees[i]),
                response=r[3],
                octave=octave,
                layer=layer_idx,
            ))
        return keypoints, descs

    def _orientations(self, gx, gy, ys, xs, scales):
        """Dominant orientation per keypoint from gradients in a 6s disc."""
        ii, jj = np.mgrid[-6:7, -6:7]
        inside = ii ** 2 + jj ** 2 < 36
        ii = ii[inside].astype(np.float64)
        jj = jj[inside].astype(np.float64)
        weights = np.exp(-(ii ** 2 + jj ** 2) / (2 * 2.0 ** 2))

        sample_y = ys[:, None] + ii[None, :] * scales[:, None]
        sample_x = xs[:, None] + jj[None, :] * scales[:, None]
        coords = np.array([sample_y, sample_x])
        resp_x = map_coordinates(gx, coords, order=1, mode='nearest') * weights
        resp_y = map_coordinates(gy, coords, order=1, mode='nearest') * weights

        sample_angles = np.arctan2(resp_y, resp_x) % (2 * np.pi)
        starts = np.arange(0, 2 * np.pi, self.ORIENTATION_STEP)

        angles = np.zeros(len(ys))
        for k in range(len(ys)):
            in_window = ((sample_angles[k][None, :] - starts[:, None]) % (2 * np.pi)
                         < self.ORIENTATION_WINDOW)
            sum_x = in_window @ resp_x[k]
            sum_y = in_window @ resp_y[k]
            best = int(np.argmax(sum_x ** 2 + sum_y ** 2))
            angles[k] = np.arctan2(sum_y[best], sum_x[best])
        return angles

    def _descriptors(self, gx, gy, ys, xs, scales, angles):
        """
        Compute SURF descriptors.
        Uses a 20s x 20s window split into 4x4 sub-regions of 5x5 samples.
        """
        grid = np.arange(20, dtype=np.float64) - 9.5
        v, u = np.meshgrid(grid, grid, indexing='ij')
        u = u.ravel()
        v = v.ravel()
        weights = np.exp(-(u ** 2 + v ** 2) / (2 * 3.3 ** 2))

        cos_a = np.cos(angles)[:, None]
        sin_a = np.sin(angles)[:, None]
        su = u[None, :] * scales[:, None]
        sv = v[None, :] * scales[:, None]

        sample_x = xs[:, None] + cos_a * su - sin_a * sv
        sample_y = ys[:, None] + sin_a * su + cos_a * sv
        coords = np.array([sample_y, sample_x])
        gx_s = map_coordinates(gx, coords, order=1, mode='nearest')
        gy_s = map_coordinates(gy, coords, order=1, mode='nearest')

        # Gradients in the keypoint frame
        du = (cos_a * gx_s + sin_a * gy_s) * weights
        dv = (-sin_a * gx_s + cos_a * gy_s) * weights

        n = len(ys)
        du = du.reshape(n, 4, 5, 4, 5)
        dv = dv.reshape(n, 4, 5, 4, 5)

        if self.extended:
            neg_v = dv < 0
            neg_u = du < 0
            parts = [
                np.where(neg_v, du, 0.0), np.where(neg_v, np.abs(du), 0.0),
                np.where(neg_v, 0.0, du), np.where(neg_v, 0.0, np.abs(du)),
                np.where(neg_u, dv, 0.0), np.where(neg_u, np.abs(dv), 0.0),
                np.where(neg_u, 0.0, dv), np.where(neg_u, 0.0, np.abs(dv)),
            ]
        else:
            parts = [du, dv, np.abs(du), np.abs(dv)]

        # (n, 4, 4, k): sum over the 5x5 samples of each sub-region
        descs = np.stack([p.sum(axis=(2, 4)) for p in parts], axis=-1)
        descs = descs.reshape(n, -1)

        norms = np.linalg.norm(descs, axis=1, keepdims=True)
        descs = np.divide(descs, norms, out=np.zeros_like(descs), where=norms > 0)
        return descs.astype(np.float32)

    def _downsample(self, image):
        """Downsample image by factor of 2."""
        return image[::2, ::2]
