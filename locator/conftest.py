"""Pytest fixtures: synthetic grayscale images written with Pillow."""

import logging

import numpy as np
import pytest
from PIL import Image
from scipy.ndimage import gaussian_filter


def textured_image(shape, seed=0, sigma=2.0):
    """Smoothed noise stretched to the full 0-255 range."""
    rng = np.random.default_rng(seed)
    texture = gaussian_filter(rng.random(shape), sigma)
    texture -= texture.min()
    texture /= texture.max()
    return np.round(texture * 255).astype(np.uint8)


def blob_image(shape, center, sigma=4.0, amplitude=200):
    """A single Gaussian blob on a black background."""
    yy, xx = np.mgrid[:shape[0], :shape[1]]
    blob = amplitude * np.exp(-((xx - center[0]) ** 2 + (yy - center[1]) ** 2) / (2 * sigma ** 2))
    return np.round(blob).astype(np.uint8)


@pytest.fixture
def save_image(tmp_path):
    """Save a uint8 array as PNG under tmp_path and return its path."""
    def _save(name, array):
        path = tmp_path / name
        Image.fromarray(array).save(path)
        return str(path)
    return _save


@pytest.fixture
def scene_array():
    return textured_image((192, 192), seed=7)


@pytest.fixture
def scene_path(save_image, scene_array):
    return save_image('scene.png', scene_array)


@pytest.fixture
def missing_path(tmp_path):
    return str(tmp_path / 'does_not_exist.png')


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers the CLI installs so later tests do not log to a closed capture."""
    yield
    logger = logging.getLogger('locator')
    logger.handlers.clear()
    logger.propagate = True
    logger._locator_configured = False
