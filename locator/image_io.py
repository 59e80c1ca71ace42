"""
Image I/O utilities using PIL (Pillow)
No OpenCV dependencies.
"""

import numpy as np
from PIL import Image


def read_grayscale(filepath):
    """
    Read an image from file as a single-channel intensity grid.

    Args:
        filepath: Path to image file

    Returns:
        Read-only uint8 array (H x W)

    Raises:
        IOError: If the file cannot be decoded or has zero area
    """
    try:
        with Image.open(filepath) as img:
            # ITU-R 601-2 luma, same weights as the usual imread grayscale
            if img.mode != 'L':
                img = img.convert('L')
            grid = np.array(img, dtype=np.uint8)
    except Exception as e:
        raise IOError(f"Failed to read image from {filepath}: {str(e)}")

    if grid.ndim != 2 or grid.size == 0:
        raise IOError(f"Failed to read image from {filepath}: empty image")

    grid.flags.writeable = False
    return grid


def write_image(filepath, image):
    """
    Write image to file.

    Args:
        filepath: Path to save image
        image: Image as numpy array
    """
    try:
        # Ensure image is in correct format
        if image.dtype != np.uint8:
            image = np.clip(image, 0, 255).astype(np.uint8)

        if len(image.shape) == 2:
            img = Image.fromarray(image)
        else:
            img = Image.fromarray(np.ascontiguousarray(image[:, :, :3]))

        img.save(filepath)

    except Exception as e:
        raise IOError(f"Failed to write image to {filepath}: {str(e)}")


def to_rgb(grid):
    """Stack a grayscale grid into a writable RGB copy for drawing."""
    return np.stack([grid, grid, grid], axis=2).astype(np.uint8)
