"""
Drawing helpers for annotating a scene with located objects.
"""

import numpy as np


GREEN = (0, 255, 0)
CYAN = (56, 230, 255)


def clip_segment(pt1, pt2, width, height):
    """
    Clip a segment to the pixel rectangle [0, width-1] x [0, height-1].

    Uses Liang-Barsky parametric clipping.

    Returns:
        The clipped ((x1, y1), (x2, y2)), or None when the segment misses
        the rectangle or has a non-finite endpoint
    """
    x1, y1 = float(pt1[0]), float(pt1[1])
    x2, y2 = float(pt2[0]), float(pt2[1])
    if not np.all(np.isfinite([x1, y1, x2, y2])):
        return None

    dx = x2 - x1
    dy = y2 - y1
    t0, t1 = 0.0, 1.0

    for p, q in ((-dx, x1), (dx, width - 1 - x1), (-dy, y1), (dy, height - 1 - y1)):
        if p == 0:
            if q < 0:
                return None
            continue
        t = q / p
        if p < 0:
            if t > t1:
                return None
            t0 = max(t0, t)
        else:
            if t < t0:
                return None
            t1 = min(t1, t)

    return (x1 + t0 * dx, y1 + t0 * dy), (x1 + t1 * dx, y1 + t1 * dy)


def draw_line(image, pt1, pt2, color):
    """Draw line on image using Bresenham's algorithm."""
    clipped = clip_segment(pt1, pt2, image.shape[1], image.shape[0])
    if clipped is None:
        return
    pt1, pt2 = clipped

    x1, y1 = int(round(pt1[0])), int(round(pt1[1]))
    x2, y2 = int(round(pt2[0])), int(round(pt2[1]))

    steep = abs(y2 - y1) > abs(x2 - x1)

    if steep:
        x1, y1 = y1, x1
        x2, y2 = y2, x2

    if x1 > x2:
        x1, x2 = x2, x1
        y1, y2 = y2, y1

    dx = x2 - x1
    dy = abs(y2 - y1)

    error = dx // 2
    ystep = 1 if y1 < y2 else -1
    y = y1

    for x in range(x1, x2 + 1):
        if steep:
            if 0 <= y < image.shape[1] and 0 <= x < image.shape[0]:
                image[x, y] = color
        else:
            if 0 <= x < image.shape[1] and 0 <= y < image.shape[0]:
                image[y, x] = color

        error -= dy
        if error < 0:
            y += ystep
            error += dx


def draw_quadrilateral(image, corners, color=GREEN):
    """Draw the closed outline through four (x, y) corners."""
    corners = np.asarray(corners, dtype=np.float64).reshape(-1, 2)
    for i in range(len(corners)):
        draw_line(image, corners[i], corners[(i + 1) % len(corners)], color)


def draw_box(image, box, color=CYAN):
    """Draw an axis-aligned template box."""
    x0, y0 = box.x, box.y
    x1, y1 = box.x + box.width - 1, box.y + box.height - 1
    draw_quadrilateral(image, [(x0, y0), (x1, y0), (x1, y1), (x0, y1)], color)
