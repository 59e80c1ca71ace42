"""Tests for IoU and non-maximum suppression."""

import pytest

from locator.postprocess import calculate_iou, non_max_suppression
from locator.results import TemplateBox


def box(x, y, confidence, template='a.png', size=10):
    return TemplateBox(x, y, size, size, confidence, template)


def test_iou():
    assert calculate_iou(box(0, 0, 1), box(0, 0, 1)) == 1.0
    assert calculate_iou(box(0, 0, 1), box(20, 20, 1)) == 0.0
    assert calculate_iou(box(0, 0, 1), box(5, 0, 1)) == pytest.approx(50 / 150)


def test_iou_of_empty_boxes():
    empty = TemplateBox(3, 3, 0, 0, 1.0)
    assert calculate_iou(empty, empty) == 0.0


def test_same_template_overlaps_are_suppressed():
    boxes = [box(0, 0, 0.90), box(1, 0, 0.95), box(30, 30, 0.85)]

    kept = non_max_suppression(boxes, overlap_thresh=0.2)

    assert [(b.x, b.y) for b in kept] == [(1, 0), (30, 30)]


def test_different_templates_use_looser_threshold():
    # IoU of a 3 px horizontal shift is 70/130, just over 0.5
    boxes = [box(0, 0, 0.9, 'a.png'), box(3, 0, 0.8, 'b.png'), box(2, 0, 0.7, 'a.png')]

    kept = non_max_suppression(boxes, overlap_thresh=0.2, different_template_thresh=0.5)

    assert [(b.x, b.template) for b in kept] == [(0, 'a.png')]

    boxes = [box(0, 0, 0.9, 'a.png'), box(6, 0, 0.8, 'b.png')]
    kept = non_max_suppression(boxes, overlap_thresh=0.2, different_template_thresh=0.5)
    assert [b.template for b in kept] == ['a.png', 'b.png']


def test_lower_is_better_scores():
    boxes = [box(0, 0, 500.0), box(1, 1, 20.0), box(40, 40, 100.0)]

    kept = non_max_suppression(boxes, higher_is_better=False)

    assert [b.confidence for b in kept] == [20.0, 100.0]
