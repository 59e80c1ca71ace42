"""
Post-processing of template boxes: Intersection over Union and
Non-Maximum Suppression across one or several templates.
"""


def calculate_iou(box1, box2):
    """
    Intersection over Union of two axis-aligned boxes.

    Args:
        box1, box2: Objects with x, y, width and height attributes

    Returns:
        IoU in [0, 1]; 0 when both boxes have zero area
    """
    x_a = max(box1.x, box2.x)
    y_a = max(box1.y, box2.y)
    x_b = min(box1.x + box1.width, box2.x + box2.width)
    y_b = min(box1.y + box1.height, box2.y + box2.height)

    intersection = max(0, x_b - x_a) * max(0, y_b - y_a)
    union = box1.width * box1.height + box2.width * box2.height - intersection

    if union == 0:
        return 0.0

    return intersection / union


def non_max_suppression(boxes, overlap_thresh=0.2, different_template_thresh=0.5,
                        higher_is_better=True):
    """
    Greedy Non-Maximum Suppression.

    Boxes of the same template are suppressed once they overlap a kept box
    by ``overlap_thresh`` or more; boxes of a different template are held to
    the looser ``different_template_thresh``.

    Args:
        boxes: TemplateBox list (the ``template`` attribute groups boxes)
        overlap_thresh: IoU threshold between boxes of the same template
        different_template_thresh: IoU threshold across templates
        higher_is_better: False for squared-difference scores

    Returns:
        Kept boxes, best first
    """
    remaining = sorted(boxes, key=lambda b: b.confidence, reverse=higher_is_better)
    selected = []

    while remaining:
        best = remaining.pop(0)
        selected.append(best)

        kept = []
        for box in remaining:
            limit = overlap_thresh if box.template == best.template else different_template_thresh
            if calculate_iou(best, box) < limit:
                kept.append(box)
        remaining = kept

    return selected
