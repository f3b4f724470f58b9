"""
Image utilities for document structuring.

Provides:
- Annotated page overlays (boxes + label/confidence tags)
"""

import logging
from typing import Dict, Iterable, Tuple

import numpy as np

from .layout import Detection, LayoutClass

logger = logging.getLogger(__name__)


# BGR
LABEL_COLORS: Dict[str, Tuple[int, int, int]] = {
    LayoutClass.TITLE.value: (0, 0, 255),
    LayoutClass.SECTION_HEADER.value: (0, 255, 0),
    LayoutClass.TEXT.value: (255, 0, 0),
    LayoutClass.LIST_ITEM.value: (255, 0, 255),
    LayoutClass.TABLE.value: (0, 255, 255),
    LayoutClass.PICTURE.value: (255, 255, 0),
    LayoutClass.CAPTION.value: (0, 165, 255),
    LayoutClass.FORMULA.value: (128, 0, 128),
    LayoutClass.FOOTNOTE.value: (128, 128, 128),
    LayoutClass.PAGE_HEADER.value: (0, 128, 0),
    LayoutClass.PAGE_FOOTER.value: (0, 0, 128),
}
DEFAULT_COLOR = (255, 255, 255)


def to_bgr(image: np.ndarray) -> np.ndarray:
    """Copy of `image` as a 3-channel BGR image."""
    import cv2

    if len(image.shape) == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image.copy()


def draw_annotations(
    image: np.ndarray,
    detections: Iterable[Detection],
    line_width: int = 3,
    tag_width: int = 250,
    tag_height: int = 20,
    tag_alpha: float = 0.7
) -> np.ndarray:
    """
    Draw detection boxes with a "Label (95.0%)" tag above each.

    Args:
        image: Page image
        detections: Detections of the page
        line_width: Box line thickness
        tag_width: Width of the tag background
        tag_height: Height of the tag background
        tag_alpha: Opacity of the tag background

    Returns:
        Annotated copy of the image
    """
    import cv2

    annotated = to_bgr(image)

    for detection in detections:
        x1, y1, x2, y2 = detection.bbox.to_list()
        color = LABEL_COLORS.get(detection.label, DEFAULT_COLOR)

        cv2.rectangle(annotated, (x1, y1), (x2, y2), color, line_width)

        # Tag background, blended over the page
        tx1, ty1 = max(0, x1), max(0, y1 - tag_height)
        tx2, ty2 = min(annotated.shape[1], x1 + tag_width), max(0, y1)
        if tx2 > tx1 and ty2 > ty1:
            region = annotated[ty1:ty2, tx1:tx2]
            overlay = np.full_like(region, color)
            annotated[ty1:ty2, tx1:tx2] = cv2.addWeighted(
                overlay, tag_alpha, region, 1 - tag_alpha, 0
            )

        cv2.putText(
            annotated,
            f"{detection.label} ({detection.confidence * 100:.1f}%)",
            (x1 + 2, max(tag_height - 5, y1 - 5)),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.5,
            (0, 0, 0),
            1
        )

    return annotated
