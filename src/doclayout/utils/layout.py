"""
Layout module for document structuring.

Provides:
- Layout classes and the static class-id table
- Bounding box geometry
- Detection normalization (scaling, filtering, label resolution)
- Reading order resolution
"""

import functools
import logging
import math
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes and Enums
# ============================================================================

class LayoutClass(Enum):
    """Semantic region categories produced by the layout model."""
    CAPTION = "Caption"
    FOOTNOTE = "Footnote"
    FORMULA = "Formula"
    LIST_ITEM = "List-item"
    PAGE_FOOTER = "Page-footer"
    PAGE_HEADER = "Page-header"
    PICTURE = "Picture"
    SECTION_HEADER = "Section-header"
    TABLE = "Table"
    TEXT = "Text"
    TITLE = "Title"
    UNKNOWN = "Unknown"


# DocLayNet class ids as emitted by the detector
ID2LABEL: "OrderedDict[int, str]" = OrderedDict([
    (0, LayoutClass.CAPTION.value),
    (1, LayoutClass.FOOTNOTE.value),
    (2, LayoutClass.FORMULA.value),
    (3, LayoutClass.LIST_ITEM.value),
    (4, LayoutClass.PAGE_FOOTER.value),
    (5, LayoutClass.PAGE_HEADER.value),
    (6, LayoutClass.PICTURE.value),
    (7, LayoutClass.SECTION_HEADER.value),
    (8, LayoutClass.TABLE.value),
    (9, LayoutClass.TEXT.value),
    (10, LayoutClass.TITLE.value),
])

LAYOUT_LABELS = frozenset(c.value for c in LayoutClass)

# Regions that never go through text extraction
IMAGE_ONLY_LABELS = frozenset({LayoutClass.PICTURE.value})

ROW_TOLERANCE = 20
NORMALIZED_PRECISION = 4
CONFIDENCE_PRECISION = 3


def resolve_label(class_id) -> str:
    """Map a numeric class id to its layout label, 'Unknown' when unmapped."""
    try:
        key = int(class_id)
    except (TypeError, ValueError):
        return LayoutClass.UNKNOWN.value
    if key != class_id:
        return LayoutClass.UNKNOWN.value
    return ID2LABEL.get(key, LayoutClass.UNKNOWN.value)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up."""
    return int(math.floor(value + 0.5))


@dataclass
class BoundingBox:
    """Bounding box with pixel coordinates."""
    x1: int
    y1: int
    x2: int
    y2: int

    @property
    def width(self) -> int:
        return self.x2 - self.x1

    @property
    def height(self) -> int:
        return self.y2 - self.y1

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def center(self) -> Tuple[int, int]:
        return (
            round_half_up((self.x1 + self.x2) / 2),
            round_half_up((self.y1 + self.y2) / 2),
        )

    @property
    def is_degenerate(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def to_list(self) -> List[int]:
        return [self.x1, self.y1, self.x2, self.y2]

    def clipped(self, page_width: int, page_height: int) -> 'BoundingBox':
        """Box clamped to the page, [0, W] x [0, H]."""
        return BoundingBox(
            min(max(self.x1, 0), page_width),
            min(max(self.y1, 0), page_height),
            min(max(self.x2, 0), page_width),
            min(max(self.y2, 0), page_height),
        )

    def normalized(
        self,
        page_width: int,
        page_height: int,
        precision: int = NORMALIZED_PRECISION
    ) -> List[float]:
        """Box divided by page dimensions, rounded to `precision` places."""
        return [
            round(self.x1 / page_width, precision),
            round(self.y1 / page_height, precision),
            round(self.x2 / page_width, precision),
            round(self.y2 / page_height, precision),
        ]

    @classmethod
    def from_scaled(
        cls,
        coords: Iterable[float],
        scale: Tuple[float, float]
    ) -> 'BoundingBox':
        xmin, ymin, xmax, ymax = coords
        sx, sy = scale
        return cls(
            round_half_up(xmin * sx),
            round_half_up(ymin * sy),
            round_half_up(xmax * sx),
            round_half_up(ymax * sy),
        )


class RawDetection(NamedTuple):
    """One row of detector output, in the detector's frame."""
    xmin: float
    ymin: float
    xmax: float
    ymax: float
    score: float
    class_id: int


@dataclass
class Detection:
    """A located, classified region on one page."""
    id: str
    bbox: BoundingBox
    bbox_normalized: List[float]
    label: str
    confidence: float
    page_number: int
    extracted_text: str = ""
    reading_order: Optional[int] = None

    @property
    def width(self) -> int:
        return self.bbox.width

    @property
    def height(self) -> int:
        return self.bbox.height

    @property
    def area(self) -> int:
        return self.bbox.area

    @property
    def center(self) -> Tuple[int, int]:
        return self.bbox.center

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "bbox": self.bbox.to_list(),
            "bbox_normalized": list(self.bbox_normalized),
            "label": self.label,
            "confidence": self.confidence,
            "area": self.area,
            "center": list(self.center),
            "width": self.width,
            "height": self.height,
            "extractedText": self.extracted_text,
            "reading_order": self.reading_order,
        }


@dataclass
class NormalizationStats:
    """Counts gathered while normalizing one page."""
    raw: int = 0
    kept: int = 0
    below_threshold: int = 0
    zero_size_page: int = 0
    degenerate: int = 0
    unknown_labels: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "raw": self.raw,
            "kept": self.kept,
            "below_threshold": self.below_threshold,
            "zero_size_page": self.zero_size_page,
            "degenerate": self.degenerate,
            "unknown_labels": self.unknown_labels,
        }


# ============================================================================
# Detection Normalizer
# ============================================================================

def normalize_detection(
    raw: Iterable[float],
    scale: Tuple[float, float],
    page_size: Tuple[int, int],
    page_number: int,
    index: int,
    confidence_threshold: float = 0.5
) -> Optional[Detection]:
    """
    Convert one raw detector row into a Detection.

    The scaled box is clipped to the page before the degenerate check, so a
    kept box lies in page pixel space and its normalized form in [0, 1].

    Args:
        raw: (xmin, ymin, xmax, ymax, score, class_id) in the detector frame
        scale: (sx, sy) mapping the detector frame onto page pixels
        page_size: (width, height) of the page image
        page_number: 1-indexed page number
        index: 1-indexed position among the page's kept detections
        confidence_threshold: Minimum score to keep the detection

    Returns:
        The Detection, or None when the row is filtered out
    """
    xmin, ymin, xmax, ymax, score, class_id = raw
    if score < confidence_threshold:
        return None

    page_width, page_height = page_size
    if page_width <= 0 or page_height <= 0:
        return None

    bbox = BoundingBox.from_scaled((xmin, ymin, xmax, ymax), scale).clipped(
        page_width, page_height
    )
    if bbox.is_degenerate:
        return None

    return Detection(
        id=f"page{page_number}_detection{index}",
        bbox=bbox,
        bbox_normalized=bbox.normalized(page_width, page_height),
        label=resolve_label(class_id),
        confidence=round(float(score), CONFIDENCE_PRECISION),
        page_number=page_number,
    )


class DetectionNormalizer:
    """
    Turns one page of raw detector output into Detections.

    Text for each kept region is requested from the text extraction
    collaborator; image-only regions get a fixed placeholder instead.
    """

    def __init__(
        self,
        confidence_threshold: float = 0.5,
        text_for: Optional[Callable[[BoundingBox, str], str]] = None
    ):
        if not 0.0 <= confidence_threshold <= 1.0:
            raise ValueError(
                f"confidence_threshold must be within [0, 1], got {confidence_threshold}"
            )
        self.confidence_threshold = confidence_threshold
        self.text_for = text_for

    def normalize_page(
        self,
        rows: Iterable[Iterable[float]],
        scale: Tuple[float, float],
        page_size: Tuple[int, int],
        page_number: int,
        text_for: Optional[Callable[[BoundingBox, str], str]] = None
    ) -> Tuple[List[Detection], NormalizationStats]:
        """
        Normalize every row of a page, in detector order.

        Returns:
            Kept detections and the filtering counts for the page
        """
        from .ocr_text import image_placeholder, unavailable_placeholder

        text_for = text_for or self.text_for
        stats = NormalizationStats()
        detections = []
        page_width, page_height = page_size
        if page_width <= 0 or page_height <= 0:
            logger.warning(f"Page {page_number} has zero size {page_size}, dropping its detections")

        for raw in rows:
            stats.raw += 1
            raw = RawDetection(*raw)
            if raw.score < self.confidence_threshold:
                stats.below_threshold += 1
                continue
            if page_width <= 0 or page_height <= 0:
                stats.zero_size_page += 1
                continue

            detection = normalize_detection(
                raw,
                scale,
                page_size,
                page_number,
                index=len(detections) + 1,
                confidence_threshold=self.confidence_threshold
            )
            if detection is None:
                stats.degenerate += 1
                logger.debug(
                    f"Dropped degenerate box on page {page_number}: {tuple(raw[:4])}"
                )
                continue

            if detection.label == LayoutClass.UNKNOWN.value:
                stats.unknown_labels += 1
                logger.debug(f"Unmapped class id {raw.class_id} on page {page_number}")

            if detection.label in IMAGE_ONLY_LABELS:
                detection.extracted_text = image_placeholder(detection.label)
            elif text_for is not None:
                detection.extracted_text = text_for(detection.bbox, detection.label)
            else:
                detection.extracted_text = unavailable_placeholder(detection.label)

            detections.append(detection)

        stats.kept = len(detections)
        logger.info(
            f"Page {page_number}: kept {stats.kept}/{stats.raw} detections "
            f"(threshold {self.confidence_threshold:.2f})"
        )
        return detections, stats


# ============================================================================
# Reading Order
# ============================================================================

def compare_reading_position(
    a: Detection,
    b: Detection,
    row_tolerance: int = ROW_TOLERANCE
) -> int:
    """Row-major comparison; centers within `row_tolerance` share a row."""
    dy = a.center[1] - b.center[1]
    if abs(dy) > row_tolerance:
        return dy
    return a.center[0] - b.center[0]


def assign_reading_order(
    detections: List[Detection],
    row_tolerance: int = ROW_TOLERANCE
) -> List[Detection]:
    """
    Sort one page's detections into reading order and number them 1..N.

    Rows are not clustered into columns: a two-column page is read across
    both columns line by line.

    Args:
        detections: Detections of a single page
        row_tolerance: Max vertical center distance (px) for the same row

    Returns:
        The detections in reading order
    """
    ordered = sorted(
        detections,
        key=functools.cmp_to_key(
            lambda a, b: compare_reading_position(a, b, row_tolerance)
        )
    )

    for i, detection in enumerate(ordered, 1):
        detection.reading_order = i

    return ordered
