"""
Hierarchy module for document structuring.

Builds the heading tree of a document from its ordered detections:
headings open scopes keyed on their level, content lands in the innermost
open scope.
"""

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .layout import LAYOUT_LABELS, Detection, LayoutClass
from .ocr_text import has_extracted_text

logger = logging.getLogger(__name__)


HEADING_LEVELS: "OrderedDict[str, int]" = OrderedDict([
    (LayoutClass.TITLE.value, 1),
    (LayoutClass.SECTION_HEADER.value, 2),
    (LayoutClass.PAGE_HEADER.value, 3),
    (LayoutClass.CAPTION.value, 4),
])

DEFAULT_SECTION_LEVEL = 1


class StructureError(ValueError):
    """Input that would make the document structure invalid."""


def validate_heading_levels(levels: Mapping[str, int]) -> None:
    """Check that a label -> level table only holds layout labels and positive ints."""
    for label, level in levels.items():
        if label not in LAYOUT_LABELS:
            raise StructureError(f"Unknown layout label in heading levels: {label!r}")
        if isinstance(level, bool) or not isinstance(level, int) or level < 1:
            raise StructureError(f"Heading level for {label!r} must be a positive int, got {level!r}")


def content_type(label: str) -> str:
    """Node type for a content label, e.g. 'List-item' -> 'list_item'."""
    return re.sub(r"[-\s]+", "_", label.strip().lower())


def heading_title(detection: Detection) -> str:
    if has_extracted_text(detection.extracted_text):
        return detection.extracted_text
    return f"{detection.label} (Page {detection.page_number})"


def content_text(detection: Detection) -> str:
    if has_extracted_text(detection.extracted_text):
        return detection.extracted_text
    return f"{detection.label} content (Page {detection.page_number})"


# ============================================================================
# Nodes
# ============================================================================

@dataclass
class ContentNode:
    """A non-heading detection placed in the tree."""
    id: str
    type: str
    content: str
    bbox: List[int]
    bbox_normalized: List[float]
    page: int
    confidence: float
    width: int
    height: int
    area: int
    reading_order: int

    @classmethod
    def from_detection(cls, detection: Detection) -> 'ContentNode':
        return cls(
            id=detection.id,
            type=content_type(detection.label),
            content=content_text(detection),
            bbox=detection.bbox.to_list(),
            bbox_normalized=list(detection.bbox_normalized),
            page=detection.page_number,
            confidence=detection.confidence,
            width=detection.width,
            height=detection.height,
            area=detection.area,
            reading_order=detection.reading_order,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "content": self.content,
            "bbox": list(self.bbox),
            "bbox_normalized": list(self.bbox_normalized),
            "page": self.page,
            "confidence": self.confidence,
            "width": self.width,
            "height": self.height,
            "area": self.area,
            "reading_order": self.reading_order,
        }


@dataclass
class HeadingNode:
    """A heading scope; owns its children in reading order."""
    id: str
    title: str
    level: int
    page: int
    bbox: Optional[List[int]] = None
    bbox_normalized: Optional[List[float]] = None
    confidence: Optional[float] = None
    children: List[Union['HeadingNode', ContentNode]] = field(default_factory=list)
    synthetic: bool = False

    @classmethod
    def from_detection(cls, detection: Detection, level: int) -> 'HeadingNode':
        return cls(
            id=detection.id,
            title=heading_title(detection),
            level=level,
            page=detection.page_number,
            bbox=detection.bbox.to_list(),
            bbox_normalized=list(detection.bbox_normalized),
            confidence=detection.confidence,
        )

    @classmethod
    def default_section(cls, page_number: int) -> 'HeadingNode':
        return cls(
            id=f"default_section_page_{page_number}",
            title=f"Content (Page {page_number})",
            level=DEFAULT_SECTION_LEVEL,
            page=page_number,
            synthetic=True,
        )

    def append(self, node: Union['HeadingNode', ContentNode]) -> None:
        self.children.append(node)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "title": self.title,
            "level": f"H{self.level}",
            "page": self.page,
        }
        if not self.synthetic:
            result["bbox"] = list(self.bbox) if self.bbox is not None else None
            result["bbox_normalized"] = (
                list(self.bbox_normalized) if self.bbox_normalized is not None else None
            )
            result["confidence"] = self.confidence
        result["children"] = [child.to_dict() for child in self.children]
        return result


# ============================================================================
# Hierarchy Builder
# ============================================================================

def order_detections(detections: Iterable[Detection]) -> List[Detection]:
    """
    Sort detections by (page, reading order).

    Raises:
        StructureError: If a detection lacks its page or reading order, or
            two detections share the same position
    """
    detections = list(detections)
    for detection in detections:
        if not isinstance(detection.page_number, int) or detection.page_number < 1:
            raise StructureError(f"Detection {detection.id!r} has no valid page number")
        if not isinstance(detection.reading_order, int) or detection.reading_order < 1:
            raise StructureError(f"Detection {detection.id!r} has no reading order")
        if not detection.label:
            raise StructureError(f"Detection {detection.id!r} has no label")

    ordered = sorted(detections, key=lambda d: (d.page_number, d.reading_order))
    for prev, curr in zip(ordered, ordered[1:]):
        if (prev.page_number, prev.reading_order) == (curr.page_number, curr.reading_order):
            raise StructureError(
                f"Detections {prev.id!r} and {curr.id!r} share page {curr.page_number} "
                f"reading order {curr.reading_order}"
            )
    return ordered


def _close_stale_default(stack: List[HeadingNode], page_number: int) -> None:
    # default sections are scoped to their own page
    if stack and stack[-1].synthetic and stack[-1].page != page_number:
        stack.pop()


class HierarchyBuilder:
    """
    Builds the heading forest with an explicit stack of open headings.

    The stack runs from the outermost heading (bottom) to the innermost
    (top); levels strictly increase going up. A heading closes every open
    scope of the same or a deeper level. Content that arrives with no open
    heading goes into a default section for its page; a default section is
    never carried over to a later page.
    """

    def __init__(
        self,
        heading_levels: Optional[Mapping[str, int]] = None,
        heading_labels: Optional[Iterable[str]] = None
    ):
        self.heading_levels = dict(HEADING_LEVELS if heading_levels is None else heading_levels)
        validate_heading_levels(self.heading_levels)
        self.heading_labels = frozenset(
            self.heading_levels if heading_labels is None else heading_labels
        )

    def level_for(self, label: str) -> Optional[int]:
        """Heading level of `label`, None for content labels."""
        if label not in self.heading_labels:
            return None
        try:
            return self.heading_levels[label]
        except KeyError:
            raise StructureError(f"Heading label {label!r} has no heading level")

    def build(self, detections: Iterable[Detection]) -> List[HeadingNode]:
        """
        Build the forest for a run.

        Args:
            detections: All detections of the run

        Returns:
            Top-level heading nodes in document order
        """
        forest: List[HeadingNode] = []
        stack: List[HeadingNode] = []

        for detection in order_detections(detections):
            level = self.level_for(detection.label)

            _close_stale_default(stack, detection.page_number)

            if level is not None:
                node = HeadingNode.from_detection(detection, level)
                while stack and stack[-1].level >= level:
                    stack.pop()
                _close_stale_default(stack, detection.page_number)
                if stack:
                    stack[-1].append(node)
                else:
                    forest.append(node)
                stack.append(node)
                continue

            node = ContentNode.from_detection(detection)
            if not stack:
                section = HeadingNode.default_section(detection.page_number)
                forest.append(section)
                stack.append(section)
            stack[-1].append(node)

        logger.info(f"Built hierarchy with {len(forest)} top-level sections")
        return forest


def build_hierarchy(
    detections: Iterable[Detection],
    heading_levels: Optional[Mapping[str, int]] = None
) -> List[HeadingNode]:
    """Build the heading forest with the default heading levels."""
    return HierarchyBuilder(heading_levels=heading_levels).build(detections)


def forest_to_dicts(forest: List[HeadingNode]) -> List[Dict[str, Any]]:
    return [node.to_dict() for node in forest]
