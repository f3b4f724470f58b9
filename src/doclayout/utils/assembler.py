"""
Document assembler module for document structuring.

Provides:
- Page result data model
- Flat, grouped, per-page and priority views of the detections
- JSON envelope generation
- Run metadata calculation
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .hierarchy import HierarchyBuilder, StructureError, forest_to_dicts
from .layout import Detection, LayoutClass
from .ocr_text import has_extracted_text

logger = logging.getLogger(__name__)


# label -> (suggestion key, priority, processing note)
OCR_PRIORITIES: "OrderedDict[str, tuple]" = OrderedDict([
    (LayoutClass.TEXT.value, ("textElements", "high", None)),
    (LayoutClass.TITLE.value, ("titleElements", "highest", None)),
    (LayoutClass.TABLE.value, (
        "tableElements", "high",
        "Use table-specific OCR for better structure recognition"
    )),
    (LayoutClass.LIST_ITEM.value, ("listElements", "medium", None)),
])

FILTER_COUNTS = ("below_threshold", "zero_size_page", "degenerate", "unknown_labels")

OUTPUT_KEYS = (
    "metadata",
    "documentStructure",
    "allDetections",
    "pages",
    "ocrProcessingSuggestions",
)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class PageResult:
    """Detections of one processed page plus its page-level context."""
    page_number: int
    image_width: int
    image_height: int
    detections: List[Detection] = field(default_factory=list)
    processing_time: float = 0.0
    source_image_path: Optional[str] = None
    annotated_path: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def detection_dicts(self) -> List[Dict[str, Any]]:
        """Page detections in reading order, each tagged with the page number."""
        records = []
        for detection in sorted(self.detections, key=lambda d: d.reading_order or 0):
            record = detection.to_dict()
            record["pageNumber"] = self.page_number
            records.append(record)
        return records

    def enriched_dicts(self) -> List[Dict[str, Any]]:
        """Page detections with page and image context, for the flat view."""
        records = []
        for record in self.detection_dicts():
            record.update({
                "sourceImagePath": self.source_image_path,
                "annotatedImagePath": self.annotated_path,
                "pageWidth": self.image_width,
                "pageHeight": self.image_height,
            })
            records.append(record)
        return records

    def to_dict(self) -> Dict[str, Any]:
        detections = self.detection_dicts()
        return {
            "pageNumber": self.page_number,
            "processingTime": self.processing_time,
            "sourceImagePath": self.source_image_path,
            "annotatedImagePath": self.annotated_path,
            "imageWidth": self.image_width,
            "imageHeight": self.image_height,
            "detectionsCount": len(detections),
            "detections": detections,
        }


# ============================================================================
# Views
# ============================================================================

def group_by_label(records: List[Dict[str, Any]]) -> "OrderedDict[str, List[Dict[str, Any]]]":
    """Partition flat records by label, labels in order of first appearance."""
    groups: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
    for record in records:
        groups.setdefault(record["label"], []).append(record)
    return groups


def build_ocr_suggestions(
    groups: Dict[str, List[Dict[str, Any]]]
) -> Dict[str, List[Dict[str, Any]]]:
    """Priority-ranked re-processing targets; every key is always present."""
    suggestions = {}
    for label, (key, priority, note) in OCR_PRIORITIES.items():
        items = []
        for record in groups.get(label, []):
            item = {
                "id": record["id"],
                "pageNumber": record["pageNumber"],
                "bbox": list(record["bbox"]),
                "bbox_normalized": list(record["bbox_normalized"]),
                "priority": priority,
            }
            if note:
                item["processingNote"] = note
            items.append(item)
        suggestions[key] = items
    return suggestions


# ============================================================================
# Export Assembler
# ============================================================================

class ExportAssembler:
    """
    Assembles the output artifact of a run.

    Works on finalized page results and never mutates them: every view
    is built from fresh dicts.
    """

    def __init__(
        self,
        confidence_threshold: float = 0.5,
        source_path: Optional[str] = None,
        hierarchy_builder: Optional[HierarchyBuilder] = None
    ):
        self.confidence_threshold = confidence_threshold
        self.source_path = source_path
        self.hierarchy_builder = hierarchy_builder or HierarchyBuilder()

    def assemble(
        self,
        pages: List[PageResult],
        total_time: float = 0.0,
        processed_at: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Build the JSON document for a run.

        Args:
            pages: Processed pages, any order
            total_time: Wall-clock duration of the run in seconds
            processed_at: ISO timestamp, defaults to now (UTC)

        Returns:
            Dict with metadata, documentStructure, allDetections, pages
            and ocrProcessingSuggestions

        Raises:
            StructureError: If pages or detections are inconsistent
        """
        pages = sorted(pages, key=lambda p: p.page_number)
        self._check_pages(pages)

        all_detections = [d for page in pages for d in page.detections]
        forest = self.hierarchy_builder.build(all_detections)

        flat = [record for page in pages for record in page.enriched_dicts()]
        groups = group_by_label(flat)

        output = OrderedDict()
        output["metadata"] = self.build_metadata(
            pages, flat, groups, total_time, processed_at
        )
        output["documentStructure"] = forest_to_dicts(forest)
        output["allDetections"] = flat
        output["pages"] = [page.to_dict() for page in pages]
        output["ocrProcessingSuggestions"] = build_ocr_suggestions(groups)

        logger.info(
            f"Assembled {len(flat)} detections across {len(pages)} pages "
            f"into {len(forest)} top-level sections"
        )
        return output

    def build_metadata(
        self,
        pages: List[PageResult],
        flat: List[Dict[str, Any]],
        groups: Dict[str, List[Dict[str, Any]]],
        total_time: float,
        processed_at: Optional[str] = None
    ) -> Dict[str, Any]:
        texts = [record["extractedText"] for record in flat]
        successful = sum(1 for t in texts if has_extracted_text(t))

        # rows dropped or relabelled while normalizing, summed over pages
        filtering = {key: 0 for key in FILTER_COUNTS}
        for page in pages:
            counts = page.metadata.get("normalization", {})
            for key in FILTER_COUNTS:
                filtering[key] += counts.get(key, 0)

        return {
            "totalPages": len(pages),
            "totalDetections": len(flat),
            "processingTime": round(total_time, 2),
            "averageTimePerPage": round(total_time / len(pages), 2) if pages else 0.0,
            "confidence_threshold": self.confidence_threshold,
            "processedAt": processed_at or datetime.now(timezone.utc).isoformat(),
            "pdfPath": self.source_path,
            "elementTypeCounts": {label: len(items) for label, items in groups.items()},
            "filteredDetections": filtering,
            "textExtraction": {
                "successful": successful,
                "total": len(texts),
                "successRate": round(successful / len(texts), 3) if texts else 0.0,
            },
        }

    def _check_pages(self, pages: List[PageResult]) -> None:
        seen = set()
        for page in pages:
            if page.page_number in seen:
                raise StructureError(f"Page {page.page_number} appears more than once")
            seen.add(page.page_number)

            for detection in page.detections:
                if detection.page_number != page.page_number:
                    raise StructureError(
                        f"Detection {detection.id!r} belongs to page "
                        f"{detection.page_number}, found on page {page.page_number}"
                    )

            # reading order must be 1..N on every page
            orders = sorted(d.reading_order or 0 for d in page.detections)
            if orders != list(range(1, len(page.detections) + 1)):
                raise StructureError(
                    f"Reading order on page {page.page_number} is not 1..{len(page.detections)}"
                )
