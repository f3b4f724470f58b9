"""
Utility modules for the document structuring pipeline.
"""

from .io import load_pdf, load_image, save_json, detect_input_type
from .layout import (
    LayoutClass, BoundingBox, Detection, DetectionNormalizer,
    normalize_detection, assign_reading_order, ID2LABEL,
)
from .ocr_text import TextExtractor, OCRResult, is_placeholder, has_extracted_text
from .hierarchy import (
    HierarchyBuilder, HeadingNode, ContentNode, StructureError,
    build_hierarchy, HEADING_LEVELS,
)
from .assembler import ExportAssembler, PageResult
from .export import DocumentExporter, detections_to_csv

__all__ = [
    # IO
    "load_pdf", "load_image", "save_json", "detect_input_type",
    # Layout
    "LayoutClass", "BoundingBox", "Detection", "DetectionNormalizer",
    "normalize_detection", "assign_reading_order", "ID2LABEL",
    # OCR
    "TextExtractor", "OCRResult", "is_placeholder", "has_extracted_text",
    # Hierarchy
    "HierarchyBuilder", "HeadingNode", "ContentNode", "StructureError",
    "build_hierarchy", "HEADING_LEVELS",
    # Assembly
    "ExportAssembler", "PageResult",
    # Export
    "DocumentExporter", "detections_to_csv",
]
