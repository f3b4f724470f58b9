"""
Configuration and constants for the document structuring pipeline.

This module provides:
- Global configuration settings
- Layout model location
- OCR parameters
- Output file layout
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from .utils.hierarchy import HEADING_LEVELS
from .utils.layout import ROW_TOLERANCE

logger = logging.getLogger("doclayout")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class DetectionConfig:
    """Layout detection and structuring configuration."""
    model_repo: str = "Oblix/yolov10m-doclaynet_ONNX_document-layout-analysis"
    model_file: str = "onnx/model.onnx"
    model_path: Optional[str] = None  # local ONNX file, skips the Hub
    input_size: int = 1024
    confidence_threshold: float = 0.50
    row_tolerance: int = ROW_TOLERANCE  # pixels
    heading_levels: Dict[str, int] = field(default_factory=lambda: dict(HEADING_LEVELS))


@dataclass
class OCRConfig:
    """Region text extraction configuration."""
    enabled: bool = True
    language: str = "eng"  # Tesseract language: eng, fra, deu, spa, ...
    max_retries: int = 2
    retry_delay: float = 1.0  # seconds
    min_region_size: int = 10  # pixels, both sides


@dataclass
class OutputConfig:
    """Output file configuration."""
    output_dir: str = "./output"
    json_name: str = "document_layout_analysis.json"
    csv_name: str = "detections_summary.csv"
    annotated_dir: str = "annotated_frames"
    annotate: bool = True
    json_indent: int = 2


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    ocr: OCRConfig = field(default_factory=OCRConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    # Global settings
    dpi: int = 200
    use_gpu: bool = False
    debug_mode: bool = False


# ============================================================================
# Default Configuration Instance
# ============================================================================

def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1", "true", "yes")


def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()

    if os.environ.get("DOCLAYOUT_CONFIDENCE_THRESHOLD"):
        config.detection.confidence_threshold = float(
            os.environ["DOCLAYOUT_CONFIDENCE_THRESHOLD"]
        )

    if os.environ.get("DOCLAYOUT_ROW_TOLERANCE"):
        config.detection.row_tolerance = int(os.environ["DOCLAYOUT_ROW_TOLERANCE"])

    if os.environ.get("DOCLAYOUT_MODEL_PATH"):
        config.detection.model_path = os.environ["DOCLAYOUT_MODEL_PATH"]

    if os.environ.get("DOCLAYOUT_OCR_LANGUAGE"):
        config.ocr.language = os.environ["DOCLAYOUT_OCR_LANGUAGE"]

    if _env_flag("DOCLAYOUT_DISABLE_OCR"):
        config.ocr.enabled = False

    if os.environ.get("DOCLAYOUT_DPI"):
        config.dpi = int(os.environ["DOCLAYOUT_DPI"])

    if _env_flag("DOCLAYOUT_USE_GPU"):
        config.use_gpu = True

    if _env_flag("DOCLAYOUT_DEBUG"):
        config.debug_mode = True

    return config
