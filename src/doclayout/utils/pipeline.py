"""
Pipeline orchestration for document structuring.

Coordinates one run:
- Page rasterization
- Layout detection
- Detection normalization and text extraction
- Reading order
- Annotated overlays
- Export assembly and file output
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from ..config import PipelineConfig, get_config
from .assembler import ExportAssembler, PageResult
from .hierarchy import HierarchyBuilder
from .layout import DetectionNormalizer, assign_reading_order
from .ocr_text import has_extracted_text

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Everything a run produced."""
    document: Dict[str, Any]
    pages: List[PageResult]
    output_paths: Dict[str, Path] = field(default_factory=dict)
    processing_time: float = 0.0
    ocr_stats: Dict[str, int] = field(default_factory=dict)

    @property
    def total_detections(self) -> int:
        return self.document["metadata"]["totalDetections"]


class LayoutPipeline:
    """
    Runs layout analysis over a PDF or page image.

    Collaborators (detector, text extractor) are created lazily from the
    configuration unless passed in.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        detector: Optional[Any] = None,
        text_extractor: Optional[Any] = None,
        output_dir: Optional[Union[str, Path]] = None
    ):
        self.config = config or get_config()
        self.output_dir = Path(output_dir or self.config.output.output_dir)

        self._detector = detector
        self._text_extractor = text_extractor
        self._normalizer = None
        self._hierarchy_builder = None

    @property
    def detector(self):
        if self._detector is None:
            from .detector import LayoutModel
            cfg = self.config.detection
            self._detector = LayoutModel(
                model_repo=cfg.model_repo,
                model_file=cfg.model_file,
                model_path=cfg.model_path,
                input_size=cfg.input_size,
                use_gpu=self.config.use_gpu
            )
        return self._detector

    @property
    def text_extractor(self):
        if self._text_extractor is None:
            from .ocr_text import TextExtractor
            cfg = self.config.ocr
            self._text_extractor = TextExtractor(
                language=cfg.language,
                enabled=cfg.enabled,
                max_retries=cfg.max_retries,
                retry_delay=cfg.retry_delay,
                min_region_size=cfg.min_region_size
            )
        return self._text_extractor

    @property
    def normalizer(self) -> DetectionNormalizer:
        if self._normalizer is None:
            self._normalizer = DetectionNormalizer(
                confidence_threshold=self.config.detection.confidence_threshold
            )
        return self._normalizer

    @property
    def hierarchy_builder(self) -> HierarchyBuilder:
        if self._hierarchy_builder is None:
            self._hierarchy_builder = HierarchyBuilder(
                heading_levels=self.config.detection.heading_levels
            )
        return self._hierarchy_builder

    @property
    def annotated_dir(self) -> Path:
        return self.output_dir / self.config.output.annotated_dir

    def process_page(
        self,
        image: np.ndarray,
        page_number: int = 1,
        source_image_path: Optional[str] = None
    ) -> PageResult:
        """
        Process a single page image.

        Args:
            image: Page image (BGR)
            page_number: Page number (1-indexed)
            source_image_path: Where the page image lives on disk, if anywhere

        Returns:
            PageResult with detections in reading order
        """
        start_time = time.time()
        h, w = image.shape[:2]
        logger.info(f"Processing page {page_number} ({w}x{h})")

        output = self.detector.predict(image)
        extractor = self.text_extractor

        detections, stats = self.normalizer.normalize_page(
            output.rows,
            output.scale,
            output.page_size,
            page_number,
            text_for=lambda bbox, label: extractor.extract(image, bbox, label)
        )
        detections = assign_reading_order(
            detections,
            row_tolerance=self.config.detection.row_tolerance
        )

        annotated_path = None
        if self.config.output.annotate:
            from .images import draw_annotations
            from .io import save_image

            annotated_path = str(save_image(
                draw_annotations(image, detections),
                self.annotated_dir / f"page_{page_number}_annotated.png"
            ))

        elapsed = round(time.time() - start_time, 2)
        with_text = sum(1 for d in detections if has_extracted_text(d.extracted_text))
        logger.info(
            f"Page {page_number} processed in {elapsed:.2f}s - "
            f"{len(detections)} elements, {with_text} with text"
        )

        return PageResult(
            page_number=page_number,
            image_width=w,
            image_height=h,
            detections=detections,
            processing_time=elapsed,
            source_image_path=source_image_path,
            annotated_path=annotated_path,
            metadata={"normalization": stats.to_dict()}
        )

    def process_images(
        self,
        images: List[np.ndarray],
        source_file: Optional[str] = None,
        image_paths: Optional[List[Optional[str]]] = None,
        page_numbers: Optional[List[int]] = None
    ) -> RunResult:
        """
        Process page images and assemble the output document.

        Nothing is written here; a structural error aborts before any output.
        """
        start_time = time.time()
        page_numbers = page_numbers or list(range(1, len(images) + 1))
        image_paths = image_paths or [None] * len(images)

        pages = [
            self.process_page(image, page_number=number, source_image_path=path)
            for image, number, path in zip(images, page_numbers, image_paths)
        ]

        elapsed = time.time() - start_time
        assembler = ExportAssembler(
            confidence_threshold=self.config.detection.confidence_threshold,
            source_path=source_file,
            hierarchy_builder=self.hierarchy_builder
        )
        document = assembler.assemble(pages, total_time=elapsed)

        ocr_stats = dict(getattr(self.text_extractor, "stats", {}))
        if ocr_stats:
            logger.info(
                f"OCR: {ocr_stats['succeeded']}/{ocr_stats['attempted']} regions read, "
                f"{ocr_stats['failed']} failed after retries"
            )
        return RunResult(
            document=document,
            pages=pages,
            processing_time=elapsed,
            ocr_stats=ocr_stats
        )

    def write(self, result: RunResult) -> Dict[str, Path]:
        """Write the JSON artifact and CSV summary of a run."""
        from .export import DocumentExporter

        exporter = DocumentExporter(
            self.output_dir,
            json_name=self.config.output.json_name,
            csv_name=self.config.output.csv_name,
            indent=self.config.output.json_indent
        )
        result.output_paths = exporter.export(result.document)
        if self.config.output.annotate:
            result.output_paths["annotated"] = self.annotated_dir
        return result.output_paths

    def run(
        self,
        input_path: Union[str, Path],
        pages: Optional[List[int]] = None
    ) -> RunResult:
        """
        Run the full pipeline on a PDF or a single page image.

        Args:
            input_path: PDF or image file
            pages: 1-indexed page numbers to keep (None = all)

        Returns:
            RunResult with the written output paths
        """
        from .io import cleanup_dir, create_temp_dir, detect_input_type, load_image, load_pdf, save_image

        input_path = Path(input_path)
        if not input_path.exists():
            raise FileNotFoundError(f"Input file not found: {input_path}")
        if pages is not None and not pages:
            raise ValueError("Empty page selection; pass None to process every page")

        input_type = detect_input_type(input_path)
        logger.info(f"Input type detected: {input_type}")

        temp_dir = None
        try:
            if input_type == "pdf":
                numbered = load_pdf(input_path, dpi=self.config.dpi, pages=pages)
                temp_dir = create_temp_dir()
                image_paths = [
                    str(save_image(img, temp_dir / f"page_{number:04d}.png"))
                    for number, img in numbered
                ]
            elif input_type == "image":
                numbered = [(1, load_image(input_path))]
                if pages and 1 not in pages:
                    numbered = []
                image_paths = [str(input_path)] * len(numbered)
            else:
                raise ValueError(f"Unsupported input type: {input_path}")

            if not numbered:
                raise ValueError(f"No pages to process in {input_path}")

            page_numbers = [number for number, _ in numbered]
            images = [img for _, img in numbered]
            if pages:
                logger.info(f"Processing pages: {page_numbers}")

            result = self.process_images(
                images,
                source_file=str(input_path),
                image_paths=image_paths,
                page_numbers=page_numbers
            )
            self.write(result)
            return result
        finally:
            if temp_dir is not None:
                cleanup_dir(temp_dir)
