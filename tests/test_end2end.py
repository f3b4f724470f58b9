"""
End-to-end integration tests for the layout pipeline.
"""

import pytest
import numpy as np
import csv
import json
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from doclayout.config import PipelineConfig
from doclayout.utils.detector import DetectorOutput
from doclayout.utils.hierarchy import HierarchyBuilder, StructureError
from doclayout.utils.pipeline import LayoutPipeline


PAGE_ROWS = [
    (100, 50, 700, 100, 0.95, 10),   # Title
    (100, 150, 700, 400, 0.88, 9),   # Text
    (100, 450, 700, 600, 0.80, 8),   # Table
    (750, 450, 950, 600, 0.70, 6),   # Picture
    (100, 650, 700, 700, 0.40, 9),   # Text below threshold
]


class FakeDetector:
    """Detector returning fixed rows in page pixel coordinates."""

    def __init__(self, rows=PAGE_ROWS):
        self.rows = rows
        self.calls = 0

    def predict(self, image):
        self.calls += 1
        h, w = image.shape[:2]
        return DetectorOutput(rows=list(self.rows), scale=(1.0, 1.0), page_size=(w, h))


class FakeExtractor:
    """Text extractor answering with the region label."""

    def __init__(self):
        self.labels = []

    def extract(self, image, bbox, label):
        self.labels.append(label)
        return f"{label} text"


class StaticEngine:
    """OCR engine that reads the same text everywhere."""

    def __init__(self, text):
        self.text = text

    def recognize(self, image):
        return self.text


class TestEndToEnd:
    """End-to-end integration tests."""

    @pytest.fixture
    def page_image(self):
        """A blank 1000x800 page."""
        return np.full((800, 1000, 3), 255, dtype=np.uint8)

    @pytest.fixture
    def pipeline(self, tmp_path):
        return LayoutPipeline(
            config=PipelineConfig(),
            detector=FakeDetector(),
            text_extractor=FakeExtractor(),
            output_dir=tmp_path / "output"
        )

    def test_process_page(self, pipeline, page_image):
        """Test a single page through normalization and reading order."""
        page = pipeline.process_page(page_image, page_number=1)

        assert [d.label for d in page.detections] == ["Title", "Text", "Table", "Picture"]
        assert [d.reading_order for d in page.detections] == [1, 2, 3, 4]
        assert page.detections[0].extracted_text == "Title text"
        assert page.detections[3].extracted_text == "[Picture - image content]"
        assert page.image_width == 1000
        assert page.image_height == 800
        assert page.metadata["normalization"]["below_threshold"] == 1
        assert Path(page.annotated_path).exists()

    def test_pictures_not_sent_to_extractor(self, pipeline, page_image):
        """Test that only text-bearing regions are extracted."""
        pipeline.process_page(page_image)

        assert pipeline.text_extractor.labels == ["Title", "Text", "Table"]

    def test_process_images_writes_nothing(self, pipeline, page_image, tmp_path):
        """Test that assembling a run leaves the output directory alone."""
        pipeline.config.output.annotate = False

        result = pipeline.process_images([page_image, page_image])

        assert result.total_detections == 8
        assert result.output_paths == {}
        assert not (tmp_path / "output").exists()

    def test_document_structure(self, pipeline, page_image):
        """Test the hierarchy of a two-page run."""
        result = pipeline.process_images([page_image, page_image])
        structure = result.document["documentStructure"]

        # Page 2 starts with another title, closing the first
        assert [n["title"] for n in structure] == ["Title text", "Title text"]
        assert [c["type"] for c in structure[0]["children"]] == ["text", "table", "picture"]
        assert structure[1]["page"] == 2

    def test_filtered_detections_in_metadata(self, pipeline, page_image):
        """Test that per-page filtering counts are summed into the metadata."""
        result = pipeline.process_images([page_image, page_image])

        assert result.document["metadata"]["filteredDetections"] == {
            "below_threshold": 2, "zero_size_page": 0, "degenerate": 0, "unknown_labels": 0
        }

    def test_ocr_stats_reported(self, page_image, tmp_path):
        """Test that region OCR counts reach the run result."""
        from doclayout.utils.ocr_text import TextExtractor

        config = PipelineConfig()
        config.output.annotate = False
        pipeline = LayoutPipeline(
            config=config,
            detector=FakeDetector(),
            text_extractor=TextExtractor(engine=StaticEngine("words"), retry_delay=0),
            output_dir=tmp_path
        )

        result = pipeline.process_images([page_image])

        assert result.ocr_stats == {"attempted": 3, "succeeded": 3, "failed": 0}
        assert result.document["allDetections"][0]["extractedText"] == "words"

    def test_run_on_image(self, pipeline, page_image, tmp_path):
        """Test a full run from an image file to output files."""
        import cv2

        image_path = tmp_path / "page.png"
        cv2.imwrite(str(image_path), page_image)

        result = pipeline.run(image_path)

        json_path = tmp_path / "output" / "document_layout_analysis.json"
        csv_path = tmp_path / "output" / "detections_summary.csv"
        annotated = tmp_path / "output" / "annotated_frames" / "page_1_annotated.png"
        assert result.output_paths["json"] == json_path
        assert json_path.exists()
        assert csv_path.exists()
        assert annotated.exists()

        with open(json_path, encoding="utf-8") as f:
            document = json.load(f)
        assert list(document) == [
            "metadata", "documentStructure", "allDetections", "pages", "ocrProcessingSuggestions"
        ]
        assert document["metadata"]["pdfPath"] == str(image_path)
        assert document["metadata"]["totalDetections"] == 4
        assert document["metadata"]["textExtraction"]["successful"] == 3
        assert document["allDetections"][0]["sourceImagePath"] == str(image_path)
        assert all(d["confidence"] >= 0.5 for d in document["allDetections"])

        with open(csv_path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert len(rows) == 5
        assert [r[1] for r in rows[1:]] == ["Title", "Text", "Table", "Picture"]

    def test_run_selected_pages(self, pipeline, page_image, tmp_path):
        """Test that a page filter outside the input leaves nothing to do."""
        import cv2

        image_path = tmp_path / "page.png"
        cv2.imwrite(str(image_path), page_image)

        with pytest.raises(ValueError):
            pipeline.run(image_path, pages=[2])

    def test_run_empty_page_selection(self, pipeline, tmp_path):
        """Test that an empty selection is rejected rather than read as every page."""
        pdf = tmp_path / "doc.pdf"
        pdf.write_bytes(b"%PDF-1.4")

        with pytest.raises(ValueError):
            pipeline.run(pdf, pages=[])

        assert not (tmp_path / "output").exists()

    def test_structure_error_writes_no_artifact(self, pipeline, page_image, tmp_path):
        """Test that a structural failure produces no JSON or CSV."""
        import cv2

        image_path = tmp_path / "page.png"
        cv2.imwrite(str(image_path), page_image)
        pipeline._hierarchy_builder = HierarchyBuilder(
            heading_levels={"Title": 1},
            heading_labels=["Title", "Text"]
        )

        with pytest.raises(StructureError):
            pipeline.run(image_path)

        assert not (tmp_path / "output" / "document_layout_analysis.json").exists()
        assert not (tmp_path / "output" / "detections_summary.csv").exists()

    def test_missing_input(self, pipeline, tmp_path):
        """Test a missing input file."""
        with pytest.raises(FileNotFoundError):
            pipeline.run(tmp_path / "missing.pdf")

    def test_unsupported_input(self, pipeline, tmp_path):
        """Test an input that is neither PDF nor image."""
        path = tmp_path / "notes.txt"
        path.write_text("hello")

        with pytest.raises(ValueError):
            pipeline.run(path)


class TestThreshold:
    """Test the confidence threshold across a run."""

    def test_stricter_threshold(self, tmp_path):
        """Test that raising the threshold drops detections everywhere."""
        config = PipelineConfig()
        config.detection.confidence_threshold = 0.85
        config.output.annotate = False
        pipeline = LayoutPipeline(
            config=config,
            detector=FakeDetector(),
            text_extractor=FakeExtractor(),
            output_dir=tmp_path
        )

        result = pipeline.process_images([np.full((800, 1000, 3), 255, dtype=np.uint8)])

        assert [d["label"] for d in result.document["allDetections"]] == ["Title", "Text"]
        assert result.document["metadata"]["confidence_threshold"] == 0.85

    def test_invalid_threshold(self, tmp_path):
        """Test a threshold outside [0, 1]."""
        config = PipelineConfig()
        config.detection.confidence_threshold = 1.5
        pipeline = LayoutPipeline(config=config, detector=FakeDetector(), output_dir=tmp_path)

        with pytest.raises(ValueError):
            pipeline.normalizer


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
