"""
Tests for output file writing.
"""

import csv
import json
import numpy as np
import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from doclayout.utils.export import (
    CSV_HEADER,
    DocumentExporter,
    detection_row,
    detections_to_csv,
)
from doclayout.utils.io import (
    cleanup_dir,
    create_temp_dir,
    detect_input_type,
    page_span,
    save_json,
)


def make_record(page=1, label="Text", order=1, bbox=(10, 40, 110, 90), confidence=0.8):
    x1, y1, x2, y2 = bbox
    return {
        "id": f"page{page}_detection{order}",
        "bbox": list(bbox),
        "bbox_normalized": [0.01, 0.05, 0.11, 0.1125],
        "label": label,
        "confidence": confidence,
        "area": (x2 - x1) * (y2 - y1),
        "center": [(x1 + x2) // 2, (y1 + y2) // 2],
        "width": x2 - x1,
        "height": y2 - y1,
        "extractedText": "body",
        "reading_order": order,
        "pageNumber": page,
    }


@pytest.fixture
def document():
    return {
        "metadata": {"totalPages": 2, "totalDetections": 2},
        "documentStructure": [],
        "allDetections": [
            make_record(page=1, label="Title", order=1, bbox=(10, 10, 100, 30), confidence=0.95),
            make_record(page=2, label="Table", order=1),
        ],
        "pages": [],
        "ocrProcessingSuggestions": {},
    }


class TestCsv:
    """Test the CSV summary."""

    def test_header(self):
        """Test column names and order."""
        assert CSV_HEADER == [
            "Page", "Element_Type", "Confidence", "X_Min", "Y_Min", "X_Max",
            "Y_Max", "Width", "Height", "Area", "Reading_Order",
        ]

    def test_row(self):
        """Test one record as a CSV row."""
        row = detection_row(make_record(page=3, order=2))

        assert row == [3, "Text", 0.8, 10, 40, 110, 90, 100, 50, 5000, 2]

    def test_render(self, document):
        """Test the rendered CSV text."""
        text = detections_to_csv(document["allDetections"])
        lines = text.splitlines()

        assert lines[0] == ",".join(CSV_HEADER)
        assert lines[1] == "1,Title,0.95,10,10,100,30,90,20,1800,1"
        assert len(lines) == 3

    def test_header_only_for_no_records(self):
        """Test an empty run still has a header."""
        assert detections_to_csv([]) == ",".join(CSV_HEADER) + "\n"


class TestDocumentExporter:
    """Test the multi-file exporter."""

    def test_writes_both_files(self, document, tmp_path):
        """Test JSON and CSV files in the output directory."""
        exporter = DocumentExporter(tmp_path / "out")

        paths = exporter.export(document)

        assert paths["json"] == tmp_path / "out" / "document_layout_analysis.json"
        assert paths["csv"] == tmp_path / "out" / "detections_summary.csv"
        assert json.loads(paths["json"].read_text(encoding="utf-8")) == document

        with open(paths["csv"], newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert rows[0] == CSV_HEADER
        assert [r[1] for r in rows[1:]] == ["Title", "Table"]

    def test_custom_names(self, document, tmp_path):
        """Test configured file names."""
        exporter = DocumentExporter(tmp_path, json_name="a.json", csv_name="b.csv")

        paths = exporter.export(document)

        assert paths["json"].name == "a.json"
        assert paths["csv"].name == "b.csv"


class TestIO:
    """Test I/O helpers."""

    def test_numpy_values_serialize(self, tmp_path):
        """Test numpy scalars and arrays in JSON output."""
        path = save_json(
            {"count": np.int64(3), "score": np.float32(0.5), "box": np.array([1, 2])},
            tmp_path / "data.json"
        )

        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        assert data == {"count": 3, "score": 0.5, "box": [1, 2]}

    @pytest.mark.parametrize("pages,expected", [
        (None, (None, None)),
        ([], (None, None)),
        ([3], (3, 3)),
        ([5, 2, 4], (2, 5)),
    ])
    def test_page_span(self, pages, expected):
        """Test the rasterization window for a page selection."""
        assert page_span(pages) == expected

    def test_detect_input_type(self, tmp_path):
        """Test input type detection by suffix."""
        pdf = tmp_path / "doc.pdf"
        pdf.write_bytes(b"%PDF-1.4")
        png = tmp_path / "page.PNG"
        png.write_bytes(b"")
        txt = tmp_path / "notes.txt"
        txt.write_text("x")

        assert detect_input_type(pdf) == "pdf"
        assert detect_input_type(png) == "image"
        assert detect_input_type(txt) == "unknown"
        assert detect_input_type(tmp_path / "missing.pdf") == "unknown"

    def test_cleanup_refuses_foreign_dir(self, tmp_path):
        """Test that only our temp directories are removed by default."""
        foreign = tmp_path / "keep"
        foreign.mkdir()

        assert cleanup_dir(foreign) is False
        assert foreign.exists()

    def test_cleanup_temp_dir(self):
        """Test removing a created temp directory."""
        temp_dir = create_temp_dir()
        (temp_dir / "page_1.png").write_bytes(b"")

        assert cleanup_dir(temp_dir) is True
        assert not temp_dir.exists()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
