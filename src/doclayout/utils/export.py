"""
Export module for document structuring.

Provides:
- CSV summary of the flat detection view
- JSON artifact writing
- Multi-file export of a run
"""

import csv
import io
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from .io import save_json

logger = logging.getLogger(__name__)


CSV_COLUMNS = [
    ("Page", lambda r: r["pageNumber"]),
    ("Element_Type", lambda r: r["label"]),
    ("Confidence", lambda r: r["confidence"]),
    ("X_Min", lambda r: r["bbox"][0]),
    ("Y_Min", lambda r: r["bbox"][1]),
    ("X_Max", lambda r: r["bbox"][2]),
    ("Y_Max", lambda r: r["bbox"][3]),
    ("Width", lambda r: r["width"]),
    ("Height", lambda r: r["height"]),
    ("Area", lambda r: r["area"]),
    ("Reading_Order", lambda r: r["reading_order"]),
]

CSV_HEADER = [name for name, _ in CSV_COLUMNS]


# ============================================================================
# CSV
# ============================================================================

def detection_row(record: Dict[str, Any]) -> List[Any]:
    return [getter(record) for _, getter in CSV_COLUMNS]


def detections_to_csv(records: List[Dict[str, Any]]) -> str:
    """Render flat detection records as CSV text (header first)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for record in records:
        writer.writerow(detection_row(record))
    return buffer.getvalue()


class CsvExporter:
    """Export the flat detection view to CSV."""

    def export(
        self,
        document: Dict[str, Any],
        output_path: Union[str, Path]
    ) -> Path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8', newline='') as f:
            f.write(detections_to_csv(document["allDetections"]))

        logger.info(f"CSV summary saved to: {output_path}")
        return output_path


class JsonExporter:
    """Export the full artifact to JSON."""

    def __init__(self, indent: int = 2):
        self.indent = indent

    def export(
        self,
        document: Dict[str, Any],
        output_path: Union[str, Path]
    ) -> Path:
        path = save_json(document, output_path, indent=self.indent)
        logger.info(f"Hierarchical JSON saved to: {path}")
        return path


# ============================================================================
# Multi-File Exporter
# ============================================================================

class DocumentExporter:
    """Convenience class for writing every output file of a run."""

    def __init__(
        self,
        output_dir: Union[str, Path],
        json_name: str = "document_layout_analysis.json",
        csv_name: str = "detections_summary.csv",
        indent: int = 2
    ):
        self.output_dir = Path(output_dir)
        self.json_name = json_name
        self.csv_name = csv_name

        self.json_exporter = JsonExporter(indent=indent)
        self.csv_exporter = CsvExporter()

    def export(self, document: Dict[str, Any]) -> Dict[str, Path]:
        """
        Write the JSON artifact and the CSV summary.

        Returns:
            Dictionary mapping format to output path
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)

        return {
            "json": self.json_exporter.export(document, self.output_dir / self.json_name),
            "csv": self.csv_exporter.export(document, self.output_dir / self.csv_name),
        }
