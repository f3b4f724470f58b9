"""
Tests for configuration and command-line options.
"""

import logging
import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from doclayout.cli import build_config, parse_page_range, setup_argparser
from doclayout.config import get_config


ENV_VARS = [
    "DOCLAYOUT_CONFIDENCE_THRESHOLD",
    "DOCLAYOUT_ROW_TOLERANCE",
    "DOCLAYOUT_MODEL_PATH",
    "DOCLAYOUT_OCR_LANGUAGE",
    "DOCLAYOUT_DISABLE_OCR",
    "DOCLAYOUT_DPI",
    "DOCLAYOUT_USE_GPU",
    "DOCLAYOUT_DEBUG",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestConfig:
    """Test configuration defaults and overrides."""

    def test_defaults(self):
        """Test default values."""
        config = get_config()

        assert config.detection.confidence_threshold == 0.5
        assert config.detection.row_tolerance == 20
        assert config.detection.heading_levels == {
            "Title": 1, "Section-header": 2, "Page-header": 3, "Caption": 4
        }
        assert config.ocr.enabled is True
        assert config.ocr.language == "eng"
        assert config.output.json_name == "document_layout_analysis.json"
        assert config.output.csv_name == "detections_summary.csv"
        assert config.dpi == 200
        assert config.use_gpu is False

    def test_heading_levels_not_shared(self):
        """Test that each config gets its own level table."""
        first = get_config()
        first.detection.heading_levels["Title"] = 9

        assert get_config().detection.heading_levels["Title"] == 1

    def test_environment_overrides(self, monkeypatch):
        """Test environment variable overrides."""
        monkeypatch.setenv("DOCLAYOUT_CONFIDENCE_THRESHOLD", "0.7")
        monkeypatch.setenv("DOCLAYOUT_ROW_TOLERANCE", "35")
        monkeypatch.setenv("DOCLAYOUT_OCR_LANGUAGE", "deu")
        monkeypatch.setenv("DOCLAYOUT_DISABLE_OCR", "true")
        monkeypatch.setenv("DOCLAYOUT_DPI", "300")
        monkeypatch.setenv("DOCLAYOUT_USE_GPU", "1")

        config = get_config()

        assert config.detection.confidence_threshold == 0.7
        assert config.detection.row_tolerance == 35
        assert config.ocr.language == "deu"
        assert config.ocr.enabled is False
        assert config.dpi == 300
        assert config.use_gpu is True

    def test_flag_values(self, monkeypatch):
        """Test that only truthy strings enable a flag."""
        monkeypatch.setenv("DOCLAYOUT_DISABLE_OCR", "no")

        assert get_config().ocr.enabled is True


class TestCommandLine:
    """Test argument handling."""

    @pytest.mark.parametrize("text,expected", [
        ("3", [3]),
        ("1-3", [1, 2, 3]),
        ("1,3,5", [1, 3, 5]),
        ("4-5, 1", [1, 4, 5]),
        ("2,2,1-2", [1, 2]),
        ("0-2", [1, 2]),
    ])
    def test_parse_page_range(self, text, expected):
        """Test page range parsing."""
        assert parse_page_range(text) == expected

    def test_bad_page_range(self):
        """Test a malformed page range."""
        with pytest.raises(ValueError):
            parse_page_range("one-two")

    @pytest.mark.parametrize("text", ["5-3", "0", ","])
    def test_empty_page_range(self, text):
        """Test a range that selects no pages."""
        with pytest.raises(ValueError):
            parse_page_range(text)

    def test_empty_page_range_exits(self, tmp_path):
        """Test that a range selecting no pages gives exit code 1."""
        from doclayout.cli import main

        page = tmp_path / "page.png"
        page.write_bytes(b"")

        with pytest.raises(SystemExit) as exc:
            main([str(page), "--pages", "5-3", "--quiet", "--no-ocr"])

        assert exc.value.code == 1

    def test_build_config(self, tmp_path):
        """Test command-line overrides."""
        args = setup_argparser().parse_args([
            "doc.pdf",
            "--output", str(tmp_path),
            "--confidence-threshold", "0.6",
            "--row-tolerance", "10",
            "--no-ocr",
            "--no-annotate",
        ])

        config = build_config(args)

        assert config.output.output_dir == str(tmp_path)
        assert config.detection.confidence_threshold == 0.6
        assert config.detection.row_tolerance == 10
        assert config.ocr.enabled is False
        assert config.output.annotate is False

    def test_command_line_beats_environment(self, monkeypatch):
        """Test precedence of command-line values."""
        monkeypatch.setenv("DOCLAYOUT_CONFIDENCE_THRESHOLD", "0.7")
        args = setup_argparser().parse_args(["doc.pdf", "--confidence-threshold", "0.3"])

        assert build_config(args).detection.confidence_threshold == 0.3

    def test_missing_input_exits(self, tmp_path):
        """Test that a missing input file gives exit code 1."""
        from doclayout.cli import main

        with pytest.raises(SystemExit) as exc:
            main([str(tmp_path / "missing.pdf"), "--quiet", "--no-ocr"])

        assert exc.value.code == 1

    def test_debug_environment_enables_debug_logging(self, monkeypatch, tmp_path):
        """Test that DOCLAYOUT_DEBUG turns on debug logging for a run."""
        from doclayout.cli import main

        monkeypatch.setenv("DOCLAYOUT_DEBUG", "1")
        root = logging.getLogger()
        monkeypatch.setattr(root, "level", root.level)

        with pytest.raises(SystemExit):
            main([str(tmp_path / "missing.pdf"), "--no-ocr"])

        assert root.level == logging.DEBUG


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
