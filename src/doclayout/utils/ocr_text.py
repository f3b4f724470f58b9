"""
Text OCR module for document structuring.

Provides:
- Text extraction from detected regions (Tesseract)
- Retry with delay for failed regions
- Reserved placeholder strings for regions without text
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np

logger = logging.getLogger(__name__)


# ============================================================================
# Placeholders
# ============================================================================

def unavailable_placeholder(label: str) -> str:
    return f"[{label} content - OCR not available]"


def image_placeholder(label: str) -> str:
    return f"[{label} - image content]"


def failed_placeholder(label: str) -> str:
    return f"[{label} - text extraction failed]"


def error_placeholder(label: str) -> str:
    return f"[{label} - OCR error]"


def exhausted_placeholder(label: str) -> str:
    return f"[{label} content (Page)]"


PLACEHOLDER_PATTERNS = [
    re.compile(r"^\[[\w\- ]+ content - OCR not available\]$"),
    re.compile(r"^\[[\w\- ]+ - image content\]$"),
    re.compile(r"^\[[\w\- ]+ - text extraction failed\]$"),
    re.compile(r"^\[[\w\- ]+ - OCR error\]$"),
    re.compile(r"^\[[\w\- ]+ content \(Page\)\]$"),
]

# Placeholders that mean extraction was attempted and did not succeed
_RETRYABLE_PATTERNS = PLACEHOLDER_PATTERNS[2:4]


def is_placeholder(text: Optional[str]) -> bool:
    """True when `text` is one of the reserved extraction placeholders."""
    if not text:
        return False
    return any(p.match(text) for p in PLACEHOLDER_PATTERNS)


def has_extracted_text(text: Optional[str]) -> bool:
    """True when `text` is real recognized text."""
    return bool(text and text.strip()) and not is_placeholder(text)


def clean_text(text: str) -> str:
    """Collapse whitespace runs into single spaces."""
    return re.sub(r"\s+", " ", text or "").strip()


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class OCRResult:
    """Text recognized in one region."""
    text: str
    attempts: int = 1
    engine_used: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


# ============================================================================
# Engines
# ============================================================================

class TesseractEngine:
    """Tesseract OCR engine."""

    def __init__(
        self,
        language: str = "eng",
        config: str = "--oem 3 --psm 6"
    ):
        try:
            import pytesseract
            self.pytesseract = pytesseract
        except ImportError:
            raise ImportError(
                "pytesseract is required. Install with: pip install pytesseract\n"
                "Also ensure Tesseract is installed on your system."
            )

        self.language = language
        self.config = config

    def recognize(self, image: np.ndarray) -> str:
        """Recognize the text of a cropped region (BGR or grayscale)."""
        from PIL import Image
        import cv2

        if len(image.shape) == 3:
            rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        else:
            rgb = image

        return self.pytesseract.image_to_string(
            Image.fromarray(rgb),
            lang=self.language,
            config=self.config
        )


# ============================================================================
# Text Extractor
# ============================================================================

class TextExtractor:
    """
    Extracts text from detected regions of a page image.

    Never raises for a single region: failures come back as placeholders
    so the run can continue.
    """

    def __init__(
        self,
        engine: Optional[Any] = None,
        language: str = "eng",
        enabled: bool = True,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        min_region_size: int = 10,
        skip_labels: Sequence[str] = ("Picture",)
    ):
        self.language = language
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.min_region_size = min_region_size
        self.skip_labels = set(skip_labels)
        self.stats = {"attempted": 0, "succeeded": 0, "failed": 0}

        self._engine = engine
        self.enabled = enabled
        if enabled and engine is None:
            try:
                self._engine = TesseractEngine(language=language)
                logger.info(f"Initialized OCR engine: tesseract ({language})")
            except ImportError as e:
                logger.warning(f"OCR disabled: {e}")
                self.enabled = False

    @property
    def engine_name(self) -> str:
        if self._engine is None:
            return ""
        return type(self._engine).__name__

    def extract(
        self,
        image: np.ndarray,
        bbox: Union[Sequence[int], Any],
        label: str
    ) -> str:
        """
        Extract the text inside `bbox`, retrying failed attempts.

        Args:
            image: Page image
            bbox: (x1, y1, x2, y2) or a BoundingBox
            label: Layout label of the region

        Returns:
            Recognized text or a reserved placeholder
        """
        return self.extract_result(image, bbox, label).text

    def extract_result(
        self,
        image: np.ndarray,
        bbox: Union[Sequence[int], Any],
        label: str
    ) -> OCRResult:
        if not self.enabled or self._engine is None:
            return OCRResult(unavailable_placeholder(label), attempts=0)

        if label in self.skip_labels:
            return OCRResult(image_placeholder(label), attempts=0)

        self.stats["attempted"] += 1
        for attempt in range(1, self.max_retries + 1):
            text = self._extract_once(image, bbox, label)
            if not any(p.match(text) for p in _RETRYABLE_PATTERNS):
                self.stats["succeeded"] += 1
                return OCRResult(text, attempts=attempt, engine_used=self.engine_name)

            if attempt < self.max_retries:
                logger.info(f"Retrying OCR (attempt {attempt + 1}/{self.max_retries})...")
                if self.retry_delay > 0:
                    time.sleep(self.retry_delay)

        self.stats["failed"] += 1
        return OCRResult(
            exhausted_placeholder(label),
            attempts=self.max_retries,
            engine_used=self.engine_name,
            metadata={"failed": True}
        )

    def _extract_once(
        self,
        image: np.ndarray,
        bbox: Union[Sequence[int], Any],
        label: str
    ) -> str:
        try:
            region = crop_region(image, bbox)
            h, w = region.shape[:2]
            if w < self.min_region_size or h < self.min_region_size:
                raise ValueError("Region too small for OCR")

            text = clean_text(self._engine.recognize(region))
        except Exception as e:
            logger.warning(f"OCR failed for {label}: {e}")
            return error_placeholder(label)

        if not text:
            return failed_placeholder(label)

        logger.debug(f"Extracted: \"{text[:50]}{'...' if len(text) > 50 else ''}\"")
        return text


def crop_region(
    image: np.ndarray,
    bbox: Union[Sequence[int], Any]
) -> np.ndarray:
    """Crop (x1, y1, x2, y2) out of an image, clipped to its bounds."""
    if hasattr(bbox, "to_list"):
        bbox = bbox.to_list()
    x1, y1, x2, y2 = (int(v) for v in bbox)
    h, w = image.shape[:2]
    x1, x2 = max(0, x1), min(w, x2)
    y1, y2 = max(0, y1), min(h, y2)
    return image[y1:y2, x1:x2]

