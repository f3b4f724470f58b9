"""
File access for the layout pipeline.

Pages come in as BGR arrays, either rasterized from a PDF or read from a
single page image. The run artifact goes out as JSON.
"""

import json
import logging
import shutil
import tempfile
from dataclasses import asdict
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.tiff', '.tif', '.bmp')
TEMP_PREFIX = "doclayout_"


# ============================================================================
# PDF Rasterization
# ============================================================================

def page_span(pages: Optional[Iterable[int]]) -> Tuple[Optional[int], Optional[int]]:
    """Smallest (first, last) page window covering `pages`; (None, None) for all."""
    pages = sorted(set(pages or []))
    if not pages:
        return None, None
    return pages[0], pages[-1]


def load_pdf(
    pdf_path: Union[str, Path],
    dpi: int = 200,
    pages: Optional[Iterable[int]] = None
) -> List[Tuple[int, np.ndarray]]:
    """
    Rasterize PDF pages with pdf2image.

    Only the window between the first and last requested page is rendered;
    pages inside the window that were not requested are dropped.

    Args:
        pdf_path: Path to the PDF file
        dpi: Rendering resolution
        pages: 1-indexed page numbers to keep (None = all)

    Returns:
        (page number, BGR image) pairs in page order

    Raises:
        FileNotFoundError: If the PDF does not exist
        ImportError: If pdf2image is not installed
        RuntimeError: If the PDF cannot be parsed or poppler is missing
    """
    pdf_path = Path(pdf_path)
    if not pdf_path.exists():
        raise FileNotFoundError(f"PDF file not found: {pdf_path}")

    try:
        from pdf2image import convert_from_path
        from pdf2image.exceptions import PDFPageCountError, PDFSyntaxError
    except ImportError:
        raise ImportError(
            "pdf2image is required for PDF input. Install with: pip install pdf2image "
            "(it needs poppler on the system)"
        )

    first_page, last_page = page_span(pages)
    wanted = set(pages) if pages else None

    try:
        logger.info(f"Rasterizing {pdf_path} at {dpi} DPI")
        rendered = convert_from_path(
            str(pdf_path),
            dpi=dpi,
            first_page=first_page,
            last_page=last_page,
            fmt='png'
        )
    except (PDFPageCountError, PDFSyntaxError) as e:
        raise RuntimeError(f"Could not read PDF {pdf_path}: {e}")
    except Exception as e:
        if "poppler" in str(e).lower():
            raise RuntimeError(
                "Poppler was not found. Install poppler-utils (Linux) "
                "or `brew install poppler` (macOS)."
            )
        raise

    result = []
    for number, pil_page in enumerate(rendered, first_page or 1):
        if wanted is not None and number not in wanted:
            continue
        rgb = np.array(pil_page.convert("RGB"))
        result.append((number, rgb[:, :, ::-1].copy()))

    logger.info(f"Rasterized {len(result)} of {len(rendered)} rendered pages")
    return result


# ============================================================================
# Images
# ============================================================================

def load_image(image_path: Union[str, Path]) -> np.ndarray:
    """
    Load a page image (BGR).

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the image cannot be decoded
    """
    import cv2

    image_path = Path(image_path)
    if not image_path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    img = cv2.imread(str(image_path), cv2.IMREAD_COLOR)
    if img is None:
        raise ValueError(f"Could not decode image: {image_path}")

    logger.debug(f"Loaded image: {image_path}, shape: {img.shape}")
    return img


def save_image(image: np.ndarray, output_path: Union[str, Path]) -> Path:
    """Write an image, creating parent directories."""
    import cv2

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(output_path), image):
        raise RuntimeError(f"Could not write image: {output_path}")

    logger.debug(f"Saved image: {output_path}")
    return output_path


def detect_input_type(input_path: Union[str, Path]) -> str:
    """
    Detect the type of an input path.

    Returns:
        One of: 'pdf', 'image', 'unknown'
    """
    input_path = Path(input_path)
    if not input_path.is_file():
        return 'unknown'

    suffix = input_path.suffix.lower()
    if suffix == '.pdf':
        return 'pdf'
    if suffix in IMAGE_EXTENSIONS:
        return 'image'
    return 'unknown'


# ============================================================================
# JSON Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy values, dataclasses and paths."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if hasattr(obj, 'to_dict'):
            return obj.to_dict()
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False
) -> Path:
    """Save data to a JSON file, creating parent directories."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii, cls=EnhancedJSONEncoder)

    logger.debug(f"Saved JSON: {output_path}")
    return output_path


# ============================================================================
# Directory Management
# ============================================================================

def create_temp_dir(prefix: str = TEMP_PREFIX) -> Path:
    """Create a temporary working directory."""
    temp_dir = Path(tempfile.mkdtemp(prefix=prefix))
    logger.debug(f"Created temp directory: {temp_dir}")
    return temp_dir


def cleanup_dir(path: Union[str, Path], force: bool = False) -> bool:
    """
    Remove a directory and its contents.

    Args:
        path: Directory to remove
        force: Remove even if it is not one of our temp directories

    Returns:
        True if the directory is gone
    """
    path = Path(path)
    if not path.exists():
        return True

    if not force and not path.name.startswith(TEMP_PREFIX):
        logger.warning(f"Refusing to delete non-temp directory: {path}")
        return False

    try:
        shutil.rmtree(path)
    except OSError as e:
        logger.error(f"Failed to remove directory {path}: {e}")
        return False

    logger.debug(f"Removed directory: {path}")
    return True
