"""
Layout model adapter.

Runs a YOLO document-layout model (DocLayNet classes) exported to ONNX and
returns its raw rows together with the scale factors that map them onto the
page image. Interpreting the rows is left to the normalizer.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_MODEL_REPO = "Oblix/yolov10m-doclaynet_ONNX_document-layout-analysis"
DEFAULT_MODEL_FILE = "onnx/model.onnx"


@dataclass
class DetectorOutput:
    """Raw detector rows for one page."""
    rows: List[Tuple[float, float, float, float, float, int]]
    scale: Tuple[float, float]
    page_size: Tuple[int, int]
    metadata: dict = field(default_factory=dict)


class LayoutModel:
    """
    ONNX layout detector.

    The model is fetched from the Hugging Face Hub on first use unless a
    local `model_path` is given.
    """

    def __init__(
        self,
        model_repo: str = DEFAULT_MODEL_REPO,
        model_file: str = DEFAULT_MODEL_FILE,
        model_path: Optional[str] = None,
        input_size: int = 1024,
        use_gpu: bool = False
    ):
        self.model_repo = model_repo
        self.model_file = model_file
        self.model_path = model_path
        self.input_size = input_size
        self.use_gpu = use_gpu
        self._session = None

    @property
    def session(self):
        if self._session is None:
            self._session = self._load_session()
        return self._session

    def _load_session(self):
        try:
            import onnxruntime as ort
        except ImportError:
            raise ImportError(
                "onnxruntime is required for layout detection. "
                "Install with: pip install onnxruntime"
            )

        model_path = self.model_path
        if model_path is None:
            from huggingface_hub import hf_hub_download

            logger.info(f"Fetching layout model {self.model_repo}/{self.model_file}")
            model_path = hf_hub_download(repo_id=self.model_repo, filename=self.model_file)

        providers = ["CPUExecutionProvider"]
        if self.use_gpu and "CUDAExecutionProvider" in ort.get_available_providers():
            providers.insert(0, "CUDAExecutionProvider")

        session = ort.InferenceSession(str(model_path), providers=providers)
        logger.info(f"Layout model loaded from {model_path} ({providers[0]})")
        return session

    def preprocess(self, image: np.ndarray) -> Tuple[np.ndarray, Tuple[float, float]]:
        """
        Resize a BGR page to the model input and build the NCHW tensor.

        Returns:
            Input tensor and (sx, sy) mapping model coordinates to page pixels
        """
        import cv2

        h, w = image.shape[:2]
        if len(image.shape) == 2:
            rgb = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
        else:
            rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)

        resized = cv2.resize(rgb, (self.input_size, self.input_size))
        tensor = resized.astype(np.float32).transpose(2, 0, 1)[np.newaxis] / 255.0
        scale = (w / self.input_size, h / self.input_size)
        return tensor, scale

    def predict(self, image: np.ndarray) -> DetectorOutput:
        """Run the model over one page image."""
        tensor, scale = self.preprocess(image)
        session = self.session
        input_name = session.get_inputs()[0].name

        outputs = session.run(None, {input_name: tensor})
        predictions = np.asarray(outputs[0])[0]

        rows = [
            (float(x1), float(y1), float(x2), float(y2), float(score), int(class_id))
            for x1, y1, x2, y2, score, class_id in predictions[:, :6]
        ]
        h, w = image.shape[:2]
        logger.info(f"Found {len(rows)} potential detections")
        return DetectorOutput(rows=rows, scale=scale, page_size=(w, h))
