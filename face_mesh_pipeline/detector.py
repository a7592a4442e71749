"""
OpenCV DNN face detector adapter.

Implements the FaceDetectorModel capability with the SSD-ResNet10 Caffe
model. This is the coarse, full-frame stage of the pipeline; the
pipeline's detection gate decides when it runs.

Public contract:
    FaceDetector.detect(frame: np.ndarray) -> list[RawDetection]

Constraints:
    - Input must be a BGR numpy array (as returned by OpenCV).
    - Boxes are returned in absolute image coordinates, tight (not enlarged).
    - Thread-safety is not guaranteed (single-threaded design).

Non-goals:
    - No tracking or temporal state.
"""

import logging
from typing import List, Optional

import cv2
import numpy as np

from face_mesh_pipeline.config import DetectorConfig
from face_mesh_pipeline.detection import RawDetection
from face_mesh_pipeline.model_loader import load_detector_model
from face_mesh_pipeline.postprocessor import postprocess
from face_mesh_pipeline.preprocessor import preprocess_detector_input

logger = logging.getLogger(__name__)


def validate_frame(frame: np.ndarray) -> None:
    """Validate that an input frame is a non-empty (H, W, 3) array.

    Raises:
        TypeError: If frame is not a numpy ndarray.
        ValueError: If frame is empty or has wrong dimensions.
    """
    if not isinstance(frame, np.ndarray):
        raise TypeError(
            f"Expected frame to be a numpy ndarray, "
            f"got {type(frame).__name__}. "
            f"Use cv2.imread() or VideoCapture.read() to obtain frames."
        )

    if frame.size == 0:
        raise ValueError(
            "Frame is empty (zero size). "
            "Ensure the input source is providing valid frames."
        )

    if frame.ndim != 3:
        raise ValueError(
            f"Expected a 3-dimensional frame (H, W, C), "
            f"got {frame.ndim} dimensions with shape {frame.shape}. "
            f"Grayscale images must be converted to BGR first."
        )

    if frame.shape[2] != 3:
        raise ValueError(
            f"Expected 3 channels (BGR), got {frame.shape[2]} channels. "
            f"Input must be a BGR image as returned by OpenCV."
        )


class FaceDetector:
    """Face detector using SSD-ResNet10 via OpenCV DNN.

    Usage:
        detector = FaceDetector()                       # Uses safe defaults
        detector = FaceDetector(config=my_config)       # Custom config
        detections = detector.detect(frame)             # BGR numpy array

    The constructor loads the model once. Subsequent detect() calls
    reuse the loaded network.
    """

    def __init__(self, config: Optional[DetectorConfig] = None) -> None:
        """Initialize the detector and load the model.

        Raises:
            FileNotFoundError: If model files are missing.
            RuntimeError: If the requested backend is unavailable.
        """
        if config is None:
            config = DetectorConfig()

        self._config = config
        self._net = load_detector_model(config)

        logger.info(
            "FaceDetector initialized (backend=%s, confidence_threshold=%.2f)",
            config.backend,
            config.confidence_threshold,
        )

    def detect(self, frame: np.ndarray) -> List[RawDetection]:
        """Detect faces in a single BGR frame.

        Returns:
            RawDetection objects sorted by confidence (descending).
            An empty list if no faces are detected.

        Raises:
            TypeError: If frame is not a numpy ndarray.
            ValueError: If frame has incorrect shape or is empty.
            RuntimeError: If inference fails inside OpenCV.
        """
        validate_frame(frame)

        blob = preprocess_detector_input(frame, self._config)

        try:
            self._net.setInput(blob)
            output = self._net.forward()
        except cv2.error as e:
            raise RuntimeError(f"Face detector inference failed: {e}") from e

        h, w = frame.shape[:2]
        return postprocess(
            network_output=output,
            frame_width=w,
            frame_height=h,
            confidence_threshold=self._config.confidence_threshold,
        )

    @property
    def config(self) -> DetectorConfig:
        """Return the active configuration (read-only)."""
        return self._config
