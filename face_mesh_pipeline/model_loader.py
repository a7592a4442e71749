"""
Model loading for the face mesh pipeline.

Responsibility:
    Load the face detector (Caffe) and face mesh (ONNX) networks from
    disk, configure the compute backend, and return ready-to-infer
    cv2.dnn.Net objects.

Non-goals:
    - No preprocessing, inference, or frame-level logic.
    - No automatic model downloading.
    - No fallback to alternative models.

Failure behavior:
    - Missing model files raise FileNotFoundError with the exact
      missing path and expected location.
    - Incompatible backend raises RuntimeError.
"""

import logging
from pathlib import Path

import cv2

from face_mesh_pipeline.config import DetectorConfig, MeshConfig, get_project_root

logger = logging.getLogger(__name__)


def _resolve(path_str: str, config_key: str, what: str) -> Path:
    """Resolve a model path against the project root and check it exists."""
    path = Path(path_str)
    if not path.is_absolute():
        path = get_project_root() / path

    if not path.is_file():
        raise FileNotFoundError(
            f"{what} not found.\n"
            f"  Expected: {path}\n"
            f"  Provide the file or update '{config_key}' in your config."
        )
    return path


def _configure_backend(net: cv2.dnn.Net, backend: str) -> None:
    """Set the preferable backend and target on a loaded network."""
    if backend == "cuda":
        logger.info("Setting CUDA backend and target.")
        try:
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
        except cv2.error as e:
            raise RuntimeError(
                f"Failed to set CUDA backend. Ensure OpenCV was built with "
                f"CUDA support (opencv-contrib-python or custom build).\n"
                f"  OpenCV error: {e}"
            ) from e
    else:
        logger.info("Using CPU backend.")
        net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)


def load_detector_model(config: DetectorConfig) -> cv2.dnn.Net:
    """Load and configure the SSD face detection model.

    Raises:
        FileNotFoundError: If prototxt or weights file does not exist.
        RuntimeError: If the requested backend is unavailable.
    """
    prototxt = _resolve(config.prototxt_path, "detector.prototxt_path", "Detector prototxt")
    weights = _resolve(config.weights_path, "detector.weights_path", "Detector weights")

    logger.info("Loading detector: prototxt=%s, weights=%s", prototxt, weights)
    net = cv2.dnn.readNetFromCaffe(str(prototxt), str(weights))
    _configure_backend(net, config.backend)

    logger.info("Detector model loaded successfully.")
    return net


def load_mesh_model(config: MeshConfig) -> cv2.dnn.Net:
    """Load and configure the ONNX face mesh model.

    Raises:
        FileNotFoundError: If the model file does not exist.
        RuntimeError: If the requested backend is unavailable.
    """
    model_path = _resolve(config.model_path, "mesh.model_path", "Mesh model")

    logger.info("Loading mesh model: %s", model_path)
    net = cv2.dnn.readNetFromONNX(str(model_path))
    _configure_backend(net, config.backend)

    logger.info("Mesh model loaded successfully.")
    return net
