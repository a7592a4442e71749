"""
OpenCV DNN face mesh adapter.

Implements the MeshModel capability with an ONNX export of the 468-point
face landmark model loaded through cv2.dnn.

The model is expected to expose two outputs: the flattened landmark
tensor (468 * 3 values) and a single face flag / confidence value.
Outputs are identified by size, not by name, since exported layer names
differ between conversions.
"""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from face_mesh_pipeline.config import MeshConfig
from face_mesh_pipeline.landmarks import LANDMARKS_COUNT
from face_mesh_pipeline.model_loader import load_mesh_model
from face_mesh_pipeline.preprocessor import preprocess_mesh_input

logger = logging.getLogger(__name__)


def split_mesh_outputs(outputs) -> Tuple[np.ndarray, float]:
    """Pick the landmark tensor and the face flag out of raw outputs.

    Raises:
        ValueError: If no output matches the expected sizes.
    """
    coords = None
    flag = None
    for output in outputs:
        arr = np.asarray(output)
        if arr.size == LANDMARKS_COUNT * 3 and coords is None:
            coords = arr.reshape(-1)
        elif arr.size == 1 and flag is None:
            flag = float(arr.reshape(-1)[0])

    if coords is None or flag is None:
        shapes = [np.asarray(o).shape for o in outputs]
        raise ValueError(
            f"Mesh model outputs do not match the expected layout "
            f"({LANDMARKS_COUNT * 3} landmark values and 1 flag), "
            f"got shapes {shapes}."
        )
    return coords, flag


class OpenCVMeshModel:
    """Face landmark regressor running on OpenCV DNN.

    Usage:
        mesh = OpenCVMeshModel()
        coords, flag = mesh.regress(face)   # face: (192, 192, 3) float32 in [0, 1]
    """

    def __init__(self, config: Optional[MeshConfig] = None) -> None:
        if config is None:
            config = MeshConfig()

        self._config = config
        self._net = load_mesh_model(config)
        self._output_names = self._net.getUnconnectedOutLayersNames()

        logger.info(
            "OpenCVMeshModel initialized (backend=%s, outputs=%s)",
            config.backend,
            list(self._output_names),
        )

    def regress(self, face: np.ndarray) -> Tuple[np.ndarray, float]:
        """Run the mesh model on one normalized face crop.

        Raises:
            ValueError: If the model outputs have an unexpected layout.
            RuntimeError: If inference fails inside OpenCV.
        """
        blob = preprocess_mesh_input(face, swap_rb=self._config.swap_rb)

        try:
            self._net.setInput(blob)
            outputs = self._net.forward(self._output_names)
        except cv2.error as e:
            raise RuntimeError(f"Mesh model inference failed: {e}") from e

        return split_mesh_outputs(outputs)

    @property
    def config(self) -> MeshConfig:
        return self._config
