"""
Capability interfaces for the inference backends.

The tracking core depends only on these protocols, so it can be driven
by the OpenCV DNN adapters in this package or by deterministic fakes in
tests.
"""

from typing import List, Protocol, Tuple, runtime_checkable

import numpy as np

from face_mesh_pipeline.detection import RawDetection


@runtime_checkable
class FaceDetectorModel(Protocol):
    """Full-frame face detector."""

    def detect(self, frame: np.ndarray) -> List[RawDetection]:
        """Return zero or more detections with boxes in image coordinates."""
        ...


@runtime_checkable
class MeshModel(Protocol):
    """Dense face landmark regressor."""

    def regress(self, face: np.ndarray) -> Tuple[np.ndarray, float]:
        """Run the landmark model on one normalized face crop.

        Args:
            face: float32 array (mesh_height, mesh_width, 3) in [0, 1].

        Returns:
            (coords, flag): 468 * 3 landmark values (flat or (468, 3)) in
            the model's input pixel space, and the face confidence flag.
        """
        ...
