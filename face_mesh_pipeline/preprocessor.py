"""
Preprocessing for the detector and mesh models.

Responsibility:
    - Convert a raw BGR frame into the face detector's 4D input blob.
    - Normalize a cropped face to float32 in [0, 1] for the mesh model.
    - Convert a normalized face into the mesh model's NCHW blob.

Non-goals:
    - No frame acquisition or I/O.
    - No inference or coordinate mapping.

Hard-coded:
    - Detector channel order is BGR (mandated by the Caffe model).
    - Face crops are normalized by dividing by 255.
"""

import numpy as np
import cv2

from face_mesh_pipeline.config import DetectorConfig


def preprocess_detector_input(frame: np.ndarray, config: DetectorConfig) -> np.ndarray:
    """Convert a raw BGR frame into a detector input blob.

    Args:
        frame: Input image as a BGR numpy array (H, W, 3).
        config: DetectorConfig providing input_size, scale_factor, and mean_values.

    Returns:
        A 4D numpy array of shape (1, 3, H, W) with dtype float32.

    Raises:
        ValueError: If the frame is empty.
    """
    if frame is None or frame.size == 0:
        raise ValueError(
            "Cannot preprocess an empty frame. "
            "Ensure the input source is providing valid frames."
        )

    blob = cv2.dnn.blobFromImage(
        image=frame,
        scalefactor=config.scale_factor,
        size=config.input_size,
        mean=config.mean_values,
        swapRB=False,   # Hard-coded: input is BGR, model expects BGR
        crop=False,
    )

    return blob


def normalize_face(crop: np.ndarray) -> np.ndarray:
    """Scale an 8-bit face crop to float32 values in [0, 1]."""
    if crop is None or crop.size == 0:
        raise ValueError("Cannot normalize an empty face crop.")
    return crop.astype(np.float32) / 255.0


def preprocess_mesh_input(face: np.ndarray, swap_rb: bool = True) -> np.ndarray:
    """Convert a normalized (h, w, 3) face into a (1, 3, h, w) blob.

    The face is already at the model's input size and value range, so no
    resizing or scaling happens here.
    """
    if face is None or face.size == 0:
        raise ValueError("Cannot preprocess an empty face.")

    return cv2.dnn.blobFromImage(
        image=face.astype(np.float32),
        scalefactor=1.0,
        size=(face.shape[1], face.shape[0]),
        mean=(0.0, 0.0, 0.0),
        swapRB=swap_rb,
        crop=False,
    )
