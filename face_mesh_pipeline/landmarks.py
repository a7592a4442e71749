"""
Landmark extraction and ROI feedback.

Responsibility:
    For one tracked ROI: crop the frame to the mesh model's input size,
    run the mesh model, map its output from model input space back into
    frame coordinates, and derive the next frame's ROI from the
    landmarks' bounding box.

Coordinate spaces:
    model space  pixel coordinates inside the mesh_width x mesh_height crop
    image space  pixel coordinates in the source frame

    image = model * (box.size / [mesh_width, mesh_height]) + box.start_point

Non-goals:
    - No model loading or backend selection.
    - No slot bookkeeping (the pipeline writes results back).
"""

from typing import Sequence, Tuple

import numpy as np

from face_mesh_pipeline.box import (
    DEFAULT_ENLARGE_FACTOR,
    Box,
    create_box,
    cut_box_from_image_and_resize,
    enlarge_box,
)
from face_mesh_pipeline.detection import FacePrediction
from face_mesh_pipeline.models import MeshModel
from face_mesh_pipeline.preprocessor import normalize_face

LANDMARKS_COUNT = 468


def to_model_space_2d(coords: np.ndarray) -> np.ndarray:
    """Reshape raw mesh output to (468, 3) and keep the x, y columns.

    Raises:
        ValueError: If the output does not hold exactly 468 * 3 values.
    """
    coords = np.asarray(coords, dtype=np.float32)
    if coords.size != LANDMARKS_COUNT * 3:
        raise ValueError(
            f"Expected {LANDMARKS_COUNT * 3} landmark values "
            f"({LANDMARKS_COUNT} x 3), got {coords.size} "
            f"with shape {coords.shape}."
        )
    return coords.reshape(-1, 3)[:, :2].copy()


def _mesh_scale(box: Box, mesh_size: Sequence[int]) -> np.ndarray:
    return box.size / np.asarray(mesh_size, dtype=np.float64)


def model_to_image_space(
    coords: np.ndarray, box: Box, mesh_size: Sequence[int],
) -> np.ndarray:
    """Map (N, 2) model-space coordinates into frame coordinates.

    Args:
        coords: Landmark x, y in the mesh model's input space.
        box: The ROI the model input was cropped from.
        mesh_size: Model input (width, height).
    """
    scaled = np.asarray(coords, dtype=np.float64) * _mesh_scale(box, mesh_size)
    return scaled + np.asarray(box.start_point, dtype=np.float64)


def image_to_model_space(
    coords: np.ndarray, box: Box, mesh_size: Sequence[int],
) -> np.ndarray:
    """Inverse of model_to_image_space.

    Raises:
        ValueError: If the box has zero width or height.
    """
    if box.width <= 0 or box.height <= 0:
        raise ValueError(
            f"Cannot map into a degenerate box (width={box.width}, "
            f"height={box.height})."
        )
    shifted = np.asarray(coords, dtype=np.float64) - np.asarray(
        box.start_point, dtype=np.float64
    )
    return shifted / _mesh_scale(box, mesh_size)


def landmarks_bounding_box(coords: np.ndarray) -> Box:
    """Tight axis-aligned box around (N, 2) image-space landmarks."""
    coords = np.asarray(coords, dtype=np.float64)
    mins = coords.min(axis=0)
    maxs = coords.max(axis=0)
    return create_box([mins[0], mins[1], maxs[0], maxs[1]])


def next_roi_from_landmarks(
    coords: np.ndarray, factor: float = DEFAULT_ENLARGE_FACTOR,
) -> Box:
    """Derive the next frame's ROI from this frame's landmarks.

    Uses the same enlargement as detector boxes so that detector-origin
    and landmark-origin ROIs stay comparable under IOU.
    """
    return enlarge_box(landmarks_bounding_box(coords), factor)


class LandmarkExtractor:
    """Runs the mesh model on one ROI and converts its output.

    Usage:
        extractor = LandmarkExtractor(mesh_model, 192, 192)
        prediction = extractor.extract(frame, box)
        prediction.box  # ROI for the next frame

    Stateless between calls; safe to call for different slots from
    several threads as long as the mesh model is.
    """

    def __init__(
        self,
        mesh_model: MeshModel,
        mesh_width: int,
        mesh_height: int,
        enlarge_factor: float = DEFAULT_ENLARGE_FACTOR,
    ) -> None:
        self._mesh_model = mesh_model
        self._mesh_size: Tuple[int, int] = (mesh_width, mesh_height)
        self._enlarge_factor = enlarge_factor

    @property
    def mesh_size(self) -> Tuple[int, int]:
        return self._mesh_size

    def extract(self, frame: np.ndarray, box: Box) -> FacePrediction:
        """Predict landmarks for the face inside box.

        Errors raised by the mesh model propagate unchanged.
        """
        crop = cut_box_from_image_and_resize(frame, box, self._mesh_size)
        face = normalize_face(crop)

        coords, flag = self._mesh_model.regress(face)

        coords_model = to_model_space_2d(coords)
        coords_image = model_to_image_space(coords_model, box, self._mesh_size)
        next_box = next_roi_from_landmarks(coords_image, self._enlarge_factor)

        return FacePrediction(
            coords_model=coords_model,
            coords_image=coords_image,
            box=next_box,
            confidence=float(np.asarray(flag).reshape(-1)[0]),
        )
