"""
Data transfer objects for the face mesh pipeline.

This module defines the values that cross the pipeline's boundaries:

    - RawDetection: one face returned by a face detector model. It is
      consumed within the frame that produced it and never retained.
    - FacePrediction: the per-slot landmark output of predict().
    - NoFaces / Faces: the tagged result of predict(). NoFaces is the
      defined "detector found nothing" outcome; it is not an error.

Non-goals:
    - No rendering logic.
    - No coordinate transformation methods (that belongs in landmarks).
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Tuple, Union

import numpy as np

from face_mesh_pipeline.box import Box


@dataclass(frozen=True, slots=True)
class RawDetection:
    """A single face returned by a face detector model.

    Attributes:
        box: Face bounding box in absolute image coordinates.
        confidence: Detection confidence score in [0.0, 1.0].
    """

    box: Box
    confidence: float


@dataclass(frozen=True, eq=False)
class FacePrediction:
    """Landmark output for one tracked face.

    Attributes:
        coords_model: (468, 2) landmark x, y in the mesh model's input space.
        coords_image: (468, 2) landmark x, y in source frame coordinates.
        box: The ROI to track this face with on the next frame.
        confidence: The mesh model's auxiliary face flag / confidence.
    """

    coords_model: np.ndarray
    coords_image: np.ndarray
    box: Box
    confidence: float

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "box": self.box.to_dict(),
            "confidence": round(self.confidence, 4),
            "landmarks": np.round(self.coords_image, 2).tolist(),
        }


@dataclass(frozen=True)
class NoFaces:
    """The detector ran and found no face; all tracking state was cleared."""

    def __bool__(self) -> bool:
        return False

    def __len__(self) -> int:
        return 0


@dataclass(frozen=True)
class Faces:
    """Landmark predictions for every active slot, in slot order."""

    predictions: Tuple[FacePrediction, ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[FacePrediction]:
        return iter(self.predictions)

    def __len__(self) -> int:
        return len(self.predictions)

    def __getitem__(self, index: int) -> FacePrediction:
        return self.predictions[index]

    def to_list(self) -> List[dict]:
        return [p.to_dict() for p in self.predictions]


FrameResult = Union[NoFaces, Faces]
