"""
FaceMeshPipeline — multi-face landmark tracking over a video stream.

This module is the intended programmatic entry point. It combines a
coarse full-frame face detector and a per-face 468-point mesh model into
one per-frame operation:

    detection gate → (maybe) detector → association → landmark extraction
    → ROI update → result

The detector only runs to bootstrap tracking or, once tracking has been
stable for max_continuous_checks frames and fewer than max_faces faces
are tracked, to look for more faces. Every other frame reuses the ROIs
derived from the previous frame's landmarks.

Public contract:
    FaceMeshPipeline.predict(frame: np.ndarray) -> NoFaces | Faces

Constraints:
    - Tracking state is mutated in place; concurrent predict() calls on
      one instance are unsupported and must be serialized by the caller.
    - Detector and mesh model errors propagate to the caller; there is
      no retry. If landmark extraction fails for any slot, no slot is
      written back for that frame.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

import numpy as np

from face_mesh_pipeline.association import associate
from face_mesh_pipeline.box import Box, enlarge_box
from face_mesh_pipeline.config import (
    AppConfig,
    TrackingConfig,
    load_config,
    validate_tracking,
)
from face_mesh_pipeline.detection import FacePrediction, Faces, FrameResult, NoFaces
from face_mesh_pipeline.detector import FaceDetector, validate_frame
from face_mesh_pipeline.gate import needs_detector_run
from face_mesh_pipeline.landmarks import LandmarkExtractor
from face_mesh_pipeline.mesh_model import OpenCVMeshModel
from face_mesh_pipeline.models import FaceDetectorModel, MeshModel
from face_mesh_pipeline.slots import ORIGIN_LANDMARKS, RoiSlots, TrackedRoi

logger = logging.getLogger(__name__)


class FaceMeshPipeline:
    """Stateful face tracker producing 468 landmarks per tracked face.

    Usage:
        pipeline = FaceMeshPipeline(detector, mesh_model)
        result = pipeline.predict(frame)
        if result:
            for face in result:
                face.coords_image   # (468, 2) in frame coordinates

    With TrackingConfig(num_workers > 1) the landmark worker threads are
    started on first use and only shut down by close() or by using the
    pipeline as a context manager:

        with FaceMeshPipeline(detector, mesh_model, config) as pipeline:
            result = pipeline.predict(frame)

    The detector and mesh model are any objects satisfying
    FaceDetectorModel and MeshModel; see FaceMeshPipeline.from_config
    for the OpenCV DNN backed defaults.
    """

    def __init__(
        self,
        detector: FaceDetectorModel,
        mesh_model: MeshModel,
        config: Optional[TrackingConfig] = None,
    ) -> None:
        """Initialize an empty pipeline.

        Raises:
            ValueError: If tracking configuration values are invalid.
        """
        if config is None:
            config = TrackingConfig()
        validate_tracking(config)

        self._config = config
        self._detector = detector
        self._extractor = LandmarkExtractor(
            mesh_model,
            mesh_width=config.mesh_width,
            mesh_height=config.mesh_height,
            enlarge_factor=config.enlarge_factor,
        )
        self._slots = RoiSlots(config.max_faces)
        self._frames_since_detector = 0
        self._executor: Optional[ThreadPoolExecutor] = None

        logger.info(
            "FaceMeshPipeline initialized (mesh=%dx%d, max_faces=%d, "
            "max_continuous_checks=%d, num_workers=%d)",
            config.mesh_width,
            config.mesh_height,
            config.max_faces,
            config.max_continuous_checks,
            config.num_workers,
        )

    @classmethod
    def from_config(cls, config: Optional[AppConfig] = None) -> "FaceMeshPipeline":
        """Build a pipeline backed by the OpenCV DNN detector and mesh models.

        Raises:
            FileNotFoundError: If model files are missing.
            RuntimeError: If the requested backend is unavailable.
        """
        if config is None:
            config = load_config()

        return cls(
            detector=FaceDetector(config.detector),
            mesh_model=OpenCVMeshModel(config.mesh),
            config=config.tracking,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def predict(self, frame: np.ndarray) -> FrameResult:
        """Track faces and predict landmarks for one frame.

        Args:
            frame: A BGR image as a numpy array with shape (H, W, 3).

        Returns:
            NoFaces if the detector ran and found nothing (all tracking
            state is cleared). Otherwise Faces with one FacePrediction per
            tracked slot, in slot order.

        Raises:
            TypeError: If frame is not a numpy ndarray.
            ValueError: If frame has incorrect shape or is empty.
            Exception: Anything the detector or mesh model raises.
        """
        validate_frame(frame)

        if self.needs_detector_run():
            detections = self._detector.detect(frame)

            if not detections:
                logger.debug("Detector found no faces; clearing tracked ROIs.")
                self._release_all(self._slots.clear())
                return NoFaces()

            kept = detections[: self._config.max_faces]
            candidates = [
                enlarge_box(d.box, self._config.enlarge_factor) for d in kept
            ]
            active = associate(
                self._slots, candidates, self._config.iou_threshold
            )
            self._frames_since_detector = 0
            logger.debug(
                "Detector run: %d detections, %d tracked",
                len(detections), len(active),
            )
        else:
            self._frames_since_detector += 1

        rois = list(self._slots)
        predictions = self._extract_all(frame, rois)

        # Serial write-back in slot order
        for roi, prediction in zip(rois, predictions):
            previous = self._slots.replace(roi.slot, prediction.box, ORIGIN_LANDMARKS)
            previous.release()

        return Faces(tuple(predictions))

    def needs_detector_run(self) -> bool:
        """Evaluate the detection gate against the current state."""
        return needs_detector_run(
            roi_count=len(self._slots),
            frames_since_detector=self._frames_since_detector,
            max_faces=self._config.max_faces,
            max_continuous_checks=self._config.max_continuous_checks,
        )

    def reset(self) -> None:
        """Drop all tracked faces; the next frame runs the detector."""
        self._release_all(self._slots.clear())
        self._frames_since_detector = 0

    def close(self) -> None:
        """Shut down the landmark worker threads, if any were started."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "FaceMeshPipeline":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def tracked_boxes(self) -> List[Box]:
        """Current ROIs in slot order (what the next frame will crop)."""
        return self._slots.boxes()

    @property
    def frames_since_detector(self) -> int:
        return self._frames_since_detector

    @property
    def config(self) -> TrackingConfig:
        """Return the active configuration (read-only)."""
        return self._config

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _extract_all(
        self, frame: np.ndarray, rois: List[TrackedRoi],
    ) -> List[FacePrediction]:
        """Run landmark extraction for every ROI, possibly in parallel."""
        if self._config.num_workers <= 1 or len(rois) <= 1:
            return [self._extractor.extract(frame, roi.box) for roi in rois]

        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._config.num_workers,
                thread_name_prefix="face-mesh",
            )

        futures = [
            self._executor.submit(self._extractor.extract, frame, roi.box)
            for roi in rois
        ]
        return [future.result() for future in futures]

    @staticmethod
    def _release_all(rois: List[TrackedRoi]) -> None:
        for roi in rois:
            roi.release()
