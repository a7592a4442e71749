"""
Face Mesh Pipeline — multi-face landmark tracking over video frames.

Public API:
    - FaceMeshPipeline: The single entry point for per-frame tracking.
    - FaceDetectorModel / MeshModel: Capability interfaces for the two
      inference backends.
    - FaceDetector / OpenCVMeshModel: OpenCV DNN implementations of them.
    - NoFaces / Faces / FacePrediction: predict() results.
    - RawDetection: Detector output consumed by the pipeline.
    - Box: Axis-aligned box value type.

All other modules in this package are internal implementation details
and should not be imported directly by consumers.

Usage:
    from face_mesh_pipeline import FaceMeshPipeline

    pipeline = FaceMeshPipeline.from_config()
    result = pipeline.predict(frame)
"""

from face_mesh_pipeline.box import Box
from face_mesh_pipeline.config import AppConfig, TrackingConfig, load_config
from face_mesh_pipeline.detection import FacePrediction, Faces, FrameResult, NoFaces, RawDetection
from face_mesh_pipeline.detector import FaceDetector
from face_mesh_pipeline.mesh_model import OpenCVMeshModel
from face_mesh_pipeline.models import FaceDetectorModel, MeshModel
from face_mesh_pipeline.pipeline import FaceMeshPipeline

__all__ = [
    "AppConfig",
    "Box",
    "FaceDetector",
    "FaceDetectorModel",
    "FaceMeshPipeline",
    "FacePrediction",
    "Faces",
    "FrameResult",
    "MeshModel",
    "NoFaces",
    "OpenCVMeshModel",
    "RawDetection",
    "TrackingConfig",
    "load_config",
]
