"""
Shared fakes for the tracking tests.

The fake mesh model returns landmarks spanning [32, 160] of a 192 x 192
crop on both axes. Their bounding box is 2/3 of the crop, so after the
1.5x enlargement the next ROI equals the current one: a face that
stands still.
"""

import numpy as np
import pytest

from face_mesh_pipeline.box import create_box
from face_mesh_pipeline.detection import RawDetection
from face_mesh_pipeline.landmarks import LANDMARKS_COUNT


class FakeDetector:
    """Returns scripted detections, one list per call."""

    def __init__(self, script):
        self._script = list(script)
        self.calls = 0

    def detect(self, frame):
        self.calls += 1
        if not self._script:
            return []
        return self._script.pop(0)


class FakeMeshModel:
    """Returns fixed landmarks and records the crops it receives."""

    def __init__(self, flag=0.9, error=None):
        xs = np.linspace(32.0, 160.0, LANDMARKS_COUNT)
        ys = xs[::-1].copy()
        zs = np.zeros(LANDMARKS_COUNT)
        self.coords = np.stack([xs, ys, zs], axis=1).reshape(-1).astype(np.float32)
        self.flag = flag
        self.error = error
        self.faces = []

    def regress(self, face):
        if self.error is not None:
            raise self.error
        self.faces.append(face)
        return self.coords.copy(), np.array([[self.flag]], dtype=np.float32)


def detection(x1, y1, x2, y2, confidence=0.99):
    return RawDetection(box=create_box([x1, y1, x2, y2]), confidence=confidence)


@pytest.fixture
def frame():
    return np.full((480, 640, 3), 128, dtype=np.uint8)


@pytest.fixture
def fake_mesh():
    return FakeMeshModel()
