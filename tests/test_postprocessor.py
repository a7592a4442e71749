"""
Tests for the postprocessing module.
"""

import numpy as np
import pytest

from face_mesh_pipeline.detection import RawDetection
from face_mesh_pipeline.postprocessor import postprocess


def test_postprocess_valid_detection():
    """Test parsing a valid detection tensor."""
    # [batch, class, conf, x1, y1, x2, y2]
    tensor = np.array([[[[0, 1, 0.95, 0.0, 0.0, 0.5, 0.5]]]], dtype=np.float32)

    detections = postprocess(
        network_output=tensor,
        frame_width=640,
        frame_height=480,
        confidence_threshold=0.5,
    )

    assert len(detections) == 1
    det = detections[0]
    assert isinstance(det, RawDetection)
    assert det.confidence == pytest.approx(0.95, abs=1e-5)
    assert det.box.start_point == pytest.approx((0.0, 0.0))
    assert det.box.end_point == pytest.approx((320.0, 240.0))


def test_postprocess_confidence_filtering():
    """Test that low-confidence detections are ignored."""
    tensor = np.array([[[[0, 1, 0.4, 0.0, 0.0, 0.5, 0.5]]]], dtype=np.float32)

    detections = postprocess(
        network_output=tensor,
        frame_width=640,
        frame_height=480,
        confidence_threshold=0.5,
    )
    assert len(detections) == 0


def test_postprocess_clamping():
    """Test coordinate clamping to frame boundaries."""
    tensor = np.array([[[[0, 1, 0.9, -0.1, -0.1, 1.2, 1.2]]]], dtype=np.float32)

    detections = postprocess(
        network_output=tensor,
        frame_width=100,
        frame_height=100,
        confidence_threshold=0.5,
    )

    assert len(detections) == 1
    box = detections[0].box
    assert box.start_point == pytest.approx((0.0, 0.0))
    assert box.end_point == pytest.approx((100.0, 100.0))


def test_postprocess_degenerate_box():
    """Test that zero-area or inverted boxes are skipped."""
    tensor = np.array([[[[0, 1, 0.9, 0.5, 0.5, 0.4, 0.4]]]], dtype=np.float32)

    detections = postprocess(
        network_output=tensor,
        frame_width=100,
        frame_height=100,
        confidence_threshold=0.5,
    )
    assert len(detections) == 0


def test_postprocess_sorted_by_confidence():
    tensor = np.array([[[
        [0, 1, 0.6, 0.0, 0.0, 0.2, 0.2],
        [0, 1, 0.9, 0.5, 0.5, 0.7, 0.7],
    ]]], dtype=np.float32)

    detections = postprocess(tensor, 100, 100, 0.5)

    assert [round(d.confidence, 1) for d in detections] == [0.9, 0.6]
