"""
Tests for the FaceMeshPipeline orchestrator, driven by fake models.
"""

import numpy as np
import pytest

from conftest import FakeDetector, FakeMeshModel, detection
from face_mesh_pipeline.box import create_box, enlarge_box
from face_mesh_pipeline.config import AppConfig, DetectorConfig, TrackingConfig
from face_mesh_pipeline.detection import Faces, NoFaces
from face_mesh_pipeline.pipeline import FaceMeshPipeline


def _assert_boxes_close(actual, expected):
    assert len(actual) == len(expected)
    for a, e in zip(actual, expected):
        np.testing.assert_allclose(a.as_array(), e.as_array(), atol=1e-3)


def test_first_frame_runs_detector_and_tracks(frame, fake_mesh):
    detector = FakeDetector([[detection(100, 100, 228, 228)]])
    pipeline = FaceMeshPipeline(detector, fake_mesh, TrackingConfig(max_faces=2))

    result = pipeline.predict(frame)

    assert isinstance(result, Faces)
    assert len(result) == 1
    assert detector.calls == 1
    assert pipeline.frames_since_detector == 0
    _assert_boxes_close(
        pipeline.tracked_boxes, [enlarge_box(create_box([100, 100, 228, 228]))]
    )
    assert result[0].coords_image.shape == (468, 2)
    assert result[0].confidence == pytest.approx(0.9)
    assert result[0].box == pipeline.tracked_boxes[0]


def test_no_detections_returns_no_faces(frame, fake_mesh):
    detector = FakeDetector([[]])
    pipeline = FaceMeshPipeline(detector, fake_mesh)

    result = pipeline.predict(frame)

    assert isinstance(result, NoFaces)
    assert not result
    assert len(result) == 0
    assert pipeline.tracked_boxes == []
    assert fake_mesh.faces == []


def test_no_detections_clears_tracked_state(frame, fake_mesh):
    detector = FakeDetector([[detection(100, 100, 228, 228)], []])
    config = TrackingConfig(max_faces=2, max_continuous_checks=1)
    pipeline = FaceMeshPipeline(detector, fake_mesh, config)

    pipeline.predict(frame)          # detector: 1 face
    pipeline.predict(frame)          # track only, counter -> 1
    tracked = list(pipeline._slots)
    result = pipeline.predict(frame)  # detector again: nothing

    assert isinstance(result, NoFaces)
    assert detector.calls == 2
    assert pipeline.tracked_boxes == []
    assert all(roi.released for roi in tracked)
    assert pipeline.needs_detector_run()


def test_single_face_scenario_stays_track_only(frame, fake_mesh):
    """max_faces=1: once a face is tracked, the detector never reruns."""
    detector = FakeDetector([[detection(200, 150, 328, 278)]])
    config = TrackingConfig(max_faces=1, max_continuous_checks=2)
    pipeline = FaceMeshPipeline(detector, fake_mesh, config)

    pipeline.predict(frame)
    assert detector.calls == 1
    assert pipeline.frames_since_detector == 0

    for expected_counter in (1, 2, 3, 4):
        assert not pipeline.needs_detector_run()
        result = pipeline.predict(frame)
        assert len(result) == 1
        assert pipeline.frames_since_detector == expected_counter

    assert detector.calls == 1


def test_detector_reruns_to_find_more_faces(frame, fake_mesh):
    """Two detections against one tracked ROI: slot 0 sticks, slot 1 is new."""
    first = detection(100, 100, 228, 228)
    second = detection(400, 100, 528, 228)
    detector = FakeDetector([[first], [first, second]])
    config = TrackingConfig(max_faces=2, max_continuous_checks=1)
    pipeline = FaceMeshPipeline(detector, fake_mesh, config)

    pipeline.predict(frame)                    # detector
    pipeline.predict(frame)                    # track only
    slot0 = pipeline._slots.get(0)
    assert detector.calls == 1
    assert pipeline.needs_detector_run()

    result = pipeline.predict(frame)           # detector again

    assert detector.calls == 2
    assert len(result) == 2
    assert pipeline.frames_since_detector == 0
    # Slot 0 kept its landmark ROI through association, then was refreshed
    assert slot0.released
    _assert_boxes_close(
        pipeline.tracked_boxes,
        [enlarge_box(first.box), enlarge_box(second.box)],
    )


def test_slot_count_matches_detections(frame, fake_mesh):
    detector = FakeDetector([[
        detection(0, 0, 60, 60),
        detection(200, 0, 260, 60),
        detection(400, 0, 460, 60),
    ]])
    pipeline = FaceMeshPipeline(detector, fake_mesh, TrackingConfig(max_faces=5))

    result = pipeline.predict(frame)

    assert len(result) == 3
    assert len(pipeline.tracked_boxes) == 3


def test_detections_truncated_to_max_faces(frame, fake_mesh):
    detector = FakeDetector([[
        detection(0, 0, 60, 60, 0.99),
        detection(200, 0, 260, 60, 0.95),
        detection(400, 0, 460, 60, 0.90),
    ]])
    pipeline = FaceMeshPipeline(detector, fake_mesh, TrackingConfig(max_faces=2))

    result = pipeline.predict(frame)

    assert len(result) == 2
    _assert_boxes_close(
        pipeline.tracked_boxes,
        [
            enlarge_box(create_box([0, 0, 60, 60])),
            enlarge_box(create_box([200, 0, 260, 60])),
        ],
    )


def test_every_superseded_roi_released_once(frame, fake_mesh):
    detector = FakeDetector([[detection(100, 100, 228, 228)]])
    pipeline = FaceMeshPipeline(detector, fake_mesh, TrackingConfig(max_faces=1))

    seen = []
    for _ in range(4):
        pipeline.predict(frame)
        seen.append(pipeline._slots.get(0))

    assert len({id(roi) for roi in seen}) == 4
    assert all(roi.released for roi in seen[:-1])
    assert not seen[-1].released


def test_mesh_failure_propagates_without_write_back(frame):
    detector = FakeDetector([[detection(100, 100, 228, 228)]])
    mesh = FakeMeshModel(error=RuntimeError("mesh backend down"))
    pipeline = FaceMeshPipeline(detector, mesh)

    with pytest.raises(RuntimeError, match="mesh backend down"):
        pipeline.predict(frame)

    # Association happened; landmark write-back did not
    _assert_boxes_close(
        pipeline.tracked_boxes, [enlarge_box(create_box([100, 100, 228, 228]))]
    )
    assert pipeline._slots.get(0).origin == "detector"


def test_detector_failure_propagates(frame, fake_mesh):
    class BrokenDetector:
        def detect(self, frame):
            raise RuntimeError("detector backend down")

    pipeline = FaceMeshPipeline(BrokenDetector(), fake_mesh)

    with pytest.raises(RuntimeError, match="detector backend down"):
        pipeline.predict(frame)


def test_reset_releases_and_restarts(frame, fake_mesh):
    detector = FakeDetector([[detection(100, 100, 228, 228)]] * 2)
    pipeline = FaceMeshPipeline(detector, fake_mesh, TrackingConfig(max_faces=1))
    pipeline.predict(frame)
    pipeline.predict(frame)
    tracked = pipeline._slots.get(0)

    pipeline.reset()

    assert tracked.released
    assert pipeline.tracked_boxes == []
    assert pipeline.frames_since_detector == 0
    pipeline.predict(frame)
    assert detector.calls == 2


def test_parallel_extraction_matches_sequential(frame):
    script = [[detection(0, 0, 100, 100), detection(300, 200, 420, 320)]]
    sequential = FaceMeshPipeline(
        FakeDetector(script), FakeMeshModel(), TrackingConfig(max_faces=2)
    )
    with FaceMeshPipeline(
        FakeDetector(script),
        FakeMeshModel(),
        TrackingConfig(max_faces=2, num_workers=2),
    ) as parallel:
        for _ in range(3):
            expected = sequential.predict(frame)
            actual = parallel.predict(frame)
            for e, a in zip(expected, actual):
                np.testing.assert_allclose(a.coords_image, e.coords_image)
                assert a.box == e.box


def test_invalid_frame_rejected(fake_mesh):
    pipeline = FaceMeshPipeline(FakeDetector([]), fake_mesh)

    with pytest.raises(TypeError):
        pipeline.predict("not a frame")
    with pytest.raises(ValueError, match="3-dimensional"):
        pipeline.predict(np.zeros((10, 10), dtype=np.uint8))


def test_invalid_config_rejected(fake_mesh):
    with pytest.raises(ValueError, match="max_continuous_checks"):
        FaceMeshPipeline(
            FakeDetector([]), fake_mesh, TrackingConfig(max_continuous_checks=0)
        )


def test_result_to_list(frame, fake_mesh):
    pipeline = FaceMeshPipeline(
        FakeDetector([[detection(100, 100, 228, 228)]]), fake_mesh
    )
    exported = pipeline.predict(frame).to_list()

    assert len(exported) == 1
    assert set(exported[0]) == {"box", "confidence", "landmarks"}
    assert len(exported[0]["landmarks"]) == 468


def test_from_config_requires_model_files(tmp_path):
    config = AppConfig(
        detector=DetectorConfig(
            prototxt_path=str(tmp_path / "missing.prototxt"),
            weights_path=str(tmp_path / "missing.caffemodel"),
        ),
    )
    with pytest.raises(FileNotFoundError, match="Detector prototxt"):
        FaceMeshPipeline.from_config(config)


class CollinearMeshModel(FakeMeshModel):
    """Landmarks that all share one y value."""

    def __init__(self):
        super().__init__()
        coords = self.coords.reshape(-1, 3)
        coords[:, 1] = 50.0
        self.coords = coords.reshape(-1)


def test_flat_landmark_roi_keeps_tracking(frame):
    """Collinear landmarks give a zero-height ROI; later frames still run."""
    detector = FakeDetector([[detection(100, 100, 228, 228)]])
    pipeline = FaceMeshPipeline(
        detector, CollinearMeshModel(), TrackingConfig(max_faces=1)
    )

    pipeline.predict(frame)
    assert pipeline.tracked_boxes[0].height == 0.0

    for _ in range(3):
        result = pipeline.predict(frame)
        assert len(result) == 1

    assert detector.calls == 1
    assert pipeline.tracked_boxes[0].height == 0.0
    assert pipeline.tracked_boxes[0].width > 0.0


def test_zero_area_detection_keeps_tracking(frame, fake_mesh):
    detector = FakeDetector([[detection(150, 150, 150, 150)]])
    pipeline = FaceMeshPipeline(detector, fake_mesh, TrackingConfig(max_faces=1))

    first = pipeline.predict(frame)
    second = pipeline.predict(frame)

    assert len(first) == 1
    assert len(second) == 1
    assert fake_mesh.faces[0].shape == (192, 192, 3)
    assert pipeline.tracked_boxes[0].area == 0.0
