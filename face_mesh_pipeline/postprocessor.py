"""
Postprocessing for the face detector.

Responsibility:
    Parse the raw SSD network output tensor into a list of RawDetection
    objects. Apply confidence thresholding, coordinate un-normalization,
    and boundary clamping.

Non-goals:
    - No enlargement or tracking (the pipeline does that).
    - No model loading or inference.

Hard-coded:
    - SSD output tensor layout: [1, 1, N, 7] where each row is
      [batch_id, class_id, confidence, x1, y1, x2, y2] with
      coordinates normalized to [0, 1].
"""

from typing import List

import numpy as np

from face_mesh_pipeline.box import Box, scale_box
from face_mesh_pipeline.detection import RawDetection


def postprocess(
    network_output: np.ndarray,
    frame_width: int,
    frame_height: int,
    confidence_threshold: float,
) -> List[RawDetection]:
    """Parse raw SSD output into a list of RawDetection objects.

    Args:
        network_output: Raw output from net.forward(), expected shape
                        (1, 1, N, 7).
        frame_width: Source frame width in pixels (for coordinate mapping).
        frame_height: Source frame height in pixels (for coordinate mapping).
        confidence_threshold: Minimum confidence to accept a detection.

    Returns:
        List of RawDetection objects, sorted by confidence (descending).
        Empty list if no detections meet the threshold.
    """
    detections: List[RawDetection] = []

    # SSD output shape: (1, 1, num_detections, 7)
    raw = network_output[0, 0]  # Shape: (N, 7)

    for i in range(raw.shape[0]):
        confidence = float(raw[i, 2])

        if confidence < confidence_threshold:
            continue

        # Clamp normalized coordinates to the frame, then un-normalize
        x1, y1, x2, y2 = (min(max(float(v), 0.0), 1.0) for v in raw[i, 3:7])

        # Skip degenerate boxes
        if x2 <= x1 or y2 <= y1:
            continue

        box = scale_box(
            Box(start_point=(x1, y1), end_point=(x2, y2)),
            (frame_width, frame_height),
        )
        detections.append(RawDetection(box=box, confidence=confidence))

    # Sort by confidence descending for consistent output ordering
    detections.sort(key=lambda d: d.confidence, reverse=True)

    return detections
